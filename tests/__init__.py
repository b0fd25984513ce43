"""fintrack test suite

Test organization:
- conftest.py: snapshot data, fake recognition/synthesis engines, session factory
- unit/voice/: parsers, query resolver, assistant fallback, config,
  recognition events, scheduler and the session state machine
- unit/test_cli.py: the ``fintrack`` command line
- unit/test_logging_config.py: structlog setup and session correlation

Running tests:
    # All tests
    pytest

    # Specific module
    pytest tests/unit/voice/test_session_orchestrator.py
"""
