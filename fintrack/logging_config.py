"""
Logging for fintrack: stdlib loggers rendered by structlog.

Modules log with ``logging.getLogger(__name__)``. ``setup_logging`` puts a
single stderr handler on the root logger whose formatter runs structlog
processors, so our records and library records come out the same way:
console text by default, JSON lines with ``FINTRACK_LOG_FORMAT=json``.

A live voice session binds its id with ``bind_voice_session``; every record
emitted in that context, including scheduled timers and tasks created while
it was bound, carries ``voice_session=<id>``.

Usage:
    from fintrack.logging_config import setup_logging
    setup_logging()
"""

from __future__ import annotations

import logging
import os
import sys

import structlog

DEFAULT_LEVEL = "WARNING"
SESSION_KEY = "voice_session"

# Assistant HTTP traffic is noisy at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "anthropic")


def _resolve_level(level: str | None) -> int:
    name = level or os.environ.get("FINTRACK_LOG_LEVEL", DEFAULT_LEVEL)
    return getattr(logging, name.upper(), logging.WARNING)


def _renderer(json_output: bool | None) -> structlog.types.Processor:
    if json_output is None:
        json_output = os.environ.get("FINTRACK_LOG_FORMAT", "").lower() == "json"
    if json_output:
        # Portuguese transcripts and answers stay readable
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def setup_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """Route all logging through structlog. Safe to call more than once."""
    numeric_level = _resolve_level(level)

    # Shared by structlog loggers and, through foreign_pre_chain, stdlib records
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json_output),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def bind_voice_session(session_id: str) -> None:
    """Tag subsequent records in this context with the voice session id."""
    structlog.contextvars.bind_contextvars(**{SESSION_KEY: session_id})


def unbind_voice_session() -> None:
    structlog.contextvars.unbind_contextvars(SESSION_KEY)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = [
    "QUIET_LOGGERS",
    "SESSION_KEY",
    "bind_voice_session",
    "get_logger",
    "setup_logging",
    "unbind_voice_session",
]
