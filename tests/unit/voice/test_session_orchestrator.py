"""Tests for the voice session state machine.

Drives VoiceSession through fake recognition and synthesis engines with the
short delays of the ``fast_config`` fixture.
"""

import asyncio
from datetime import date

import pytest
import structlog

from fintrack.logging_config import SESSION_KEY
from fintrack.voice.models import FinancialContext, IntentType, TransactionDraft
from fintrack.voice.parser.intent_parser import help_answer
from fintrack.voice.session.state import ERROR_MESSAGES, ErrorReason, SessionStatus
from fintrack.voice.snapshot import TransactionType
from tests.conftest import FakeRecognitionEngine, settle

BALANCE_ANSWER = (
    "Seu saldo em março é positivo: R$ 4.669,50. "
    "Receitas: R$ 5.000,00 | Despesas: R$ 330,50."
)


async def open_listening(session, engines) -> FakeRecognitionEngine:
    """Open the session and report the first engine as started."""
    session.open()
    await settle(0.01)
    engine = engines[-1]
    engine.emit_start()
    return engine


# =============================================================================
# Opening & listening
# =============================================================================


@pytest.mark.asyncio
class TestOpen:

    async def test_starts_recognition(self, make_session, engines):
        session = make_session()
        ctx = session.open()
        assert ctx.is_open
        assert session.status == SessionStatus.IDLE

        await settle(0.01)
        assert len(engines) == 1
        engine = engines[0]
        assert engine.started
        assert engine.config.to_dict()["lang"] == "pt-BR"

        engine.emit_start()
        assert session.status == SessionStatus.LISTENING
        assert ctx.is_listening

    async def test_greets_when_enabled(self, make_session, fast_config, synthesis):
        fast_config.speech.greet_on_open = True
        session = make_session()
        session.open()
        await settle(0.01)
        assert [u.text for u in synthesis.spoken] == [fast_config.speech.greeting]

    async def test_unsupported_platform(self, make_session):
        session = make_session(engine_factory=lambda: None)
        session.open()
        await settle(0.01)
        assert session.status == SessionStatus.ERROR
        assert session.context.error_message == ERROR_MESSAGES[ErrorReason.UNSUPPORTED]

    async def test_start_failure(self, make_session):
        session = make_session(engine_factory=lambda: FakeRecognitionEngine(fail_on_start=True))
        session.open()
        await settle(0.01)
        assert session.status == SessionStatus.ERROR
        assert session.context.error_message == ERROR_MESSAGES[ErrorReason.START_FAILED]

    async def test_inactivity_closes(self, make_session, fast_config, engines):
        fast_config.execution.inactivity_timeout_seconds = 0.03
        session = make_session()
        await open_listening(session, engines)
        await settle(0.06)
        assert not session.is_open
        assert session.closes == [1]

    async def test_speech_keeps_session_open(self, make_session, fast_config, engines):
        fast_config.execution.inactivity_timeout_seconds = 0.03
        session = make_session()
        engine = await open_listening(session, engines)
        engine.emit_result(("quanto", False))
        await settle(0.06)
        assert session.is_open


# =============================================================================
# Transcripts
# =============================================================================


@pytest.mark.asyncio
class TestTranscripts:

    async def test_interim_updates_badge_without_executing(self, make_session, engines):
        session = make_session()
        engine = await open_listening(session, engines)

        engine.emit_result(("gastei cinquenta", False))

        ctx = session.context
        assert ctx.interim_text == "gastei cinquenta"
        assert ctx.transcript == ""
        assert ctx.intent.type == IntentType.TRANSACTION
        assert not session.scheduler.is_pending("debounce")

    async def test_final_fragments_are_joined(self, make_session, engines):
        session = make_session()
        engine = await open_listening(session, engines)

        engine.emit_result(("gastei 50", True), ("reais no", True), (" mercado", False))

        assert session.context.transcript == "gastei 50 reais no"
        assert session.context.interim_text == "mercado"

    async def test_short_text_clears_badge(self, make_session, engines):
        session = make_session()
        engine = await open_listening(session, engines)
        engine.emit_result(("oi", False))
        assert session.context.intent is None

    async def test_unknown_final_does_not_schedule(self, make_session, engines):
        session = make_session()
        engine = await open_listening(session, engines)
        engine.emit_final("blá blá blá")
        assert not session.scheduler.is_pending("debounce")

    async def test_debounce_executes_once(self, make_session, engines, synthesis, monkeypatch):
        session = make_session()
        engine = await open_listening(session, engines)

        executed = []
        run = session._execute

        async def counting_execute(ctx, text):
            executed.append(text)
            return await run(ctx, text)

        monkeypatch.setattr(session, "_execute", counting_execute)

        cancelled = []
        cancel = session.scheduler.cancel

        def recording_cancel(name):
            found = cancel(name)
            cancelled.append((name, found))
            return found

        monkeypatch.setattr(session.scheduler, "cancel", recording_cancel)

        engine.emit_final("qual meu saldo")
        assert session.scheduler.is_pending("debounce")
        engine.emit_final("qual meu saldo do mês")
        assert session.scheduler.is_pending("debounce")
        # The second final found the first timer still armed and cancelled it
        assert ("debounce", True) in cancelled
        await settle(0.1)

        assert executed == ["qual meu saldo do mês"]
        assert session.status == SessionStatus.QUERY_RESULT
        assert [u.text for u in synthesis.spoken] == [BALANCE_ANSWER]
        assert engine.aborted >= 1

        # Late fragments and manual triggers are ignored while processing
        engine.emit_final("tenho contas vencidas")
        assert await session.execute() is None
        await settle(0.1)
        assert len(synthesis.spoken) == 1

    async def test_new_speech_postpones_execution(self, make_session, engines, synthesis):
        session = make_session()
        engine = await open_listening(session, engines)

        engine.emit_final("qual meu saldo")
        await settle(0.03)
        engine.emit_result(("qual meu saldo", True), (" e", False))
        await settle(0.02)
        assert synthesis.spoken == []

        await settle(0.08)
        assert len(synthesis.spoken) == 1

    async def test_confirm_word_executes_immediately(self, make_session, engines, synthesis):
        session = make_session()
        engine = await open_listening(session, engines)

        engine.emit_final("qual meu saldo ok")
        await settle(0.01)

        assert session.context.intent.query_key.value == "balance_month"
        assert [u.text for u in synthesis.spoken] == [BALANCE_ANSWER]

    async def test_confirm_word_needs_whole_word(self, make_session, engines):
        session = make_session()
        engine = await open_listening(session, engines)
        engine.emit_final("compromisso do tokio")
        await settle(0.01)
        assert session.status == SessionStatus.LISTENING


# =============================================================================
# Commands
# =============================================================================


@pytest.mark.asyncio
class TestCommands:

    async def test_navigation(self, make_session, engines, navigations):
        session = make_session()
        engine = await open_listening(session, engines)

        intent = await session.execute("ir para relatórios")

        assert intent.type == IntentType.NAVIGATE
        assert navigations == [("/reports", None)]
        assert not session.is_open
        assert session.status == SessionStatus.IDLE
        assert session.closes == [1]
        assert engine.aborted >= 1

    async def test_transaction_prefill(self, make_session, engines, navigations):
        session = make_session()
        await open_listening(session, engines)

        await session.execute("gastei 50 reais no mercado no pix")

        route, prefill = navigations[0]
        assert route == "/transactions"
        assert prefill.kind == IntentType.TRANSACTION
        assert prefill.open_form
        assert prefill.draft.amount == 50.0
        assert prefill.draft.category_id == "c-mercado"
        assert prefill.draft.payment_method_id == "pm-pix"
        assert prefill.draft.date == date(2026, 3, 18)
        assert not session.is_open

    async def test_custom_transaction_parser(self, make_session, engines, navigations):
        seen = []

        def parser(text, categories, payment_methods, suppliers):
            seen.append((text, len(categories), len(payment_methods), len(suppliers)))
            return TransactionDraft(
                type=TransactionType.EXPENSE, description="X", amount=1.0, date=date(2026, 1, 1)
            )

        session = make_session(transaction_parser=parser)
        await open_listening(session, engines)
        await session.execute("gastei 10 reais")

        assert seen == [("gastei 10 reais", 7, 3, 1)]
        assert navigations[0][1].draft.description == "X"

    async def test_commitment_prefill(self, make_session, engines, navigations):
        session = make_session()
        await open_listening(session, engines)

        await session.execute("criar compromisso luz 200 dia 10")

        route, prefill = navigations[0]
        assert route == "/commitments"
        assert prefill.kind == IntentType.COMMITMENT
        assert prefill.draft.description == "Luz"
        assert prefill.draft.amount == 200.0
        assert prefill.draft.due_date == date(2026, 4, 10)
        assert prefill.draft.category_id == "c-moradia"
        assert session.context.prefill is prefill

    async def test_navigation_speaks_confirmation(self, make_session, engines, synthesis):
        session = make_session()
        await open_listening(session, engines)

        await session.execute("ir para relatórios")

        assert [u.text for u in synthesis.spoken] == ["Ok"]
        assert synthesis.spoken[0].rate == 1.7
        assert not session.is_open

    async def test_commitment_speaks_confirmation(self, make_session, engines, synthesis):
        session = make_session()
        await open_listening(session, engines)

        await session.execute("criar compromisso luz 200 dia 10")

        assert [u.text for u in synthesis.spoken] == ["Ok"]

    async def test_transaction_has_no_confirmation(self, make_session, engines, synthesis):
        session = make_session()
        await open_listening(session, engines)

        await session.execute("gastei 50 reais no mercado no pix")

        assert synthesis.spoken == []

    async def test_empty_confirmation_is_silent(self, make_session, fast_config, engines, synthesis):
        fast_config.speech.confirmation = ""
        session = make_session()
        await open_listening(session, engines)

        await session.execute("ir para relatórios")

        assert synthesis.spoken == []

    async def test_confirmation_without_synthesis(self, make_session, engines, navigations):
        session = make_session(synthesis=None)
        await open_listening(session, engines)

        await session.execute("ir para relatórios")

        assert navigations == [("/reports", None)]
        assert not session.is_open

    async def test_help_is_spoken(self, make_session, engines, synthesis):
        session = make_session()
        await open_listening(session, engines)

        await session.execute("ajuda")
        await settle(0.01)

        assert session.context.answer == help_answer()
        assert [u.text for u in synthesis.spoken] == [help_answer()]

    async def test_unknown_goes_to_assistant(self, make_session, engines, synthesis, assistant):
        statuses = []
        session = make_session(on_change=lambda ctx: statuses.append(ctx.status))
        await open_listening(session, engines)

        await session.execute("qual a capital da frança")
        await settle(0.01)

        question, context = assistant.questions[0]
        assert question == "qual a capital da frança"
        assert isinstance(context, FinancialContext)
        assert context.pending_commitments == 4
        assert SessionStatus.AI_THINKING in statuses
        assert session.status == SessionStatus.QUERY_RESULT
        assert [u.text for u in synthesis.spoken] == [assistant.answer]

    async def test_handler_failure_reports_error(self, make_session, engines):
        def broken_snapshot():
            raise RuntimeError("store offline")

        session = make_session(snapshot_provider=broken_snapshot)
        await open_listening(session, engines)

        await session.execute("qual meu saldo")

        assert session.status == SessionStatus.ERROR
        assert session.context.error_message == ERROR_MESSAGES[ErrorReason.COMMAND_FAILED]
        assert session.is_open

    async def test_empty_command_ignored(self, make_session, engines):
        session = make_session()
        await open_listening(session, engines)
        assert await session.execute("   ") is None
        assert session.status == SessionStatus.LISTENING


# =============================================================================
# Speaking & closing
# =============================================================================


@pytest.mark.asyncio
class TestSpeech:

    async def test_closes_after_speech_ends(self, make_session, engines, synthesis):
        session = make_session()
        await open_listening(session, engines)

        await session.execute("qual meu saldo")
        await settle(0.01)
        utterance = synthesis.spoken[0]
        assert utterance.language == "pt-BR"
        assert utterance.rate == 1.7
        assert session.is_open

        synthesis.finish()
        await settle(0.03)

        assert not session.is_open
        assert session.closes == [1]

    async def test_fallback_closes_without_end_event(self, make_session, engines, synthesis):
        session = make_session()
        await open_listening(session, engines)

        await session.execute("qual meu saldo")
        await settle(0.1)
        assert session.is_open

        await settle(0.35)
        assert not session.is_open

    async def test_no_synthesis_shows_answer_then_closes(self, make_session, engines):
        session = make_session(synthesis=None)
        await open_listening(session, engines)

        await session.execute("qual meu saldo")
        assert session.status == SessionStatus.QUERY_RESULT
        assert session.context.answer == BALANCE_ANSWER

        await settle(0.05)
        assert not session.is_open

    async def test_late_assistant_reply_after_close(self, make_session, engines, synthesis):
        release = asyncio.Event()

        class SlowAssistant:
            async def ask(self, question, context=None):
                await release.wait()
                return "tarde demais"

        session = make_session(assistant=SlowAssistant())
        await open_listening(session, engines)

        task = asyncio.ensure_future(session.execute("qual a capital da frança"))
        await settle(0.01)
        assert session.status == SessionStatus.AI_THINKING

        session.close()
        release.set()
        await task
        await settle(0.01)

        assert synthesis.spoken == []
        assert session.status == SessionStatus.IDLE


# =============================================================================
# Lifecycle
# =============================================================================


@pytest.mark.asyncio
class TestLifecycle:

    async def test_close_is_idempotent(self, make_session, engines):
        session = make_session()
        engine = await open_listening(session, engines)

        session.close()
        session.close()

        assert session.closes == [1]
        assert engine.aborted == 1
        assert session.status == SessionStatus.IDLE
        assert session.context.is_processing

    async def test_close_before_open_is_noop(self, make_session):
        session = make_session()
        session.close()
        assert session.closes == []

    async def test_close_cancels_pending_work(self, make_session, engines, synthesis, navigations):
        session = make_session()
        engine = await open_listening(session, engines)

        engine.emit_final("qual meu saldo")
        session.close()
        await settle(0.1)

        assert synthesis.spoken == []
        assert session.scheduler.pending == []
        assert len(engines) == 1

    async def test_reopen_starts_fresh(self, make_session, engines):
        session = make_session()
        engine = await open_listening(session, engines)
        engine.emit_final("qual meu")
        first = session.context

        second = session.open()

        assert second is not first
        assert not first.is_open
        assert second.transcript == ""
        assert session.closes == [1]

    async def test_retry(self, make_session, engines):
        session = make_session()
        old_engine = await open_listening(session, engines)
        old_engine.emit_result(("quanto", False))
        old = session.context

        new = session.retry()
        await settle(0.01)

        assert new is not old
        assert not old.is_open
        assert old_engine.aborted >= 1
        assert len(engines) == 2
        assert new.interim_text == ""

        # The aborted engine's late events belong to the old context
        old_engine.emit_final("qual meu saldo")
        assert new.transcript == ""
        assert session.closes == []

    async def test_retry_when_closed(self, make_session):
        session = make_session()
        assert session.retry() is None

    async def test_session_id_bound_for_logging(self, make_session):
        session = make_session()

        ctx = session.open()
        assert structlog.contextvars.get_contextvars()[SESSION_KEY] == ctx.session_id

        new = session.retry()
        assert structlog.contextvars.get_contextvars()[SESSION_KEY] == new.session_id

        session.close()
        assert SESSION_KEY not in structlog.contextvars.get_contextvars()


# =============================================================================
# Recognition errors
# =============================================================================


@pytest.mark.asyncio
class TestRecognitionErrors:

    @pytest.mark.parametrize("code,reason", [
        ("not-allowed", ErrorReason.PERMISSION_DENIED),
        ("service-not-allowed", ErrorReason.PERMISSION_DENIED),
        ("network", ErrorReason.NETWORK),
    ])
    async def test_fatal_errors(self, make_session, engines, code, reason):
        session = make_session()
        engine = await open_listening(session, engines)

        engine.emit_error(code)
        engine.emit_end()
        await settle(0.05)

        assert session.status == SessionStatus.ERROR
        assert session.context.error_message == ERROR_MESSAGES[reason]
        assert len(engines) == 1

    async def test_no_speech_restarts(self, make_session, engines):
        session = make_session()
        engine = await open_listening(session, engines)

        engine.emit_error("no-speech")
        await settle(0.03)

        assert len(engines) == 2
        assert session.status == SessionStatus.LISTENING

    async def test_aborted_is_ignored(self, make_session, engines):
        session = make_session()
        engine = await open_listening(session, engines)

        engine.emit_error("aborted")
        await settle(0.03)

        assert len(engines) == 1
        assert session.status == SessionStatus.LISTENING

    async def test_transient_error_restarts(self, make_session, engines):
        session = make_session()
        engine = await open_listening(session, engines)

        engine.emit_error("audio-capture")
        await settle(0.03)

        assert len(engines) == 2
        assert session.status != SessionStatus.ERROR

    async def test_end_restarts_listening(self, make_session, engines):
        session = make_session()
        engine = await open_listening(session, engines)

        engine.emit_end()
        assert not session.context.is_listening
        await settle(0.03)

        assert len(engines) == 2
        assert engines[1].started

    async def test_stale_engine_events_ignored(self, make_session, engines):
        session = make_session()
        first = await open_listening(session, engines)
        first.emit_end()
        await settle(0.03)
        assert len(engines) == 2

        first.emit_final("qual meu saldo")
        first.emit_error("network")

        assert session.context.transcript == ""
        assert session.status == SessionStatus.LISTENING
