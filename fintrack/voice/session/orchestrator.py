"""Voice session orchestrator.

Owns one live listen/execute/respond cycle:

    open() ──► recognition start ──► LISTENING
                   │  final fragment, confident intent
                   ▼
               debounce timer ──► execute() ──► navigate / prefill a form / speak an answer
                                                     │
                                                close() ◄──┘

All delayed work goes through a single TaskScheduler. Every callback
carries the SessionContext it was created for and checks it against the
live one before touching state, so nothing scheduled for a closed session
can bring it back.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Sequence
from datetime import date, datetime
from typing import Callable, Optional

from fintrack.logging_config import bind_voice_session, unbind_voice_session
from fintrack.voice.assistant.client import AssistantFallback
from fintrack.voice.assistant.context import build_financial_context
from fintrack.voice.config import VoiceConfig, load_voice_config
from fintrack.voice.models import Intent, IntentType, Prefill, TransactionDraft
from fintrack.voice.parser.commitment_extractor import extract_commitment
from fintrack.voice.parser.intent_parser import (
    COMMITMENTS_ROUTE,
    TRANSACTIONS_ROUTE,
    classify,
    help_answer,
)
from fintrack.voice.parser.transaction_parser import parse_transaction
from fintrack.voice.queries.resolver import resolve_query
from fintrack.voice.recognition.base import (
    EngineFactory,
    RecognitionEngine,
    RecognitionErrorCode,
    RecognitionFragment,
    RecognitionHandler,
    SynthesisEngine,
    Utterance,
    pick_voice,
)
from fintrack.voice.recognition.web_speech_config import WebSpeechConfig
from fintrack.voice.session.scheduler import TaskScheduler
from fintrack.voice.session.state import (
    ERROR_MESSAGES,
    ErrorReason,
    SessionContext,
    SessionStatus,
)
from fintrack.voice.snapshot import Category, FinancialSnapshot, PaymentMethod, Supplier

logger = logging.getLogger(__name__)

# Timer names
START = "recognition_start"
RESTART = "recognition_restart"
DEBOUNCE = "debounce"
INACTIVITY = "inactivity"
GREETING = "greeting"
SPEAK = "speak"
SPEECH_FALLBACK = "speech_fallback"
CLOSE = "close"
EXECUTE = "execute"

FATAL_ERRORS: dict[RecognitionErrorCode, ErrorReason] = {
    RecognitionErrorCode.NOT_ALLOWED: ErrorReason.PERMISSION_DENIED,
    RecognitionErrorCode.SERVICE_NOT_ALLOWED: ErrorReason.PERMISSION_DENIED,
    RecognitionErrorCode.NETWORK: ErrorReason.NETWORK,
}

NavigationSink = Callable[[str, Optional[Prefill]], None]
SnapshotProvider = Callable[[], FinancialSnapshot]
TransactionParser = Callable[
    [str, Sequence[Category], Sequence[PaymentMethod], Sequence[Supplier]],
    TransactionDraft,
]
IntentHandler = Callable[[SessionContext, Intent], Awaitable[None]]


class _EngineEvents(RecognitionHandler):
    """Forwards one engine's events, tagged with the session and engine they belong to."""

    def __init__(self, session: VoiceSession, ctx: SessionContext, engine: RecognitionEngine):
        self._session = session
        self._ctx = ctx
        self._engine = engine

    def on_start(self) -> None:
        self._session._on_engine_start(self._ctx, self._engine)

    def on_result(self, fragments: Sequence[RecognitionFragment]) -> None:
        self._session._on_engine_result(self._ctx, self._engine, fragments)

    def on_error(self, code: RecognitionErrorCode | str) -> None:
        self._session._on_engine_error(self._ctx, self._engine, RecognitionErrorCode.parse(code))

    def on_end(self) -> None:
        self._session._on_engine_end(self._ctx, self._engine)


class VoiceSession:
    """The voice assistant state machine.

    Args:
        navigate: Performs screen transitions (path, optional form prefill)
        snapshot_provider: Returns the current financial data, called per command
        engine_factory: Creates a recognition engine, or None if unsupported
        synthesis: Text-to-speech engine, None when the platform has none
        assistant: Remote fallback for questions the rules cannot answer
        transaction_parser: Builds transaction drafts (defaults to parse_transaction)
        config: Voice settings (defaults to args/voice.yaml)
        on_close: Called once each time an open session closes
        on_change: Called with the context after every state change
        clock: Source of "now" for dates in drafts and answers
    """

    def __init__(
        self,
        navigate: NavigationSink,
        snapshot_provider: SnapshotProvider,
        engine_factory: EngineFactory,
        synthesis: SynthesisEngine | None = None,
        assistant: AssistantFallback | None = None,
        transaction_parser: TransactionParser | None = None,
        config: VoiceConfig | None = None,
        on_close: Callable[[], None] | None = None,
        on_change: Callable[[SessionContext], None] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.config = config or load_voice_config()
        self._navigate = navigate
        self._snapshot_provider = snapshot_provider
        self._engine_factory = engine_factory
        self._synthesis = synthesis
        self._assistant = assistant or AssistantFallback(self.config.assistant)
        self._transaction_parser = transaction_parser or self._parse_transaction
        self._on_close = on_close
        self._on_change = on_change
        self._clock = clock

        self._scheduler = TaskScheduler()
        self._session: SessionContext | None = None
        self._web_speech = WebSpeechConfig.from_config(self.config.recognition)
        self._confirm_word = re.compile(
            r"\b(?:" + "|".join(re.escape(w) for w in self.config.execution.confirm_words) + r")\b",
            re.IGNORECASE,
        ) if self.config.execution.confirm_words else None

        self._handlers: dict[IntentType, IntentHandler] = {
            IntentType.NAVIGATE: self._handle_navigate,
            IntentType.TRANSACTION: self._handle_transaction,
            IntentType.COMMITMENT: self._handle_commitment,
            IntentType.QUERY: self._handle_query,
            IntentType.HELP: self._handle_help,
            IntentType.UNKNOWN: self._handle_unknown,
        }
        missing = set(IntentType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler for intents: {sorted(m.value for m in missing)}")

    # =========================================================================
    # Public API
    # =========================================================================

    @property
    def context(self) -> SessionContext | None:
        return self._session

    @property
    def status(self) -> SessionStatus:
        return self._session.status if self._session else SessionStatus.IDLE

    @property
    def is_open(self) -> bool:
        return self._session is not None and self._session.is_open

    @property
    def scheduler(self) -> TaskScheduler:
        return self._scheduler

    def open(self) -> SessionContext:
        """Open a fresh session and start listening shortly after.

        Must be called from inside the running event loop.
        """
        if self.is_open:
            self.close()

        ctx = SessionContext(is_open=True)
        self._session = ctx
        bind_voice_session(ctx.session_id)
        logger.info(f"Voice session {ctx.session_id} opened")

        if self._synthesis is not None and self.config.speech.greet_on_open:
            self._scheduler.schedule(
                GREETING, self.config.speech.speak_delay_seconds, self._speak_greeting, ctx
            )
        timeout = self.config.execution.inactivity_timeout_seconds
        if timeout:
            self._scheduler.schedule(INACTIVITY, timeout, self._on_inactivity, ctx)
        self._scheduler.schedule(
            START, self.config.recognition.start_delay_seconds, self._start_recognition, ctx
        )
        self._notify(ctx)
        return ctx

    async def execute(self, text: str | None = None) -> Intent | None:
        """Run a command now (manual trigger). Defaults to the current transcript."""
        ctx = self._session
        if ctx is None:
            return None
        self._scheduler.cancel(DEBOUNCE)
        return await self._execute(ctx, ctx.transcript if text is None else text)

    def retry(self) -> SessionContext | None:
        """Drop the current command and listen again from scratch."""
        old = self._session
        if old is None or not old.is_open:
            return None

        self._stop_all(old)
        old.is_open = False
        ctx = SessionContext(is_open=True)
        self._session = ctx
        logger.info(f"Voice session {old.session_id} restarted as {ctx.session_id}")
        bind_voice_session(ctx.session_id)

        self._scheduler.schedule(
            START, self.config.recognition.retry_delay_seconds, self._start_recognition, ctx
        )
        self._notify(ctx)
        return ctx

    def close(self) -> None:
        """Close the session. Safe to call repeatedly."""
        ctx = self._session
        if ctx is None or not ctx.is_open:
            return

        ctx.is_processing = True
        ctx.is_open = False
        self._stop_all(ctx)
        ctx.status = SessionStatus.IDLE
        logger.info(f"Voice session {ctx.session_id} closed")
        unbind_voice_session()

        self._notify(ctx)
        if self._on_close:
            try:
                self._on_close()
            except Exception:
                logger.exception("on_close callback failed")

    # =========================================================================
    # Guards & helpers
    # =========================================================================

    def _is_live(self, ctx: SessionContext) -> bool:
        return ctx is self._session and ctx.is_open

    def _accepts_input(self, ctx: SessionContext) -> bool:
        return self._is_live(ctx) and not ctx.is_processing

    def _is_current_engine(self, ctx: SessionContext, engine: RecognitionEngine) -> bool:
        return self._is_live(ctx) and ctx.engine is engine

    def _notify(self, ctx: SessionContext) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(ctx)
        except Exception:
            logger.exception("on_change callback failed")

    def _today(self) -> date:
        return self._clock().date()

    def _abort_engine(self, ctx: SessionContext) -> None:
        engine, ctx.engine = ctx.engine, None
        ctx.is_listening = False
        if engine is None:
            return
        try:
            engine.abort()
        except Exception as e:
            logger.debug(f"Engine abort raised: {e}")

    def _cancel_speech(self) -> None:
        if self._synthesis is None:
            return
        try:
            self._synthesis.cancel()
        except Exception as e:
            logger.debug(f"Synthesis cancel raised: {e}")

    def _stop_all(self, ctx: SessionContext) -> None:
        self._scheduler.cancel_all()
        self._abort_engine(ctx)
        self._cancel_speech()

    def _fail(self, ctx: SessionContext, reason: ErrorReason) -> None:
        self._scheduler.cancel(DEBOUNCE)
        self._scheduler.cancel(RESTART)
        self._abort_engine(ctx)
        ctx.status = SessionStatus.ERROR
        ctx.error_message = ERROR_MESSAGES[reason]
        logger.warning(f"Voice session {ctx.session_id} error: {reason.value}")
        self._notify(ctx)

    def _utterance(self, text: str) -> Utterance:
        speech = self.config.speech
        voices = self._synthesis.voices() if self._synthesis else []
        return Utterance(
            text=text,
            language=speech.language,
            rate=speech.rate,
            pitch=speech.pitch,
            voice=pick_voice(voices, speech.preferred_voices),
        )

    # =========================================================================
    # Recognition
    # =========================================================================

    def _start_recognition(self, ctx: SessionContext) -> None:
        if not self._accepts_input(ctx):
            return

        self._abort_engine(ctx)
        engine = self._engine_factory()
        if engine is None:
            self._fail(ctx, ErrorReason.UNSUPPORTED)
            return

        ctx.engine = engine
        try:
            engine.start(self._web_speech, _EngineEvents(self, ctx, engine))
        except Exception as e:
            logger.warning(f"Recognition engine failed to start: {e}")
            self._fail(ctx, ErrorReason.START_FAILED)

    def _schedule_restart(self, ctx: SessionContext, delay: float) -> None:
        if not ctx.is_processing:
            self._scheduler.schedule(RESTART, delay, self._start_recognition, ctx)

    def _on_engine_start(self, ctx: SessionContext, engine: RecognitionEngine) -> None:
        if not self._is_current_engine(ctx, engine):
            return
        ctx.is_listening = True
        ctx.status = SessionStatus.LISTENING
        ctx.error_message = ""
        self._notify(ctx)

    def _on_engine_result(
        self,
        ctx: SessionContext,
        engine: RecognitionEngine,
        fragments: Sequence[RecognitionFragment],
    ) -> None:
        if not self._is_current_engine(ctx, engine) or ctx.is_processing:
            return

        final = " ".join(f.transcript.strip() for f in fragments if f.is_final and f.transcript.strip())
        interim = "".join(f.transcript for f in fragments if not f.is_final).strip()
        ctx.interim_text = interim

        # Any speech means the user is still talking
        self._scheduler.cancel(INACTIVITY)
        self._scheduler.cancel(DEBOUNCE)

        if final:
            ctx.transcript = final
        self._update_badge(ctx)
        self._notify(ctx)

        if not final:
            return
        logger.debug(f"Final transcript: {final!r}")

        if self._confirm_word and self._confirm_word.search(final):
            command = self._confirm_word.sub("", final)
            self._scheduler.spawn(EXECUTE, self._execute(ctx, " ".join(command.split())))
            return

        intent = classify(final)
        execution = self.config.execution
        if intent.type != IntentType.UNKNOWN and intent.confidence >= execution.auto_execute_threshold:
            self._scheduler.schedule(DEBOUNCE, execution.debounce_seconds, self._on_debounce, ctx)

    def _update_badge(self, ctx: SessionContext) -> None:
        text = ctx.transcript or ctx.interim_text
        if len(text) <= self.config.execution.badge_min_chars:
            ctx.intent = None
            return
        detected = classify(text)
        if detected.confidence > self.config.execution.badge_threshold:
            ctx.intent = detected

    def _on_engine_error(
        self,
        ctx: SessionContext,
        engine: RecognitionEngine,
        code: RecognitionErrorCode,
    ) -> None:
        if not self._is_current_engine(ctx, engine):
            return

        if code == RecognitionErrorCode.ABORTED:
            return
        if code == RecognitionErrorCode.NO_SPEECH:
            self._schedule_restart(ctx, self.config.recognition.restart_delay_seconds)
            return

        reason = FATAL_ERRORS.get(code)
        if reason is not None:
            ctx.is_listening = False
            self._fail(ctx, reason)
            return

        logger.debug(f"Recognition error {code.value}, restarting")
        self._schedule_restart(ctx, self.config.recognition.error_restart_delay_seconds)

    def _on_engine_end(self, ctx: SessionContext, engine: RecognitionEngine) -> None:
        if not self._is_current_engine(ctx, engine):
            return
        ctx.is_listening = False
        if ctx.status != SessionStatus.ERROR:
            self._schedule_restart(ctx, self.config.recognition.restart_delay_seconds)
        self._notify(ctx)

    async def _on_debounce(self, ctx: SessionContext) -> None:
        if self._accepts_input(ctx) and ctx.transcript:
            await self._execute(ctx, ctx.transcript)

    def _on_inactivity(self, ctx: SessionContext) -> None:
        if self._accepts_input(ctx) and not ctx.transcript and not ctx.interim_text:
            logger.info(f"Voice session {ctx.session_id} closed after inactivity")
            self.close()

    # =========================================================================
    # Execution
    # =========================================================================

    async def _execute(self, ctx: SessionContext, text: str) -> Intent | None:
        text = text.strip()
        if not text or not self._accepts_input(ctx):
            return None

        ctx.is_processing = True
        ctx.status = SessionStatus.PROCESSING
        for name in (DEBOUNCE, INACTIVITY, RESTART):
            self._scheduler.cancel(name)
        self._abort_engine(ctx)
        self._cancel_speech()

        intent = classify(text)
        ctx.intent = intent
        self._notify(ctx)
        logger.info(f"Executing {intent.type.value} command (confidence {intent.confidence})")

        try:
            await self._handlers[intent.type](ctx, intent)
        except Exception:
            logger.exception(f"Voice command {intent.type.value} failed")
            if self._is_live(ctx):
                ctx.is_processing = False
                self._fail(ctx, ErrorReason.COMMAND_FAILED)
        return intent

    def _hand_off(
        self,
        ctx: SessionContext,
        route: str,
        prefill: Prefill | None = None,
        confirm: bool = False,
    ) -> None:
        ctx.prefill = prefill
        self._navigate(route, prefill)
        self.close()
        # Spoken after close, which cancels any speech in progress
        if confirm:
            self._speak_confirmation()

    async def _handle_navigate(self, ctx: SessionContext, intent: Intent) -> None:
        if intent.route:
            self._hand_off(ctx, intent.route, confirm=True)
            return
        # Still ambiguous: keep listening
        ctx.is_processing = False
        self._start_recognition(ctx)

    def _parse_transaction(
        self,
        text: str,
        categories: Sequence[Category],
        payment_methods: Sequence[PaymentMethod],
        suppliers: Sequence[Supplier],
    ) -> TransactionDraft:
        return parse_transaction(text, categories, payment_methods, suppliers, today=self._today())

    async def _handle_transaction(self, ctx: SessionContext, intent: Intent) -> None:
        snapshot = self._snapshot_provider()
        draft = self._transaction_parser(
            intent.raw_text, snapshot.categories, snapshot.payment_methods, snapshot.suppliers
        )
        self._hand_off(ctx, TRANSACTIONS_ROUTE, Prefill(kind=IntentType.TRANSACTION, draft=draft))

    async def _handle_commitment(self, ctx: SessionContext, intent: Intent) -> None:
        snapshot = self._snapshot_provider()
        draft = extract_commitment(intent.raw_text, snapshot.categories, today=self._today())
        self._hand_off(
            ctx, COMMITMENTS_ROUTE, Prefill(kind=IntentType.COMMITMENT, draft=draft), confirm=True
        )

    async def _handle_query(self, ctx: SessionContext, intent: Intent) -> None:
        if intent.query_key is None:
            await self._ask_assistant(ctx, intent)
            return
        answer = resolve_query(intent.query_key, self._snapshot_provider(), now=self._clock())
        self._speak_and_close(ctx, answer)

    async def _handle_help(self, ctx: SessionContext, intent: Intent) -> None:
        self._speak_and_close(ctx, help_answer())

    async def _handle_unknown(self, ctx: SessionContext, intent: Intent) -> None:
        await self._ask_assistant(ctx, intent)

    async def _ask_assistant(self, ctx: SessionContext, intent: Intent) -> None:
        ctx.status = SessionStatus.AI_THINKING
        self._notify(ctx)

        context = build_financial_context(
            self._snapshot_provider(),
            today=self._today(),
            window_days=self.config.assistant.upcoming_window_days,
        )
        answer = await self._assistant.ask(intent.raw_text, context)
        if not self._is_live(ctx):
            return
        self._speak_and_close(ctx, answer)

    # =========================================================================
    # Speech
    # =========================================================================

    def _speak_greeting(self, ctx: SessionContext) -> None:
        if not self._is_live(ctx) or self._synthesis is None:
            return
        self._cancel_speech()
        try:
            self._synthesis.speak(self._utterance(self.config.speech.greeting), lambda: None)
        except Exception as e:
            logger.debug(f"Greeting failed: {e}")

    def _speak_confirmation(self) -> None:
        text = self.config.speech.confirmation
        if self._synthesis is None or not text:
            return
        try:
            self._synthesis.speak(self._utterance(text), lambda: None)
        except Exception as e:
            logger.debug(f"Confirmation failed: {e}")

    def _speak_and_close(self, ctx: SessionContext, answer: str) -> None:
        ctx.answer = answer
        ctx.status = SessionStatus.QUERY_RESULT
        self._notify(ctx)

        if self._synthesis is None:
            self._scheduler.schedule(
                CLOSE, self.config.speech.no_synthesis_close_seconds, self._close_if_live, ctx
            )
            return
        self._scheduler.schedule(
            SPEAK, self.config.speech.speak_delay_seconds, self._speak_answer, ctx, answer
        )

    def _speak_answer(self, ctx: SessionContext, answer: str) -> None:
        if not self._is_live(ctx) or self._synthesis is None:
            return
        speech = self.config.speech
        self._cancel_speech()

        # Force-close even if the platform never reports the end of speech
        words = len(answer.split(" "))
        fallback = max(speech.fallback_min_seconds, words * speech.fallback_seconds_per_word)
        self._scheduler.schedule(
            SPEECH_FALLBACK, fallback + speech.fallback_grace_seconds, self._close_if_live, ctx
        )
        try:
            self._synthesis.speak(self._utterance(answer), lambda: self._on_speech_end(ctx))
        except Exception as e:
            logger.warning(f"Speech synthesis failed: {e}")

    def _on_speech_end(self, ctx: SessionContext) -> None:
        if not self._is_live(ctx):
            return
        self._scheduler.cancel(SPEECH_FALLBACK)
        self._scheduler.schedule(
            CLOSE, self.config.speech.close_after_speech_seconds, self._close_if_live, ctx
        )

    def _close_if_live(self, ctx: SessionContext) -> None:
        if self._is_live(ctx):
            self.close()
