"""Shared test fixtures for FinTrack voice tests.

This module provides common fixtures used across all test modules:
- A fixed reference date and a realistic financial snapshot
- Deterministic fakes for the recognition and synthesis engines
- A voice session wired to those fakes with near-zero delays

Usage:
    async def test_something(make_session, engines):
        session = make_session()
        session.open()
        ...
"""

import asyncio
from collections.abc import Sequence
from datetime import date, datetime
from pathlib import Path
from typing import Callable

import pytest

from fintrack.voice.config import (
    AssistantConfig,
    ExecutionConfig,
    RecognitionConfig,
    SpeechConfig,
    VoiceConfig,
)
from fintrack.voice.recognition.base import (
    RecognitionEngine,
    RecognitionFragment,
    RecognitionHandler,
    SynthesisEngine,
    Utterance,
)
from fintrack.voice.session.orchestrator import VoiceSession
from fintrack.voice.snapshot import FinancialSnapshot


# ─────────────────────────────────────────────────────────────────────────────
# Path Constants
# ─────────────────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_FILE = PROJECT_ROOT / "args" / "voice.yaml"

# Wednesday; the week runs from Monday 16 to Sunday 22 of March 2026
TODAY = date(2026, 3, 18)
NOW = datetime(2026, 3, 18, 10, 30)


# ─────────────────────────────────────────────────────────────────────────────
# Date Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def now() -> datetime:
    return NOW


# ─────────────────────────────────────────────────────────────────────────────
# Snapshot Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def snapshot_data() -> dict:
    """Snapshot in the data store's camelCase JSON shape."""
    return {
        "categories": [
            {"id": "c-moradia", "name": "Moradia", "type": "EXPENSE"},
            {"id": "c-mercado", "name": "Mercado", "type": "EXPENSE"},
            {"id": "c-salario", "name": "Salário", "type": "INCOME"},
            {"id": "c-lazer", "name": "Lazer", "type": "EXPENSE"},
            {"id": "c-extras", "name": "Extras", "type": "EXPENSE"},
            {"id": "c-transporte", "name": "Transporte", "type": "BOTH"},
            {"id": "c-saude", "name": "Saúde", "type": "EXPENSE"},
        ],
        "paymentMethods": [
            {"id": "pm-dinheiro", "name": "Dinheiro"},
            {"id": "pm-pix", "name": "Pix"},
            {"id": "pm-credito", "name": "Cartão de Crédito"},
        ],
        "suppliers": [
            {"id": "s-padaria", "name": "Padaria Central"},
        ],
        "transactions": [
            {"id": "t1", "type": "INCOME", "date": "2026-03-05", "amount": 5000,
             "description": "Salário", "categoryId": "c-salario", "createdAt": 1},
            {"id": "t2", "type": "EXPENSE", "date": "2026-03-10", "amount": 250.5,
             "description": "Supermercado", "categoryId": "c-mercado", "createdAt": 2},
            {"id": "t3", "type": "EXPENSE", "date": "2026-03-17T19:00:00", "amount": 80,
             "description": "Cinema", "categoryId": "c-lazer", "createdAt": 4},
            {"id": "t4", "type": "EXPENSE", "date": "2026-02-12", "amount": 300,
             "description": "Mercado fevereiro", "categoryId": "c-mercado", "createdAt": 3},
        ],
        "commitments": [
            {"id": "k1", "description": "Luz", "dueDate": "2026-03-18", "amount": 180, "status": "PENDING"},
            {"id": "k2", "description": "Internet", "dueDate": "2026-03-10", "amount": 120, "status": "PENDING"},
            {"id": "k3", "description": "Aluguel", "dueDate": "2026-03-20", "amount": 1500, "status": "PENDING"},
            {"id": "k4", "description": "Academia", "dueDate": "2026-03-05", "amount": 90, "status": "PAID"},
            {"id": "k5", "description": "IPVA", "dueDate": "2026-04-10", "amount": 900, "status": "PENDING"},
        ],
        "savingsGoals": [
            {"id": "g1", "description": "Viagem", "targetAmount": 10000, "currentAmount": 2500},
            {"id": "g2", "description": "Reserva", "targetAmount": 6000, "currentAmount": 3000},
        ],
        "budgets": [
            {"id": "b1", "categoryId": "c-mercado", "limitAmount": 200, "alertPercent": 80},
            {"id": "b2", "categoryId": "c-lazer", "limitAmount": 100, "alertPercent": 80},
            {"id": "b3", "categoryId": "c-moradia", "limitAmount": 2000, "alertPercent": 80},
            {"id": "b4", "categoryId": "c-saude", "limitAmount": 300, "alertPercent": 80},
        ],
    }


@pytest.fixture
def snapshot(snapshot_data: dict) -> FinancialSnapshot:
    return FinancialSnapshot.model_validate(snapshot_data)


@pytest.fixture
def empty_snapshot() -> FinancialSnapshot:
    return FinancialSnapshot()


@pytest.fixture
def categories(snapshot: FinancialSnapshot) -> list:
    return snapshot.categories


@pytest.fixture
def payment_methods(snapshot: FinancialSnapshot) -> list:
    return snapshot.payment_methods


# ─────────────────────────────────────────────────────────────────────────────
# Engine Fakes
# ─────────────────────────────────────────────────────────────────────────────


class FakeRecognitionEngine(RecognitionEngine):
    """Records calls and lets tests emit scripted events."""

    def __init__(self, fail_on_start: bool = False):
        self.fail_on_start = fail_on_start
        self.handler: RecognitionHandler | None = None
        self.config = None
        self.started = False
        self.aborted = 0

    def start(self, config, handler: RecognitionHandler) -> None:
        if self.fail_on_start:
            raise RuntimeError("microphone busy")
        self.config = config
        self.handler = handler
        self.started = True

    def abort(self) -> None:
        self.aborted += 1

    # Scripted events

    def emit_start(self) -> None:
        self.handler.on_start()

    def emit_result(self, *fragments: tuple[str, bool]) -> None:
        self.handler.on_result([RecognitionFragment(text, is_final) for text, is_final in fragments])

    def emit_final(self, text: str) -> None:
        self.emit_result((text, True))

    def emit_error(self, code: str) -> None:
        self.handler.on_error(code)

    def emit_end(self) -> None:
        self.handler.on_end()


class FakeSynthesis(SynthesisEngine):
    """Speech engine that finishes only when told to (or immediately with auto_finish)."""

    def __init__(self, auto_finish: bool = False, voices: Sequence[str] = ()):
        self.auto_finish = auto_finish
        self.spoken: list[Utterance] = []
        self.cancelled = 0
        self._voices = list(voices)
        self._on_end: Callable[[], None] | None = None

    def speak(self, utterance: Utterance, on_end: Callable[[], None]) -> None:
        self.spoken.append(utterance)
        self._on_end = on_end
        if self.auto_finish:
            on_end()

    def cancel(self) -> None:
        self.cancelled += 1

    def voices(self) -> list[str]:
        return self._voices

    def finish(self) -> None:
        if self._on_end:
            self._on_end()


class FakeAssistant:
    """Stands in for AssistantFallback; records questions."""

    def __init__(self, answer: str = "Resposta do assistente."):
        self.answer = answer
        self.questions: list[tuple[str, object]] = []

    async def ask(self, question, context=None) -> str:
        self.questions.append((question, context))
        await asyncio.sleep(0)
        return self.answer


@pytest.fixture
def engines() -> list:
    """Every engine the session has created, oldest first."""
    return []


@pytest.fixture
def engine_factory(engines: list) -> Callable[[], FakeRecognitionEngine]:
    def factory() -> FakeRecognitionEngine:
        engine = FakeRecognitionEngine()
        engines.append(engine)
        return engine
    return factory


@pytest.fixture
def synthesis() -> FakeSynthesis:
    return FakeSynthesis()


@pytest.fixture
def assistant() -> FakeAssistant:
    return FakeAssistant()


# ─────────────────────────────────────────────────────────────────────────────
# Session Fixtures
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def fast_config() -> VoiceConfig:
    """Voice settings with delays short enough for tests."""
    return VoiceConfig(
        recognition=RecognitionConfig(
            start_delay_seconds=0,
            restart_delay_seconds=0.01,
            error_restart_delay_seconds=0.01,
            retry_delay_seconds=0,
        ),
        execution=ExecutionConfig(
            debounce_seconds=0.05,
            inactivity_timeout_seconds=None,
        ),
        speech=SpeechConfig(
            greet_on_open=False,
            speak_delay_seconds=0,
            close_after_speech_seconds=0.01,
            no_synthesis_close_seconds=0.02,
            fallback_min_seconds=0.3,
            fallback_seconds_per_word=0,
            fallback_grace_seconds=0.01,
        ),
        assistant=AssistantConfig(enabled=False),
    )


@pytest.fixture
def navigations() -> list:
    """(route, prefill) pairs handed to the navigation sink."""
    return []


@pytest.fixture
def make_session(
    fast_config: VoiceConfig,
    engine_factory,
    synthesis: FakeSynthesis,
    assistant: FakeAssistant,
    snapshot: FinancialSnapshot,
    navigations: list,
):
    """Build a VoiceSession wired to fakes; keyword overrides replace any collaborator."""
    closes: list[int] = []

    def build(**overrides) -> VoiceSession:
        kwargs = {
            "navigate": lambda route, prefill: navigations.append((route, prefill)),
            "snapshot_provider": lambda: snapshot,
            "engine_factory": engine_factory,
            "synthesis": synthesis,
            "assistant": assistant,
            "config": fast_config,
            "on_close": lambda: closes.append(1),
            "clock": lambda: NOW,
        }
        kwargs.update(overrides)
        session = VoiceSession(**kwargs)
        session.closes = closes
        return session

    return build


async def settle(seconds: float = 0.0) -> None:
    """Let scheduled callbacks run."""
    await asyncio.sleep(seconds)
    await asyncio.sleep(0)
