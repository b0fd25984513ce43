"""Remote assistant fallback for questions the rule cascade cannot answer.

Uses the Anthropic Messages API with a short Portuguese persona. Anything
that goes wrong (no API key, disabled in config, network failure, empty
reply) degrades to a local canned answer, so callers always get a sentence
they can speak.
"""

from __future__ import annotations

import logging
import os
import re

import anthropic

from fintrack.voice.assistant.context import describe_context
from fintrack.voice.assistant.local_answers import (
    CONNECTION_ERROR_ANSWER,
    EMPTY_RESPONSE_ANSWER,
    local_answer,
)
from fintrack.voice.config import AssistantConfig, load_voice_config
from fintrack.voice.models import FinancialContext

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """Você é o consultor financeiro do FinTrack.
Responda em Português Brasileiro, de forma executiva, perspicaz e útil.
Seu foco é a vida financeira do usuário e as seções do app: Dashboard, Lançamentos, Compromissos, Economia, Relatórios e Cadastros.
Para análises, use os dados reais do contexto.
Seja CONCISO: no máximo 3 frases curtas e diretas. Não use markdown."""

CONTEXT_INSTRUCTIONS = (
    "Responda de forma analítica e prestativa à pergunta: {question}. "
    "Se o usuário perguntar de saldo parado ou investimento, use o dado de "
    "'Capital parado' mencionado acima."
)

_MARKDOWN_RULES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\*\*(.+?)\*\*"), r"\1"),
    (re.compile(r"\*(.+?)\*"), r"\1"),
    (re.compile(r"`(.+?)`"), r"\1"),
    (re.compile(r"#{1,6}\s"), ""),
    (re.compile(r"[-*•]\s"), ""),
    (re.compile(r"\n{2,}"), ". "),
    (re.compile(r"\n"), " "),
]


def strip_markdown(text: str) -> str:
    """Flatten a reply into one speakable line."""
    for pattern, replacement in _MARKDOWN_RULES:
        text = pattern.sub(replacement, text)
    return text.strip()


def build_user_message(question: str, context: FinancialContext | None) -> str:
    if context is None:
        return question
    return f"{describe_context(context)}\n\n{CONTEXT_INSTRUCTIONS.format(question=question)}"


class AssistantFallback:
    """Answers free-form questions through the Anthropic API."""

    def __init__(
        self,
        config: AssistantConfig | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self.config = config or load_voice_config().assistant
        self._client = client

    @property
    def api_key(self) -> str | None:
        return os.environ.get(self.config.api_key_env) or None

    @property
    def is_configured(self) -> bool:
        return self.config.enabled and (self._client is not None or self.api_key is not None)

    def _get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self.api_key,
                timeout=self.config.timeout_seconds,
            )
        return self._client

    async def ask(self, question: str, context: FinancialContext | None = None) -> str:
        """Answer a question, falling back to local answers on any failure."""
        if not self.is_configured:
            logger.debug("Assistant not configured, answering locally")
            return local_answer(question)

        try:
            response = await self._get_client().messages.create(
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                system=SYSTEM_PROMPT,
                messages=[{"role": "user", "content": build_user_message(question, context)}],
            )
        except anthropic.APIConnectionError as e:
            logger.warning(f"Assistant unreachable: {e}")
            return CONNECTION_ERROR_ANSWER
        except Exception as e:
            logger.warning(f"Assistant call failed, answering locally: {e}")
            return local_answer(question)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            return EMPTY_RESPONSE_ANSWER
        return strip_markdown(text)


# Module-level singleton
_assistant: AssistantFallback | None = None


def get_assistant() -> AssistantFallback:
    """Get or create the shared assistant."""
    global _assistant
    if _assistant is None:
        _assistant = AssistantFallback()
    return _assistant
