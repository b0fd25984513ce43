"""Canned answers used when the remote assistant is unavailable."""

from __future__ import annotations

import re

from fintrack.voice.parser.normalizer import normalize

GREETING_ANSWER = (
    "Olá! Sou o Especialista IA do FinTrack. Posso te ajudar a navegar pelo app "
    "ou analisar seus gastos. O que deseja fazer?"
)
USAGE_ANSWER = (
    "Você pode registrar gastos por voz, ver relatórios ou gerenciar seus compromissos. "
    'Diga algo como "Lançamentos" para navegar.'
)
DEFAULT_ANSWER = (
    "Como assistente do FinTrack, sou focado em suas finanças e no uso deste aplicativo. "
    "Posso te ajudar com alguma tela ou dado financeiro?"
)
EMPTY_RESPONSE_ANSWER = "Estou à disposição para ajudar com suas finanças no FinTrack. Como posso ser útil?"
CONNECTION_ERROR_ANSWER = (
    "Para dúvidas sobre o sistema, verifique sua conexão ou tente novamente em instantes."
)

_GREETING = re.compile(r"\boi\b|\bola\b|bom dia|boa tarde|boa noite")
_USAGE = re.compile(r"como.*usar|ajuda|funciona")
_ARITHMETIC = re.compile(r"(\d+(?:\.\d+)?)\s*([+\-*/])\s*(\d+(?:\.\d+)?)")


def _number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _arithmetic(text: str) -> str | None:
    match = _ARITHMETIC.search(text)
    if not match:
        return None
    a, op, b = float(match.group(1)), match.group(2), float(match.group(3))
    if op == "+":
        result = a + b
    elif op == "-":
        result = a - b
    elif op == "*":
        result = a * b
    elif b != 0:
        result = a / b
    else:
        return None
    return f"O resultado da conta é {_number(result)}."


def local_answer(question: str) -> str:
    """Best canned answer for a question, never empty."""
    text = normalize(question)

    if _GREETING.search(text):
        return GREETING_ANSWER
    if _USAGE.search(text):
        return USAGE_ANSWER

    result = _arithmetic(text)
    if result:
        return result

    return DEFAULT_ANSWER
