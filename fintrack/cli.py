#!/usr/bin/env python3
"""
FinTrack voice command line interface

Runs the voice parsers against typed text, which is handy for checking how a
phrase will be understood without a microphone.

Usage:
    fintrack classify "tenho contas vencidas?"
    fintrack commitment "criar compromisso luz 200 dia 10" --snapshot data.json
    fintrack transaction "gastei 50 reais no mercado no pix" --snapshot data.json
    fintrack query balance_month --snapshot data.json
    fintrack ask "quanto devo investir?" --snapshot data.json
    fintrack --version
"""

import argparse
import asyncio
import json
import sys
from datetime import date, datetime
from pathlib import Path

from fintrack.logging_config import get_logger, setup_logging
from fintrack.voice.models import QueryKey
from fintrack.voice.snapshot import FinancialSnapshot

log = get_logger(__name__)


def _print(data):
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _today(args) -> date:
    return date.fromisoformat(args.today) if args.today else date.today()


def load_snapshot(path: str | None) -> FinancialSnapshot:
    """Read a snapshot JSON file (the data store's camelCase export)."""
    if not path:
        return FinancialSnapshot()
    with open(Path(path), encoding="utf-8") as f:
        return FinancialSnapshot.model_validate(json.load(f))


def cmd_classify(args):
    """Classify text into an intent."""
    from fintrack.voice.parser.intent_parser import classify

    _print(classify(args.text).to_dict())


def cmd_commitment(args):
    """Extract a commitment draft."""
    from fintrack.voice.parser.commitment_extractor import extract_commitment

    snapshot = load_snapshot(args.snapshot)
    draft = extract_commitment(args.text, snapshot.categories, today=_today(args))
    _print(draft.to_dict())


def cmd_transaction(args):
    """Parse a transaction draft."""
    from fintrack.voice.parser.transaction_parser import parse_transaction

    snapshot = load_snapshot(args.snapshot)
    draft = parse_transaction(
        args.text,
        snapshot.categories,
        snapshot.payment_methods,
        snapshot.suppliers,
        today=_today(args),
    )
    _print(draft.to_dict())


def cmd_query(args):
    """Answer a canned question."""
    from fintrack.voice.queries.resolver import resolve_query

    snapshot = load_snapshot(args.snapshot)
    now = datetime.combine(_today(args), datetime.now().time())
    _print({"query_key": args.key, "answer": resolve_query(args.key, snapshot, now=now)})


def cmd_ask(args):
    """Ask the assistant fallback a free-form question."""
    from fintrack.voice.assistant.client import get_assistant
    from fintrack.voice.assistant.context import build_financial_context

    snapshot = load_snapshot(args.snapshot)
    assistant = get_assistant()
    context = build_financial_context(
        snapshot,
        today=_today(args),
        window_days=assistant.config.upcoming_window_days,
    )
    answer = asyncio.run(assistant.ask(args.question, context))
    _print({"answer": answer, "remote": assistant.is_configured, "context": context.to_dict()})


def cmd_version(args):
    from fintrack import __version__

    print(f"fintrack {__version__}")


def _add_snapshot_args(parser):
    parser.add_argument(
        "--snapshot", default=None, help="Path to a financial snapshot JSON file"
    )
    parser.add_argument(
        "--today", default=None, help="Reference date as YYYY-MM-DD (default: today)"
    )


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="fintrack",
        description="FinTrack - voice command tools",
    )
    parser.add_argument(
        "--version", "-V", action="store_true", help="Show version and exit"
    )
    parser.add_argument(
        "--log-level", default=None, help="Log level (default: FINTRACK_LOG_LEVEL or WARNING)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # classify
    classify_parser = subparsers.add_parser("classify", help="Classify text into an intent")
    classify_parser.add_argument("text", help="Transcript to classify")
    classify_parser.set_defaults(func=cmd_classify)

    # commitment
    commitment_parser = subparsers.add_parser(
        "commitment", help="Extract a commitment draft from text"
    )
    commitment_parser.add_argument("text", help="Transcript")
    _add_snapshot_args(commitment_parser)
    commitment_parser.set_defaults(func=cmd_commitment)

    # transaction
    transaction_parser = subparsers.add_parser(
        "transaction", help="Parse a transaction draft from text"
    )
    transaction_parser.add_argument("text", help="Transcript")
    _add_snapshot_args(transaction_parser)
    transaction_parser.set_defaults(func=cmd_transaction)

    # query
    query_parser = subparsers.add_parser("query", help="Answer a canned financial question")
    query_parser.add_argument(
        "key", choices=[key.value for key in QueryKey], help="Query key"
    )
    _add_snapshot_args(query_parser)
    query_parser.set_defaults(func=cmd_query)

    # ask
    ask_parser = subparsers.add_parser("ask", help="Ask the assistant a free-form question")
    ask_parser.add_argument("question", help="Question text")
    _add_snapshot_args(ask_parser)
    ask_parser.set_defaults(func=cmd_ask)

    args = parser.parse_args()
    setup_logging(level=args.log_level)

    # Handle --version at top level
    if args.version:
        cmd_version(args)
        return

    # If no command given, show help
    if not args.command:
        parser.print_help()
        return

    try:
        result = args.func(args)
    except (OSError, ValueError) as e:
        log.error("command_failed", command=args.command, error=str(e))
        sys.exit(1)

    # Commands may return an exit code
    if isinstance(result, int) and result != 0:
        sys.exit(result)


if __name__ == "__main__":
    main()
