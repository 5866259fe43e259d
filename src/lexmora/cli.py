"""Lexmora CLI: capture, review and inspect words from the terminal."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Awaitable, Callable

import anyio

from .config import settings
from .errors import LexmoraError
from .flows import ReviewSession
from .logging import configure_logging
from .models.word import WordMeaning, WordRecord, to_iso
from .scheduler import ReviewResponse
from .store import SQLiteWordBackend, WordStore

_PROMPT_KEYS = {
    "1": ReviewResponse.SLIPPED,
    "2": ReviewResponse.PATCHY,
    "3": ReviewResponse.ON_POINT,
    "4": ReviewResponse.SHARP,
}


def _parse_meaning(raw: str) -> WordMeaning:
    """`noun:a happy accident` 形式を WordMeaning に変換する。品詞省略時は unknown。

    argparse の type として使う。定義が空なら引数エラーにする。
    """

    pos, sep, definition = raw.partition(":")
    if not sep:
        pos, definition = "", raw
    definition = definition.strip()
    if not definition:
        raise argparse.ArgumentTypeError(f"meaning needs a definition: {raw!r}")
    return WordMeaning(part_of_speech=pos.strip() or "unknown", definition=definition)


def _format_record(record: WordRecord) -> str:
    state = "mastered" if record.is_mastered else f"reps={record.repetitions}"
    return (
        f"{record.word} (due {to_iso(record.next_review_at)}) {state} "
        f"interval={record.interval_days}d ease={record.ease_factor:.2f} lapses={record.lapses}"
    )


async def _capture(store: WordStore, args: argparse.Namespace) -> int:
    meanings = list(args.meaning) if args.meaning else None
    created = await store.capture(args.word, args.source_url, meanings)
    if created is None:
        print(f'"{args.word.strip()}" was not added (blank or already saved).')
    else:
        print(f"Added {created.word}, first review {to_iso(created.next_review_at)}")
    return 0


async def _forget(store: WordStore, args: argparse.Namespace) -> int:
    removed = await store.forget(args.word)
    print("Removed." if removed else "Not found; nothing to remove.")
    return 0


async def _reset(store: WordStore, args: argparse.Namespace) -> int:
    if not args.yes:
        print("Refusing to delete every word without --yes.", file=sys.stderr)
        return 2
    removed = await store.clear_all()
    print(f"Removed {removed} word(s).")
    return 0


async def _due(store: WordStore, args: argparse.Namespace) -> int:
    items = await store.due_queue(args.limit)
    if not items:
        print("No words due.")
        return 0
    for record in items:
        print(_format_record(record))
    return 0


async def _grade(store: WordStore, args: argparse.Namespace) -> int:
    signal = ReviewResponse(args.response) if args.response else args.quality
    updated = await store.apply_response(args.word, signal)
    print(_format_record(updated))
    return 0


async def _prompt(text: str) -> str | None:
    """Read one line without blocking the event loop; None on EOF / Ctrl-C."""
    try:
        return await anyio.to_thread.run_sync(input, text)
    except (EOFError, KeyboardInterrupt):
        print()
        return None


async def _review(store: WordStore, args: argparse.Namespace) -> int:
    session = ReviewSession(store, limit=args.limit)
    if not await session.load():
        print("No words due.")
        return 0
    while not session.is_finished:
        word = session.active_word
        if word is None:
            break
        print(f"\n[{session.current_index + 1}/{len(session.queue)}] {word.word}")
        if await _prompt("Press Enter to reveal...") is None:
            break
        session.reveal_meaning()
        for meaning in word.meanings:
            print(f"  ({meaning.part_of_speech}) {meaning.definition}")
        answer = await _prompt("1=slipped 2=patchy 3=on point 4=sharp, q to quit: ")
        if answer is None:
            break
        raw = answer.strip().lower()
        if raw == "q":
            break
        response = _PROMPT_KEYS.get(raw)
        if response is None:
            print("Invalid choice, try again.")
            continue
        updated = await session.respond(response)
        print(f"Next review in {updated.interval_days} day(s).")
    print(f"\nReviewed {len(session.results)} word(s).")
    return 0


async def _stats(store: WordStore, args: argparse.Namespace) -> int:
    metrics = await store.metrics()
    if args.json:
        print(json.dumps(metrics.to_dict()))
    else:
        for key, value in metrics.to_dict().items():
            print(f"{key}: {value}")
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("lexmora.main:app", host=args.host, port=args.port, log_config=None)
    return 0


async def _with_store(db_path: str, handler: Callable[[WordStore, argparse.Namespace], Awaitable[int]], args: argparse.Namespace) -> int:
    async with WordStore(SQLiteWordBackend(db_path), tz=settings.tzinfo) as store:
        return await handler(store, args)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lexmora", description=__doc__)
    parser.add_argument("--db", default=settings.lexmora_db_path, help="SQLite database path.")
    sub = parser.add_subparsers(dest="command", required=True)

    p_capture = sub.add_parser("capture", help="Save a word for review.")
    p_capture.add_argument("word")
    p_capture.add_argument("--source-url", default="", help="Page the word was found on.")
    p_capture.add_argument(
        "--meaning", action="append", type=_parse_meaning, help="Meaning as 'pos:definition' (repeatable)."
    )
    p_capture.set_defaults(handler=_capture)

    p_forget = sub.add_parser("forget", help="Delete a word.")
    p_forget.add_argument("word")
    p_forget.set_defaults(handler=_forget)

    p_reset = sub.add_parser("reset", help="Delete every word.")
    p_reset.add_argument("--yes", action="store_true", help="Confirm the reset.")
    p_reset.set_defaults(handler=_reset)

    p_due = sub.add_parser("due", help="List words due now.")
    p_due.add_argument("--limit", type=int, default=settings.review_due_limit)
    p_due.set_defaults(handler=_due)

    p_grade = sub.add_parser("grade", help="Apply one review response.")
    p_grade.add_argument("word")
    signal = p_grade.add_mutually_exclusive_group(required=True)
    signal.add_argument("--quality", type=float, help="Raw quality 0-5.")
    signal.add_argument("--response", choices=[r.value for r in ReviewResponse])
    p_grade.set_defaults(handler=_grade)

    p_review = sub.add_parser("review", help="Interactive review of due words.")
    p_review.add_argument("--limit", type=int, default=settings.review_due_limit)
    p_review.set_defaults(handler=_review)

    p_stats = sub.add_parser("stats", help="Show review metrics.")
    p_stats.add_argument("--json", action="store_true")
    p_stats.set_defaults(handler=_stats)

    p_serve = sub.add_parser("serve", help="Run the HTTP API.")
    p_serve.add_argument("--host", default=settings.api_host)
    p_serve.add_argument("--port", type=int, default=settings.api_port)
    p_serve.set_defaults(handler=None)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging()
    if args.command == "serve":
        return _serve(args)
    if getattr(args, "limit", None) is not None and args.limit < 0:
        parser.error("--limit must be >= 0")
    try:
        return asyncio.run(_with_store(args.db, args.handler, args))
    except LexmoraError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
