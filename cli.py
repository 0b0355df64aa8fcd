"""
cli.py — Research one page from the terminal.

WHAT THIS DOES:
  Opens one session for the given URL, focuses it, and runs the loop to
  completion: read the page, infer the intent, search and summarize up
  to --max-searches times. Prints the intent, the final summary and the
  references.

  This makes real calls to the model backend (settings.base_url) and to
  the search engine. Start your local model server first.

HOW TO USE:

  Research a page:
    python cli.py https://en.wikipedia.org/wiki/Solid-state_battery

  Fewer searches, live status, trace saved to logs/traces/:
    python cli.py https://example.com/post --max-searches 1 --verbose --save-trace

  Point at another backend:
    python cli.py https://example.com --base-url http://localhost:11434/v1 --model llama3
"""

import argparse
import asyncio
import logging
import sys

from agent.orchestrator import SessionOrchestrator
from agent.session import Session, SessionStatus
from config import settings

SESSION_ID = "cli"


# ── ANSI colours (stripped when not a TTY) ────────────────────────────────────

def _colour(text: str, code: str) -> str:
    if sys.stdout.isatty():
        return f"\033[{code}m{text}\033[0m"
    return text

GREEN  = lambda t: _colour(t, "32")
YELLOW = lambda t: _colour(t, "33")
RED    = lambda t: _colour(t, "31")
BOLD   = lambda t: _colour(t, "1")
DIM    = lambda t: _colour(t, "2")


def _status_colour(status: SessionStatus) -> str:
    if status == SessionStatus.COMPLETE:
        return GREEN(status.value.upper())
    if status == SessionStatus.ERROR:
        return RED(status.value.upper())
    return YELLOW(status.value.upper())


# ── Output ────────────────────────────────────────────────────────────────────

class StatusPrinter:
    """on_update observer: one line per status change, not per streamed chunk."""

    def __init__(self) -> None:
        self._last: tuple[SessionStatus, str] | None = None

    def __call__(self, session: Session) -> None:
        current = (session.status, session.status_message)
        if current == self._last:
            return
        self._last = current
        print(DIM(f"  [{session.status.value}] {session.status_message}"))


def print_session(session: Session) -> None:
    print("\n" + BOLD("─" * 72))
    print(f"{BOLD('Status:')} {_status_colour(session.status)}  {session.status_message}")
    if session.error:
        print(RED(f"Error: {session.error}"))
    if session.intent:
        print(f"{BOLD('Intent:')} {session.intent}")
    if session.search_history:
        print(f"{BOLD('Searches:')} {session.search_count}")
        for query in session.search_history:
            print(DIM(f"  - {query}"))
    print(BOLD("─" * 72))

    if session.summary:
        print("\n" + session.summary + "\n")

    if session.references:
        print(BOLD("References"))
        for i, ref in enumerate(session.reference_list, start=1):
            print(f"  [{i}] {ref.title or ref.url}")
            print(DIM(f"      {ref.url}"))


# ── CLI ───────────────────────────────────────────────────────────────────────

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Infer what a page is about and research it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("url", help="Page to research (http or https)")
    parser.add_argument(
        "--max-searches",
        type=int,
        help=f"Search cap for the session (default {settings.max_searches})",
    )
    parser.add_argument("--base-url", help="OpenAI-compatible endpoint")
    parser.add_argument("--model", help="Model name sent to the backend")
    parser.add_argument(
        "--save-trace",
        action="store_true",
        help=f"Save the loop trace as JSON under {settings.trace_dir}",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Print live status and debug logging",
    )
    return parser.parse_args(argv)


def apply_overrides(args: argparse.Namespace) -> None:
    if args.max_searches is not None:
        settings.max_searches = max(1, args.max_searches)
    if args.base_url:
        settings.base_url = args.base_url
    if args.model:
        settings.model = args.model
    if args.save_trace:
        settings.save_traces = True


async def research(url: str, verbose: bool = False) -> Session:
    orchestrator = SessionOrchestrator(on_update=StatusPrinter() if verbose else None)
    try:
        await orchestrator.focus(SESSION_ID, url)
    finally:
        await orchestrator.shutdown()
    return orchestrator.get(SESSION_ID)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )
    apply_overrides(args)

    print(BOLD(f"\nResearching {args.url} ..."))
    session = asyncio.run(research(args.url, verbose=args.verbose))
    print_session(session)
    return 1 if session.status == SessionStatus.ERROR else 0


if __name__ == "__main__":
    sys.exit(main())
