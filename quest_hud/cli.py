"""Command-line interface for the quest HUD.

WHY: Operators need to run the event bridge, seed a fresh database, and
check how a piece of text will scroll on the glasses without a headset.

HOW: argparse with three subcommands:
  serve    run the FastAPI event bridge under uvicorn
  seed     insert the sample quest templates into a database
  preview  run the real scroll scheduler against a terminal display

RULES:
- Frames from preview go to stdout; status messages go to stderr
- preview reads stdin when TEXT is "-" or omitted
- --no-wait skips the delays between windows but keeps their order
- Python 3.9 compatible (no match/case, no X | Y unions)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from quest_hud.config import (
    DATABASE_PATH,
    MAX_LINE_LENGTH,
    MAX_LINES_PER_SCREEN,
    SCROLL_DELAY_MS,
    SERVER_HOST,
    SERVER_PORT,
)
from quest_hud.display.scroller import (
    DisplayRequest,
    DisplaySink,
    InputError,
    run_display_request,
)
from quest_hud.display.session import ScrollFlags


def _status(msg: str) -> None:
    """Print a status message to stderr."""
    print(msg, file=sys.stderr, flush=True)


class TerminalDisplay(DisplaySink):
    """Prints each frame as a boxed card on a text stream."""

    def __init__(self, stream=None) -> None:  # noqa: ANN001
        self.stream = stream or sys.stdout
        self.frames = 0

    def _emit(self, header: str, body: str) -> None:
        self.frames += 1
        print("+-- {} ".format(header).ljust(MAX_LINE_LENGTH + 4, "-"), file=self.stream)
        for line in body.split("\n"):
            print("| {}".format(line), file=self.stream)
        print("+" + "-" * (MAX_LINE_LENGTH + 3), file=self.stream, flush=True)

    async def show_reference_card(self, title: str, body: str, duration_ms: int) -> None:
        shown = "until replaced" if duration_ms < 0 else "{}ms".format(duration_ms)
        self._emit("{} [{}]".format(title, shown), body)

    async def show_text_wall(self, text: str, duration_ms: int) -> None:
        self._emit("[{}ms]".format(duration_ms), text)


async def _no_wait(seconds: float) -> None:
    return None


async def _run_preview(args: argparse.Namespace) -> int:
    if args.text is None or args.text == "-":
        content = sys.stdin.read()
    else:
        content = args.text

    try:
        request = DisplayRequest(
            title=args.title,
            content=content,
            max_line_length=args.width,
            max_lines_per_screen=args.lines,
            scroll_delay_ms=args.delay_ms,
        )
    except InputError as exc:
        _status("Error: {}".format(exc))
        return 2

    display = TerminalDisplay()
    sleep = _no_wait if args.no_wait else asyncio.sleep
    await run_display_request(request, display, ScrollFlags(), "preview", sleep)
    _status("Rendered {} frame(s)".format(display.frames))
    return 0


def _run_seed(args: argparse.Namespace) -> int:
    from quest_hud.store.database import QuestDatabase
    from quest_hud.store.seed import seed_sample_quests

    database = QuestDatabase(args.db)
    try:
        inserted = seed_sample_quests(database)
    finally:
        database.close()
    if inserted:
        _status("Inserted {} sample quest templates into {}".format(inserted, args.db))
    else:
        _status("Database {} already has quest templates; nothing to do".format(args.db))
    return 0


def _run_serve(args: argparse.Namespace) -> int:
    from quest_hud.server.app import run_api

    run_api(host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    RULES:
    - Subcommand is required
    - preview defaults mirror the display configuration
    """
    parser = argparse.ArgumentParser(
        prog="quest-hud",
        description="Location-based quest app for smart glasses.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP event bridge.")
    serve.add_argument("--host", default=SERVER_HOST, help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=SERVER_PORT, help="Port (default: %(default)s).")

    seed = subparsers.add_parser("seed", help="Insert sample quest templates.")
    seed.add_argument("--db", default=DATABASE_PATH, help="SQLite database path (default: %(default)s).")

    preview = subparsers.add_parser(
        "preview", help="Show how text scrolls on the display, in the terminal."
    )
    preview.add_argument(
        "text", nargs="?", default=None, help="Text to display; '-' or omitted reads stdin."
    )
    preview.add_argument("--title", default="Preview", help="Card title (default: %(default)s).")
    preview.add_argument(
        "--width", type=int, default=MAX_LINE_LENGTH,
        help="Characters per line (default: %(default)s).",
    )
    preview.add_argument(
        "--lines", type=int, default=MAX_LINES_PER_SCREEN,
        help="Lines per screen (default: %(default)s).",
    )
    preview.add_argument(
        "--delay-ms", type=int, default=SCROLL_DELAY_MS,
        help="Base scroll delay in milliseconds (default: %(default)s).",
    )
    preview.add_argument(
        "--no-wait", action="store_true", help="Render all windows without waiting."
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the quest-hud console script and python -m quest_hud.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    - Exits with the subcommand's status code when it is non-zero
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    if args.command == "preview":
        code = asyncio.run(_run_preview(args))
    elif args.command == "seed":
        code = _run_seed(args)
    else:
        code = _run_serve(args)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
