"""Bot Desk: Textual TUI entry point.

Launch: python3 -m botdesk.app [--problems PATH] [--tick SECONDS]

Reads editor problems from a JSON file and drives a simulated backtest
through the process store.
"""

import argparse
import logging
import os

from textual.app import App
from textual.logging import TextualHandler

from botdesk.screens.bot_editor import DEFAULT_TICK_SECONDS, BotEditorScreen

DEFAULT_PROBLEMS_PATH = os.path.join(
    os.path.dirname(__file__), "..", "research", "problems.json"
)


class BotDeskApp(App):
    """Bot editor with backtest controls."""

    TITLE = "Bot Desk"
    CSS_PATH = os.path.join(os.path.dirname(__file__), "styles", "botdesk.tcss")

    def __init__(self, problems_path: str = "",
                 tick_seconds: float = DEFAULT_TICK_SECONDS) -> None:
        super().__init__()
        self.problems_path = problems_path
        self.tick_seconds = tick_seconds

    def on_mount(self) -> None:
        self.push_screen(BotEditorScreen(
            problems_path=self.problems_path,
            tick_seconds=self.tick_seconds,
        ))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bot Desk backtest console")
    parser.add_argument(
        "--problems",
        default=DEFAULT_PROBLEMS_PATH,
        help="JSON file with the editor's code problems",
    )
    parser.add_argument(
        "--tick",
        type=float,
        default=DEFAULT_TICK_SECONDS,
        help="Seconds between simulated backtest iterations (0 disables)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    # Route records to the Textual devtools console instead of the terminal
    # the app is drawing on.
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        handlers=[TextualHandler()],
    )

    app = BotDeskApp(problems_path=args.problems, tick_seconds=args.tick)
    app.run()


if __name__ == "__main__":
    main()
