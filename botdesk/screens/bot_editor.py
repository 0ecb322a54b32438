"""Bot editor screen: hosts the editor bar and wires it to the store."""

import logging
from typing import List, Optional

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import Screen
from textual.widgets import Footer, Header, Static

from appstate.store import Store, Subscription, store as default_store
from botdesk.services.backtest_config import BacktestConfig
from botdesk.services.backtest_control import BacktestRun
from botdesk.services.backtest_runner import BACKTEST_SLICE, SimulatedBacktest
from botdesk.services.problems import CodeProblem, load_problems
from botdesk.widgets.bot_editor_bar import BotEditorBar

logger = logging.getLogger(__name__)

DEFAULT_TICK_SECONDS = 0.05


class BotEditorScreen(Screen):
    """Editor workspace with the backtest bar docked at the bottom."""

    BINDINGS = [
        ("r", "reload_problems", "Reload problems"),
        ("q", "quit_app", "Quit"),
    ]

    def __init__(
        self,
        problems_path: str = "",
        store: Optional[Store] = None,
        runner: Optional[SimulatedBacktest] = None,
        tick_seconds: float = DEFAULT_TICK_SECONDS,
    ) -> None:
        super().__init__()
        self.problems_path = problems_path
        self.store = store or default_store
        self.runner = runner or SimulatedBacktest(self.store)
        self.tick_seconds = tick_seconds
        self._subscription: Optional[Subscription] = None

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Vertical(id="editor-body"):
            yield Static(self._account_line(), id="editor-account")
        yield BotEditorBar(
            on_run=self.run_backtest,
            on_abort=self.abort_backtest,
            code_problems=self._read_problems(),
            backtest_run=BacktestRun.from_value(self.store.get(BACKTEST_SLICE)),
            id="editor-bar",
        )
        yield Footer()

    def on_mount(self) -> None:
        self._subscription = self.store.subscribe(BACKTEST_SLICE, self._on_backtest_changed)
        if self.tick_seconds > 0:
            self.set_interval(self.tick_seconds, self.runner.step)

    def on_unmount(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    @property
    def bar(self) -> BotEditorBar:
        return self.query_one("#editor-bar", BotEditorBar)

    def _account_line(self) -> str:
        account_id = self.store.get("authenticatedId")
        bots = self.store.get("bots") or {}
        return f"Account: {account_id}  |  Bots: {len(bots)}"

    def _read_problems(self) -> List[CodeProblem]:
        return load_problems(self.problems_path)

    def _on_backtest_changed(self, value) -> None:
        self.bar.backtest_run = BacktestRun.from_value(value)

    # -- collaborators handed to the bar ------------------------------------

    def run_backtest(self, config: BacktestConfig) -> None:
        self.runner.start(config)

    def abort_backtest(self) -> None:
        self.runner.abort()

    # -- actions --------------------------------------------------------------

    def action_reload_problems(self) -> None:
        problems = self._read_problems()
        self.bar.code_problems = tuple(problems)
        self.notify(f"{len(problems)} problem(s) loaded")

    def action_quit_app(self) -> None:
        self.app.exit()
