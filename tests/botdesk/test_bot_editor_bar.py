"""Bot editor bar mounted in a Textual test app, alone and behind the store."""

import asyncio
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from textual.app import App, ComposeResult
from textual.widgets import Button

from appstate.store import Store
from botdesk.screens.bot_editor import BotEditorScreen
from botdesk.services.backtest_control import BacktestRun
from botdesk.services.backtest_runner import BACKTEST_SLICE, SimulatedBacktest
from botdesk.services.problems import CodeProblem
from botdesk.widgets.bot_editor_bar import BacktestProgress, BotEditorBar
from botdesk.widgets.tabs import (
    TAB_REGISTRY,
    ConsolePanel,
    EditorTab,
    ProblemLine,
    ProblemsPanel,
    ProblemsTab,
)


class BarApp(App):
    """Hosts a single BotEditorBar."""

    def __init__(self, **bar_kwargs) -> None:
        super().__init__()
        self.runs = []
        self.aborts = 0
        self.bar_kwargs = bar_kwargs

    def compose(self) -> ComposeResult:
        yield BotEditorBar(
            on_run=self.runs.append,
            on_abort=self._abort,
            id="bar",
            **self.bar_kwargs,
        )

    def _abort(self) -> None:
        self.aborts += 1


class ScreenApp(App):
    """Hosts the full editor screen over a private store."""

    def __init__(self, store: Store, problems_path: str = "") -> None:
        super().__init__()
        self.store = store
        self.problems_path = problems_path

    def on_mount(self) -> None:
        self.push_screen(BotEditorScreen(
            problems_path=self.problems_path,
            store=self.store,
            tick_seconds=0,
        ))


async def _settle(pilot) -> None:
    await pilot.pause()
    await pilot.pause()


def test_idle_bar_shows_start_and_no_progress():
    async def scenario():
        app = BarApp()
        async with app.run_test() as pilot:
            await _settle(pilot)
            bar = app.query_one("#bar", BotEditorBar)
            assert str(bar.query_one("#start-btn", Button).label) == "Start backtesting"
            assert not bar.query("#abort-btn")
            assert not bar.query(BacktestProgress)
            assert bar.query_one(ProblemsPanel)
            assert bar.current_tab == "problems"

    asyncio.run(scenario())


def test_running_bar_shows_abort_and_progress():
    async def scenario():
        run = BacktestRun(status="running", iteration=45, total_iterations=180)
        app = BarApp(backtest_run=run)
        async with app.run_test() as pilot:
            await _settle(pilot)
            bar = app.query_one("#bar", BotEditorBar)
            assert str(bar.query_one("#abort-btn", Button).label) == "Abort"
            assert not bar.query("#start-btn")
            assert bar.query_one("#bt-progress", BacktestProgress).percent == 25.0

            bar.select_tab("console")
            await _settle(pilot)
            bar.query_one("#abort-btn", Button).press()
            await _settle(pilot)

            assert app.aborts == 1
            assert app.runs == []
            assert bar.current_tab == "console"
            assert bar.control.state.validation_errors == []
            # Still running until the backtest record itself changes.
            assert bar.query("#abort-btn")

    asyncio.run(scenario())


def test_progress_guarded_for_zero_total():
    async def scenario():
        run = BacktestRun(status="running", iteration=3, total_iterations=0)
        app = BarApp(backtest_run=run)
        async with app.run_test() as pilot:
            await _settle(pilot)
            assert app.query_one(BacktestProgress).percent == 0.0

    asyncio.run(scenario())


def test_start_press_submits_config():
    async def scenario():
        app = BarApp(validator=lambda: ["No strategy source"])
        async with app.run_test() as pilot:
            await _settle(pilot)
            bar = app.query_one("#bar", BotEditorBar)
            bar.query_one("#start-btn", Button).press()
            await _settle(pilot)

            assert len(app.runs) == 1
            assert app.runs[0].interval == "1h"
            assert bar.control.state.validation_errors == ["No strategy source"]
            assert bar.query_one("#validation-errors")

    asyncio.run(scenario())


def test_tab_press_switches_panel():
    async def scenario():
        app = BarApp()
        async with app.run_test() as pilot:
            await _settle(pilot)
            bar = app.query_one("#bar", BotEditorBar)
            bar.query_one("#tab-console", EditorTab).post_message(EditorTab.Pressed("console"))
            await _settle(pilot)

            assert bar.current_tab == "console"
            assert bar.query_one(ConsolePanel)
            assert not bar.query(ProblemsPanel)
            assert bar.query_one("#tab-console").has_class("active")
            assert not bar.query_one("#tab-problems").has_class("active")

    asyncio.run(scenario())


def test_clicking_tab_switches_panel():
    async def scenario():
        app = BarApp()
        async with app.run_test() as pilot:
            await _settle(pilot)
            bar = app.query_one("#bar", BotEditorBar)
            assert bar.query_one("#tab-console").region.width > 0

            await pilot.click("#tab-console")
            await _settle(pilot)

            assert bar.current_tab == "console"
            assert bar.query_one(ConsolePanel)

            await pilot.click("#tab-problems")
            await _settle(pilot)
            assert bar.current_tab == "problems"
            assert bar.query_one(ProblemsPanel)

    asyncio.run(scenario())


def test_problems_panel_lists_most_severe_first():
    async def scenario():
        problems = (
            CodeProblem(1, 1, "warn low", 3),
            CodeProblem(2, 1, "err low", 6),
            CodeProblem(3, 1, "warn high", 5),
            CodeProblem(4, 1, "err high", 10),
        )
        app = BarApp(code_problems=problems)
        async with app.run_test() as pilot:
            await _settle(pilot)
            rows = app.query(ProblemLine)
            assert [row.problem.message for row in rows] == [
                "err high", "err low", "warn high", "warn low"]

    asyncio.run(scenario())


def test_props_rerender_bar():
    async def scenario():
        app = BarApp()
        async with app.run_test() as pilot:
            await _settle(pilot)
            bar = app.query_one("#bar", BotEditorBar)
            bar.code_problems = (CodeProblem(1, 2, "boom", 9), CodeProblem(3, 1, "meh", 4))
            bar.backtest_run = BacktestRun(status="running", iteration=1, total_iterations=4)
            await _settle(pilot)

            assert bar.query_one("#bt-progress", BacktestProgress).percent == 25.0
            assert len(bar.query(".problem-error")) == 1
            assert len(bar.query(".problem-warning")) == 1
            assert isinstance(bar.query_one("#tab-problems"), ProblemsTab)

            bar.backtest_run = BacktestRun(status="finished", iteration=4, total_iterations=4)
            await _settle(pilot)
            assert bar.query("#start-btn")
            assert not bar.query(BacktestProgress)

    asyncio.run(scenario())


def test_registry_has_problems_and_console():
    assert list(TAB_REGISTRY) == ["problems", "console"]
    assert TAB_REGISTRY["problems"].panel is ProblemsPanel


def test_screen_end_to_end_through_store():
    """Seeded running backtest shows Abort at 25%; Start/Abort round-trip via the store."""
    async def scenario():
        store = Store()
        store.set(BACKTEST_SLICE, BacktestRun(status="running", iteration=45, total_iterations=180))
        app = ScreenApp(store)
        async with app.run_test() as pilot:
            await _settle(pilot)
            bar = app.screen.query_one("#editor-bar", BotEditorBar)
            assert bar.query_one("#bt-progress", BacktestProgress).percent == 25.0

            bar.query_one("#abort-btn", Button).press()
            await _settle(pilot)
            assert store.get(BACKTEST_SLICE).status == "idle"
            assert bar.query("#start-btn")
            assert bar.current_tab == "problems"

            bar.query_one("#start-btn", Button).press()
            await _settle(pilot)
            assert store.get(BACKTEST_SLICE).status == "running"
            assert bar.query("#abort-btn")

            SimulatedBacktest(store).step(48)
            await _settle(pilot)
            assert bar.query_one("#bt-progress", BacktestProgress).percent == 25.0

    asyncio.run(scenario())


def test_screen_loads_problems_file(tmp_path):
    path = tmp_path / "problems.json"
    path.write_text(
        '[{"startLineNumber": 4, "startColumn": 2, "message": "x is undefined", "severity": 8}]')

    async def scenario():
        app = ScreenApp(Store(), problems_path=str(path))
        async with app.run_test() as pilot:
            await _settle(pilot)
            bar = app.screen.query_one("#editor-bar", BotEditorBar)
            assert bar.code_problems == (CodeProblem(4, 2, "x is undefined", 8),)
            assert len(bar.query(".problem-error")) == 1

    asyncio.run(scenario())
