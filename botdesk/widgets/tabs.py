"""Bottom-bar tabs and panels, plus the registry tying them to tab keys.

Each registry entry pairs a tab renderer (the clickable label in the tab
strip) with a panel renderer (the body shown while the tab is active).
Adding a tab only needs a new entry in TAB_REGISTRY.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Type

from textual.app import ComposeResult
from textual.containers import VerticalScroll
from textual.message import Message
from textual.widget import Widget
from textual.widgets import Label, Static

from botdesk.services.backtest_control import BacktestRun, backtest_progress
from botdesk.services.problems import (
    CodeProblem,
    format_problem_counts,
    partition_problems,
    problems_by_severity,
)


class EditorTab(Static):
    """Clickable tab label. Posts EditorTab.Pressed with its key."""

    DEFAULT_CSS = """
    EditorTab {
        width: auto;
        height: auto;
        padding: 0 2;
    }
    EditorTab.active {
        text-style: bold;
    }
    """

    TITLE = ""

    class Pressed(Message):
        def __init__(self, key: str) -> None:
            super().__init__()
            self.key = key

    def __init__(self, key: str, is_active: bool = False,
                 problems: Sequence[CodeProblem] = (),
                 backtesting: Optional[BacktestRun] = None) -> None:
        classes = "editor-tab active" if is_active else "editor-tab"
        super().__init__(classes=classes, id=f"tab-{key}")
        self.tab_key = key
        self.tab_active = is_active
        self.problems = problems
        self.backtesting = backtesting

    def on_mount(self) -> None:
        self.update(self.label_text())

    def label_text(self) -> str:
        return self.TITLE

    def on_click(self) -> None:
        self.post_message(self.Pressed(self.tab_key))


class ProblemsTab(EditorTab):
    TITLE = "Problems"

    def label_text(self) -> str:
        counts = format_problem_counts(partition_problems(self.problems))
        return f"{self.TITLE} {counts}" if counts else self.TITLE


class ConsoleTab(EditorTab):
    TITLE = "Console"


class ProblemLine(Static):
    """One diagnostic row: line:column then the message."""

    def __init__(self, problem: CodeProblem) -> None:
        kind = "problem-error" if problem.is_error else "problem-warning"
        super().__init__(
            f"{problem.start_line_number}:{problem.start_column}  {problem.message}",
            classes=f"problem {kind}",
            markup=False,
        )
        self.problem = problem


class ProblemsPanel(VerticalScroll):
    """Errors then warnings, each group most severe first."""

    def __init__(self, problems: Sequence[CodeProblem] = (),
                 backtesting: Optional[BacktestRun] = None) -> None:
        super().__init__(id="problems-panel", classes="editor-panel")
        self.problems = problems

    def compose(self) -> ComposeResult:
        summary = partition_problems(self.problems)
        if not summary.errors and not summary.warnings:
            yield Label("No problems detected.", classes="empty-state")
            return
        for problem in problems_by_severity(summary):
            yield ProblemLine(problem)


class ConsolePanel(VerticalScroll):
    """Backtest status line followed by the engine's messages."""

    def __init__(self, problems: Sequence[CodeProblem] = (),
                 backtesting: Optional[BacktestRun] = None) -> None:
        super().__init__(id="console-panel", classes="editor-panel")
        self.backtesting = backtesting

    def compose(self) -> ComposeResult:
        run = self.backtesting
        if run is None:
            yield Label("No backtest run yet.", classes="empty-state")
            return
        status = f"Status: {run.status}"
        progress = backtest_progress(run)
        if progress is not None:
            status += f"  {run.iteration}/{run.total_iterations} ({progress:.0f}%)"
        yield Label(status, id="console-status")
        for line in run.messages:
            yield Static(line, classes="console-line", markup=False)


@dataclass(frozen=True)
class TabEntry:
    tab: Type[EditorTab]
    panel: Type[Widget]


TAB_REGISTRY: Dict[str, TabEntry] = {
    "problems": TabEntry(tab=ProblemsTab, panel=ProblemsPanel),
    "console": TabEntry(tab=ConsoleTab, panel=ConsolePanel),
}
