"""Bot editor bar: tab strip, Start/Abort control, progress and active panel."""

from typing import Callable, Dict, List, Optional, Sequence

from textual import on
from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.reactive import reactive
from textual.widget import Widget
from textual.widgets import Button, ProgressBar, Static

from botdesk.services.backtest_config import BacktestConfig
from botdesk.services.backtest_control import BacktestControl, BacktestRun
from botdesk.services.problems import CodeProblem
from botdesk.widgets.tabs import TAB_REGISTRY, EditorTab, TabEntry


class BacktestProgress(ProgressBar):
    """Percent progress of the running backtest."""

    def __init__(self, percent: float, **kwargs) -> None:
        super().__init__(total=100, show_eta=False, **kwargs)
        self.percent = percent

    def on_mount(self) -> None:
        self.update(total=100, progress=self.percent)


class BotEditorBar(Widget):
    """Read model over the current backtest plus a command issuer into it.

    code_problems and backtest_run are props pushed in by the owning screen.
    Local tab selection and validation errors live in self.control.state.
    """

    DEFAULT_CSS = """
    BotEditorBar {
        height: auto;
        max-height: 50%;
    }
    BotEditorBar #tabs-bar {
        height: auto;
    }
    BotEditorBar #tabs-bar .tabs {
        width: 1fr;
        height: auto;
    }
    BotEditorBar #tabs-bar .buttons {
        width: 32;
        height: auto;
    }
    BotEditorBar #panel-bar {
        height: auto;
    }
    """

    code_problems: reactive[tuple] = reactive(tuple, recompose=True)
    backtest_run: reactive[Optional[BacktestRun]] = reactive(None, recompose=True)

    def __init__(
        self,
        on_run: Callable[[BacktestConfig], None],
        on_abort: Callable[[], None],
        code_problems: Sequence[CodeProblem] = (),
        backtest_run: Optional[BacktestRun] = None,
        registry: Optional[Dict[str, TabEntry]] = None,
        validator: Optional[Callable[[], List[str]]] = None,
        block_on_errors: bool = False,
        id: Optional[str] = None,
    ) -> None:
        super().__init__(id=id)
        self.registry = registry if registry is not None else TAB_REGISTRY
        self.control = BacktestControl(
            on_run=on_run,
            on_abort=on_abort,
            tab_keys=list(self.registry),
            validator=validator,
            block_on_errors=block_on_errors,
        )
        self.set_reactive(BotEditorBar.code_problems, tuple(code_problems))
        self.set_reactive(BotEditorBar.backtest_run, backtest_run)

    @property
    def current_tab(self) -> str:
        return self.control.state.current_tab

    def compose(self) -> ComposeResult:
        view = self.control.view(self.code_problems, self.backtest_run)

        with Horizontal(id="tabs-bar"):
            with Horizontal(classes="tabs"):
                for key in view.tab_keys:
                    yield self.registry[key].tab(
                        key,
                        is_active=key == view.current_tab,
                        problems=self.code_problems,
                        backtesting=self.backtest_run,
                    )
            with Vertical(classes="buttons"):
                if view.is_running:
                    yield Button(view.action_label, id="abort-btn", variant="error")
                else:
                    yield Button(view.action_label, id="start-btn", variant="primary")
                if view.progress is not None:
                    yield BacktestProgress(view.progress, id="bt-progress")

        if view.validation_errors:
            yield Static("\n".join(view.validation_errors), id="validation-errors",
                         markup=False)

        with Vertical(id="panel-bar"):
            yield self.registry[view.current_tab].panel(
                problems=self.code_problems,
                backtesting=self.backtest_run,
            )

    def select_tab(self, key: str) -> None:
        before = self.control.state.current_tab
        self.control.select_tab(key)
        if key != before:
            self.refresh(recompose=True)

    @on(EditorTab.Pressed)
    def _on_tab_pressed(self, event: EditorTab.Pressed) -> None:
        event.stop()
        self.select_tab(event.key)

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "start-btn":
            event.stop()
            before = list(self.control.state.validation_errors)
            self.control.press_start()
            if self.control.state.validation_errors != before:
                self.refresh(recompose=True)
        elif event.button.id == "abort-btn":
            event.stop()
            self.control.press_abort()
