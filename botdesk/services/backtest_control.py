"""Backtest control: tab state machine, run/abort commands, progress derivation.

Pure logic, testable without Textual. The BotEditorBar widget owns one
BacktestControl and renders whatever view() returns.

The control never writes the current backtest itself. Start and Abort go
through the injected on_run / on_abort collaborators; the resulting status
arrives later as a new BacktestRun pushed in by the screen.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence, Tuple

from botdesk.services.backtest_config import BacktestConfig, get_default_config
from botdesk.services.problems import CodeProblem, ProblemSummary, partition_problems

logger = logging.getLogger(__name__)

STATUS_IDLE = "idle"
STATUS_RUNNING = "running"
STATUS_FINISHED = "finished"
STATUS_ERROR = "error"

DEFAULT_TAB = "problems"

START_LABEL = "Start backtesting"
ABORT_LABEL = "Abort"


class UnknownTabError(ValueError):
    """Raised when selecting a tab key that is not registered."""


@dataclass(frozen=True)
class BacktestRun:
    """Current backtest as published in the store. Written by the engine only."""
    status: str = STATUS_IDLE
    iteration: int = 0
    total_iterations: int = 0
    messages: Tuple[str, ...] = ()

    @classmethod
    def from_value(cls, value: Any) -> Optional["BacktestRun"]:
        """Coerce a store value (None, BacktestRun or mapping) into a BacktestRun."""
        if value is None or isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls(
                status=str(value.get("status", STATUS_IDLE)),
                iteration=int(value.get("iteration", 0) or 0),
                total_iterations=int(
                    value.get("totalIterations", value.get("total_iterations", 0)) or 0),
                messages=tuple(value.get("messages", ()) or ()),
            )
        raise TypeError(f"Cannot read a backtest run from {type(value).__name__}")


@dataclass
class PanelState:
    """Local state of one control panel."""
    current_tab: str = DEFAULT_TAB
    validation_errors: List[str] = field(default_factory=list)


@dataclass
class BarView:
    """Everything the bar needs to render, derived from state + inputs."""
    tab_keys: Tuple[str, ...]
    current_tab: str
    action: str
    action_label: str
    progress: Optional[float]
    problems: ProblemSummary
    validation_errors: List[str]

    @property
    def is_running(self) -> bool:
        return self.action == "abort"


def is_backtest_running(run: Optional[BacktestRun]) -> bool:
    return run is not None and run.status == STATUS_RUNNING


def backtest_progress(run: Optional[BacktestRun]) -> Optional[float]:
    """Percent complete while running, clamped to [0, 100]. None when not running.

    A zero (or negative) iteration total reads as 0%.
    """
    if not is_backtest_running(run):
        return None
    if run.total_iterations <= 0:
        return 0.0
    pct = run.iteration / run.total_iterations * 100
    if not math.isfinite(pct):
        return 0.0
    return max(0.0, min(100.0, pct))


def no_validation_errors() -> List[str]:
    return []


class BacktestControl:
    """Run/abort commands and tab selection for the bot editor bar.

    validator is the advisory validation hook run before every Start. Its
    errors are recorded in state.validation_errors for display. They block
    the run only when block_on_errors is set.
    """

    def __init__(
        self,
        on_run: Callable[[BacktestConfig], None],
        on_abort: Callable[[], None],
        tab_keys: Sequence[str] = (DEFAULT_TAB,),
        validator: Optional[Callable[[], List[str]]] = None,
        block_on_errors: bool = False,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        if not tab_keys:
            raise ValueError("At least one tab key is required")
        self.on_run = on_run
        self.on_abort = on_abort
        self.tab_keys: Tuple[str, ...] = tuple(tab_keys)
        self.validator = validator or no_validation_errors
        self.block_on_errors = block_on_errors
        self._clock = clock
        initial = DEFAULT_TAB if DEFAULT_TAB in self.tab_keys else self.tab_keys[0]
        self.state = PanelState(current_tab=initial)

    # -- tabs -------------------------------------------------------------

    def select_tab(self, key: str) -> None:
        if key not in self.tab_keys:
            raise UnknownTabError(f"Unknown tab '{key}'; expected one of {list(self.tab_keys)}")
        self.state.current_tab = key

    # -- commands ---------------------------------------------------------

    def primary_action(self, run: Optional[BacktestRun]) -> str:
        return "abort" if is_backtest_running(run) else "start"

    def get_validation_errors(self) -> List[str]:
        return list(self.validator() or [])

    def press_start(self) -> Optional[BacktestConfig]:
        """Validate (advisory), then submit the default config.

        Returns the submitted config, or None if validation blocked it.
        """
        errors = self.get_validation_errors()
        self.state.validation_errors = errors
        if errors:
            logger.info("Backtest validation reported %d error(s)", len(errors))
            if self.block_on_errors:
                return None

        now = self._clock() if self._clock else None
        config = get_default_config(now)
        logger.info("Requesting backtest %s-%s %s",
                    config.start_date, config.end_date, config.interval)
        self.on_run(config)
        return config

    def press_abort(self) -> None:
        logger.info("Requesting backtest abort")
        self.on_abort()

    # -- rendering --------------------------------------------------------

    def view(self, problems: Sequence[CodeProblem],
             run: Optional[BacktestRun]) -> BarView:
        action = self.primary_action(run)
        return BarView(
            tab_keys=self.tab_keys,
            current_tab=self.state.current_tab,
            action=action,
            action_label=ABORT_LABEL if action == "abort" else START_LABEL,
            progress=backtest_progress(run),
            problems=partition_problems(problems),
            validation_errors=list(self.state.validation_errors),
        )
