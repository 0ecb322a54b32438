"""Simulated backtest engine for the bot desk.

Stands in for the real engine: it is the only writer of the
currentBackTesting slice. The screen drives it with step() on a timer; a
stalled run simply keeps its last progress.
"""

import logging
from dataclasses import replace
from typing import Optional

from appstate.store import Store, store as default_store
from botdesk.services.backtest_config import BacktestConfig
from botdesk.services.backtest_control import (
    STATUS_ERROR,
    STATUS_FINISHED,
    STATUS_IDLE,
    STATUS_RUNNING,
    BacktestRun,
    is_backtest_running,
)

logger = logging.getLogger(__name__)

BACKTEST_SLICE = "currentBackTesting"


class SimulatedBacktest:
    """Walks through one iteration per candle of the requested window."""

    def __init__(self, store: Optional[Store] = None, slice_name: str = BACKTEST_SLICE) -> None:
        self.store = store or default_store
        self.slice_name = slice_name

    @property
    def current(self) -> Optional[BacktestRun]:
        return BacktestRun.from_value(self.store.get(self.slice_name))

    @property
    def running(self) -> bool:
        return is_backtest_running(self.current)

    def start(self, config: BacktestConfig) -> BacktestRun:
        """Publish a fresh running backtest for config. Restarts an active run.

        An interval with no candle length publishes an error run instead.
        """
        total = config.candle_count()
        if total <= 0:
            run = BacktestRun(
                status=STATUS_ERROR,
                messages=(f"Unsupported interval '{config.interval}'",),
            )
            logger.warning("Backtest not started: unsupported interval %r", config.interval)
            self.store.set(self.slice_name, run)
            return run

        assets = ", ".join(config.base_assets)
        run = BacktestRun(
            status=STATUS_RUNNING,
            iteration=0,
            total_iterations=total,
            messages=(f"Backtesting {assets} / {config.quoted_asset} "
                      f"on {config.interval} candles ({total} iterations)",),
        )
        logger.info("Backtest started: %d iterations", total)
        self.store.set(self.slice_name, run)
        return run

    def step(self, n: int = 1) -> Optional[BacktestRun]:
        """Advance a running backtest by n iterations. No-op otherwise."""
        run = self.current
        if not is_backtest_running(run):
            return run

        iteration = min(run.iteration + n, run.total_iterations)
        if iteration >= run.total_iterations:
            run = replace(
                run,
                status=STATUS_FINISHED,
                iteration=run.total_iterations,
                messages=run.messages + ("Backtest finished",),
            )
            logger.info("Backtest finished after %d iterations", run.total_iterations)
        else:
            run = replace(run, iteration=iteration)

        self.store.set(self.slice_name, run)
        return run

    def abort(self) -> Optional[BacktestRun]:
        """Stop a running backtest. Aborting an idle slice changes nothing."""
        run = self.current
        if not is_backtest_running(run):
            logger.debug("Abort ignored: no backtest running")
            return run

        run = replace(
            run,
            status=STATUS_IDLE,
            messages=run.messages + (f"Aborted at iteration {run.iteration}",),
        )
        logger.info("Backtest aborted at iteration %d", run.iteration)
        self.store.set(self.slice_name, run)
        return run
