"""Backtest config handed to the engine when the operator presses Start."""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

DAY_MS = 24 * 60 * 60 * 1000

DEFAULT_BASE_ASSETS: Tuple[str, ...] = ("ETH", "BTC")
DEFAULT_QUOTED_ASSET = "USD"
DEFAULT_INTERVAL = "1h"
DEFAULT_INITIAL_BALANCES: Dict[str, float] = {"USD": 1000}
DEFAULT_FEES = 0.1
DEFAULT_SLIPPAGE = 0.2

# Trailing window: starts 8 days back, ends yesterday.
WINDOW_START_DAYS_BACK = 8
WINDOW_END_DAYS_BACK = 1

INTERVAL_SECONDS = {
    "1m": 60, "5m": 300, "15m": 900, "30m": 1800,
    "1h": 3600, "4h": 14400, "12h": 43200, "1d": 86400, "3d": 259200,
    "1w": 604800,
}


@dataclass(frozen=True)
class BacktestConfig:
    base_assets: Tuple[str, ...]
    quoted_asset: str
    interval: str
    initial_balances: Dict[str, float] = field(hash=False)
    start_date: int
    end_date: int
    fees: float
    slippage: float

    @property
    def window_ms(self) -> int:
        return self.end_date - self.start_date + 1

    def candle_count(self) -> int:
        """Number of interval candles in the window (0 for unknown intervals)."""
        seconds = INTERVAL_SECONDS.get(self.interval)
        if not seconds:
            return 0
        return self.window_ms // (seconds * 1000)

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape consumed by engines."""
        return {
            "baseAssets": list(self.base_assets),
            "quotedAsset": self.quoted_asset,
            "interval": self.interval,
            "initialBalances": dict(self.initial_balances),
            "startDate": self.start_date,
            "endDate": self.end_date,
            "fees": self.fees,
            "slippage": self.slippage,
        }


def now_ms() -> int:
    return int(time.time() * 1000)


def utc_day_start(ms: int) -> int:
    """00:00:00.000 UTC of the day containing ms."""
    return ms - ms % DAY_MS


def utc_day_end(ms: int) -> int:
    """23:59:59.999 UTC of the day containing ms."""
    return utc_day_start(ms) + DAY_MS - 1


def get_default_config(now: Optional[int] = None) -> BacktestConfig:
    """Default run: ETH and BTC against USD on 1h candles over the last 7 full days."""
    if now is None:
        now = now_ms()
    return BacktestConfig(
        base_assets=DEFAULT_BASE_ASSETS,
        quoted_asset=DEFAULT_QUOTED_ASSET,
        interval=DEFAULT_INTERVAL,
        initial_balances=dict(DEFAULT_INITIAL_BALANCES),
        start_date=utc_day_start(now - WINDOW_START_DAYS_BACK * DAY_MS),
        end_date=utc_day_end(now - WINDOW_END_DAYS_BACK * DAY_MS),
        fees=DEFAULT_FEES,
        slippage=DEFAULT_SLIPPAGE,
    )
