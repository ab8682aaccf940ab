"""
Configuration settings for backtest runs.

**Conceptual**: This module provides a strongly-typed settings object that loads
from environment variables (via a `.env` file at the project root). Settings
are validated on construction, so a bad window or negative cash fails at
startup with a clear message rather than mid-run.

**Why centralized config?**
  - Single source of truth for run parameters (cash, windows, data path).
  - Easy to test (construct BacktestSettings directly instead of reading env).
  - Fail-fast validation.

Recognised environment variables (all optional, defaults in brackets):
  - BACKTEST_DATA_PATH        [data/raw/SPY.csv]
  - BACKTEST_SYMBOL           [SPY]
  - BACKTEST_INITIAL_CASH     [100000]
  - BACKTEST_SHORT_WINDOW     [5]
  - BACKTEST_LONG_WINDOW      [20]
  - BACKTEST_LOT_SIZE         [10]
  - BACKTEST_PERIODS_PER_YEAR [252]
  - BACKTEST_RISK_FREE_RATE   [0.0]
  - BACKTEST_LOG_LEVEL        [INFO]
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from replay_backtest.backtesting.engine import BacktestParams
from replay_backtest.errors import InvalidConfiguration

# Project root is 2 levels up from replay_backtest/config/settings.py
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

# Load .env from project root; variables already set in the environment win
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _read_env(name: str, default: str, cast: type):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise InvalidConfiguration(
            f"{name} must be a{'n integer' if cast is int else ' number'}, got: {raw!r}"
        )


@dataclass(frozen=True)
class BacktestSettings:
    """
    Settings for a moving-average crossover backtest.

    Attributes:
        data_path: CSV of OHLCV bars to replay.
        symbol: Instrument the CSV describes and the strategy trades.
        initial_cash: Starting cash (>= 0).
        short_window: Short moving-average window (> 0).
        long_window: Long moving-average window (>= short_window).
        lot_size: Shares per signal (> 0).
        periods_per_year: Bars per year for annualization (> 0).
        risk_free_rate: Per-period risk-free rate for Sharpe/Sortino.
        log_level: Logging level name.
    """
    data_path: Path = PROJECT_ROOT / "data" / "raw" / "SPY.csv"
    symbol: str = "SPY"
    initial_cash: float = 100_000.0
    short_window: int = 5
    long_window: int = 20
    lot_size: int = 10
    periods_per_year: int = 252
    risk_free_rate: float = 0.0
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.initial_cash < 0:
            raise InvalidConfiguration(
                f"initial_cash must be non-negative, got: {self.initial_cash}"
            )
        if self.short_window <= 0 or self.long_window <= 0:
            raise InvalidConfiguration(
                f"moving-average windows must be positive, got: "
                f"short_window={self.short_window}, long_window={self.long_window}"
            )
        if self.short_window > self.long_window:
            raise InvalidConfiguration(
                f"short_window ({self.short_window}) cannot exceed "
                f"long_window ({self.long_window})"
            )
        if self.lot_size <= 0:
            raise InvalidConfiguration(f"lot_size must be positive, got: {self.lot_size}")
        if self.periods_per_year <= 0:
            raise InvalidConfiguration(
                f"periods_per_year must be positive, got: {self.periods_per_year}"
            )
        if not self.symbol:
            raise InvalidConfiguration("symbol must be a non-empty string")
        if self.log_level.upper() not in _VALID_LOG_LEVELS:
            raise InvalidConfiguration(
                f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}, got: {self.log_level}"
            )

    @classmethod
    def from_env(cls) -> "BacktestSettings":
        """
        Load settings from environment variables.

        Unset variables fall back to the dataclass defaults. A relative
        BACKTEST_DATA_PATH is resolved against the project root.

        Returns:
            Validated BacktestSettings.

        Raises:
            InvalidConfiguration: If a variable is not a valid number or a
                                  value is out of range.
        """
        defaults = cls()

        data_path = Path(os.getenv("BACKTEST_DATA_PATH", str(defaults.data_path)))
        if not data_path.is_absolute():
            data_path = PROJECT_ROOT / data_path

        return cls(
            data_path=data_path,
            symbol=os.getenv("BACKTEST_SYMBOL", defaults.symbol),
            initial_cash=_read_env("BACKTEST_INITIAL_CASH", str(defaults.initial_cash), float),
            short_window=_read_env("BACKTEST_SHORT_WINDOW", str(defaults.short_window), int),
            long_window=_read_env("BACKTEST_LONG_WINDOW", str(defaults.long_window), int),
            lot_size=_read_env("BACKTEST_LOT_SIZE", str(defaults.lot_size), int),
            periods_per_year=_read_env(
                "BACKTEST_PERIODS_PER_YEAR", str(defaults.periods_per_year), int
            ),
            risk_free_rate=_read_env(
                "BACKTEST_RISK_FREE_RATE", str(defaults.risk_free_rate), float
            ),
            log_level=os.getenv("BACKTEST_LOG_LEVEL", defaults.log_level),
        )

    def to_backtest_params(self) -> BacktestParams:
        """Engine parameters for these settings."""
        return BacktestParams(
            initial_cash=self.initial_cash,
            periods_per_year=self.periods_per_year,
            risk_free_rate=self.risk_free_rate,
        )


# Lazily loaded settings; tests construct BacktestSettings directly or call reset_settings()
_default_settings: Optional[BacktestSettings] = None


def get_settings() -> BacktestSettings:
    """
    Get the cached settings, loading them from the environment on first call.

    Returns:
        BacktestSettings singleton.
    """
    global _default_settings

    if _default_settings is None:
        _default_settings = BacktestSettings.from_env()

    return _default_settings


def reset_settings() -> None:
    """Clear the cached settings so the next get_settings() re-reads the environment."""
    global _default_settings
    _default_settings = None
