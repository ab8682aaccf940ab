"""
Pytest configuration file.

Ensures the repo root is on sys.path so that 'import replay_backtest...' and
'import actions...' work, and provides a small series builder shared by the
engine and strategy tests.
"""
import sys
from pathlib import Path

import pandas as pd
import pytest

# Add the repo root to sys.path
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from replay_backtest.data.schemas import PriceBar, TimestampedSeries


def build_series(closes, symbol="SPY", start="2024-01-01"):
    """
    Build a daily TimestampedSeries whose bars all have open=high=low=close.

    Args:
        closes: Closing prices, oldest first.
        symbol: Symbol for the series.
        start: Date of the first bar.
    """
    dates = pd.date_range(start, periods=len(closes), freq="D")
    rows = [
        (ts, PriceBar(open=c, high=c, low=c, close=c, volume=1_000))
        for ts, c in zip(dates, closes)
    ]
    return TimestampedSeries(rows, symbol=symbol)


@pytest.fixture
def make_series():
    return build_series
