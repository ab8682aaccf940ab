"""
Mathematical helpers for strategies.

These operate on plain sequences of floats (lists, deques, numpy arrays or
pandas Series), oldest value first.
"""

from typing import Sequence

import numpy as np

from replay_backtest.errors import InvalidWindow


def compute_simple_moving_average(values: Sequence[float], window: int) -> float:
    """
    Arithmetic mean of the most recent `window` values.

    **Conceptual**: A simple moving average smooths short-term noise by giving
    the last N observations equal weight. Crossover strategies compare a short
    and a long SMA of closing prices to detect trend changes.

    **Mathematical**:
        SMA = (1 / window) * sum(values[-window:])

    Args:
        values: Observations in chronological order (oldest first).
        window: Number of trailing values to average (1 <= window <= len(values)).

    Returns:
        The mean of the trailing window.

    Raises:
        InvalidWindow: If window < 1 or exceeds the number of values.
    """
    if window < 1 or window > len(values):
        raise InvalidWindow(
            f"window must be between 1 and {len(values)}, got {window}"
        )

    # Slice via an array so deques (which don't support slicing) work too
    tail = np.asarray(list(values), dtype=float)[-window:]
    return float(tail.mean())
