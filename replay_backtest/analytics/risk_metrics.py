"""
Risk and performance metrics for a finished backtest.

Every function here is pure: it reads an already-finished return series or
equity curve and returns a number (or, for rolling returns, a restartable
iterable). Inputs may be lists, tuples, numpy arrays or pandas Series, oldest
value first. Metrics are grouped into:
  - Return/risk ratios: Sharpe, Sortino, Calmar
  - Equity-curve figures: total return, annualized return, drawdown
  - Return-distribution aggregates: win rate, profit factor, average, expectancy
  - Rolling figures: rolling returns

**Conventions**:
  - Returns are per period (one per consecutive pair of equity points).
  - Ratios are NOT annualized; the risk-free rate is a per-period rate.
  - Standard deviations are population (ddof=0, divide by N).
  - Drawdown is reported as a non-negative fraction of the running peak.
  - Empty or too-short inputs raise; a division by a zero equity value raises
    DegenerateEquity instead of producing infinity.
"""

from dataclasses import asdict, dataclass
from typing import Iterator, Sequence

import numpy as np

from replay_backtest.errors import (
    ComputedMetricError,
    DegenerateEquity,
    EmptyInput,
    InsufficientData,
    InvalidConfiguration,
    InvalidWindow,
)

# A std this small relative to the mean is float rounding from a constant series
_RELATIVE_STD_NOISE = 1e-12


def _as_array(values: Sequence[float], name: str) -> np.ndarray:
    """Convert input to a float array, rejecting empty input."""
    arr = np.asarray(values, dtype=float).ravel()
    if arr.size == 0:
        raise EmptyInput(f"{name} cannot be empty.")
    return arr


def _require_positive_periods(periods_per_year: int) -> None:
    if periods_per_year <= 0:
        raise InvalidConfiguration(
            f"periods_per_year must be positive, got {periods_per_year}"
        )


# ============================================================================
# Return/risk ratios
# ============================================================================

def compute_sharpe_ratio(returns: Sequence[float], risk_free_rate: float = 0.0) -> float:
    """
    Compute the Sharpe ratio: excess return per unit of total volatility.

    **Conceptual**: Answers "how much return am I getting for each unit of risk
    I'm taking?" Higher is better. Volatility here counts upside and downside
    swings alike.

    **Mathematical**: Given N period returns r_t and per-period risk-free rate r_f:
        mean = (1/N) * sum(r_t)
        std  = sqrt((1/N) * sum((r_t - mean)^2))
        Sharpe = (mean - r_f) / std

    **Edge cases**:
    - std = 0 (constant returns) -> 0.0 rather than infinity. numpy can
      leave rounding noise in the std of a constant series, so a std below
      1e-12 of |mean| also counts as 0. Small returns with a real spread
      (e.g. 1e-14 around 0) keep their ratio.
    - Empty returns -> EmptyInput.

    Args:
        returns: Period returns.
        risk_free_rate: Per-period risk-free rate (default 0).

    Returns:
        Sharpe ratio as a scalar (not annualized).
    """
    arr = _as_array(returns, "returns")

    mean_return = arr.mean()
    std_dev = arr.std(ddof=0)

    if std_dev == 0 or std_dev <= _RELATIVE_STD_NOISE * abs(mean_return):
        return 0.0

    return float((mean_return - risk_free_rate) / std_dev)


def compute_sortino_ratio(returns: Sequence[float], risk_free_rate: float = 0.0) -> float:
    """
    Compute the Sortino ratio: excess return per unit of downside deviation.

    **Conceptual**: Like Sharpe, but only returns below the risk-free rate count
    as risk. Upside volatility is not penalized.

    **Mathematical**:
        downside_dev = sqrt((1/N) * sum((r_t - r_f)^2 for r_t < r_f))
        Sortino = (mean(r_t) - r_f) / downside_dev
    Note the divisor is the full N, not just the number of downside periods.

    **Edge cases**:
    - No returns below r_f -> downside_dev = 0 -> 0.0.
    - Empty returns -> EmptyInput.

    Args:
        returns: Period returns.
        risk_free_rate: Per-period risk-free rate (default 0).

    Returns:
        Sortino ratio as a scalar (not annualized).
    """
    arr = _as_array(returns, "returns")

    mean_return = arr.mean()

    # Squared shortfalls below the target, averaged over every period
    shortfall = arr[arr < risk_free_rate] - risk_free_rate
    downside_deviation = np.sqrt(np.sum(shortfall ** 2) / arr.size)

    if downside_deviation == 0:
        return 0.0

    return float((mean_return - risk_free_rate) / downside_deviation)


def compute_calmar_ratio(equity_curve: Sequence[float], periods_per_year: int = 252) -> float:
    """
    Compute the Calmar ratio: annualized return divided by max drawdown.

    **Conceptual**: Contrasts growth against the worst pain endured. A
    strategy returning 20% a year with a 40% max drawdown has Calmar 0.5.

    **Edge cases**:
    - Max drawdown = 0 -> 0.0.
    - Fewer than 2 points -> InsufficientData (from the annualized return).

    Args:
        equity_curve: Equity values over time.
        periods_per_year: Periods in one year (252 for daily bars).

    Returns:
        Calmar ratio as a scalar.
    """
    annualized_return = compute_annualized_return(equity_curve, periods_per_year)
    max_drawdown = compute_max_drawdown(equity_curve)

    if max_drawdown == 0:
        return 0.0

    return float(annualized_return / max_drawdown)


# ============================================================================
# Equity-curve figures
# ============================================================================

def compute_drawdown_series(equity_curve: Sequence[float]) -> np.ndarray:
    """
    Drawdown at every point: fractional drop below the running peak.

    **Mathematical**: With peak_t = max(E_0, ..., E_t):
        drawdown_t = (peak_t - E_t) / peak_t
    Values are >= 0; 0 at every new high.

    Raises:
        EmptyInput: If the curve is empty.
        DegenerateEquity: If the running peak is zero (first point 0 and
                          never exceeded).
    """
    arr = _as_array(equity_curve, "equity_curve")

    running_peak = np.maximum.accumulate(arr)
    if np.any(running_peak == 0):
        raise DegenerateEquity("Drawdown is undefined while the running peak is zero.")

    return (running_peak - arr) / running_peak


def compute_max_drawdown(equity_curve: Sequence[float]) -> float:
    """
    Compute the maximum drawdown: worst peak-to-trough loss over the period.

    **Conceptual**: The single worst loss from a prior high, as a fraction of
    that high. A max drawdown of 0.30 means that at worst the portfolio was 30%
    below its best value so far.

    **Mathematical**:
        MDD = max_t (peak_t - E_t) / peak_t

    **Edge cases**:
    - Monotonically non-decreasing equity -> exactly 0.0.
    - Empty curve -> EmptyInput.

    Args:
        equity_curve: Equity values over time.

    Returns:
        Maximum drawdown (>= 0).
    """
    return float(compute_drawdown_series(equity_curve).max())


def compute_total_return(equity_curve: Sequence[float]) -> float:
    """
    Compute the overall return from first to last equity point.

    **Mathematical**:
        Total Return = (E_last - E_first) / E_first

    **Edge cases**:
    - Fewer than 2 points -> InsufficientData.
    - First point 0 -> DegenerateEquity.

    Args:
        equity_curve: Equity values over time.

    Returns:
        Total return as a decimal (e.g., 0.50 = 50% gain).
    """
    arr = np.asarray(equity_curve, dtype=float).ravel()
    if arr.size < 2:
        raise InsufficientData(
            f"equity_curve must have at least two values, got {arr.size}."
        )

    initial_equity = arr[0]
    final_equity = arr[-1]

    if initial_equity == 0:
        raise DegenerateEquity("Total return is undefined for a zero starting equity.")

    return float((final_equity - initial_equity) / initial_equity)


def compute_annualized_return(equity_curve: Sequence[float], periods_per_year: int = 252) -> float:
    """
    Compute the compound annual growth rate of the equity curve.

    **Conceptual**: "What constant yearly return would turn the first equity
    value into the last one over this many periods?"

    **Mathematical**: With N = number of equity points:
        years = N / periods_per_year
        Annualized = (1 + total_return) ^ (1 / years) - 1

    When periods_per_year == N the series spans exactly one year and the
    annualized return equals the total return.

    Args:
        equity_curve: Equity values over time (at least 2).
        periods_per_year: Periods in one year (252 for daily bars).

    Returns:
        Annualized return as a decimal.

    Raises:
        InsufficientData: With fewer than 2 points.
        InvalidConfiguration: If periods_per_year <= 0.
        ComputedMetricError: If compounding overflows the float range (a
                             large gain over a short curve).
    """
    _require_positive_periods(periods_per_year)
    total_return = compute_total_return(equity_curve)

    n_points = len(np.asarray(equity_curve, dtype=float).ravel())
    years = n_points / periods_per_year

    try:
        return float((1.0 + total_return) ** (1.0 / years) - 1.0)
    except OverflowError:
        raise ComputedMetricError(
            f"Annualized return overflows: total return {total_return:.6g} compounded "
            f"over {years:.6g} years ({n_points} points at {periods_per_year} per year)."
        )


# ============================================================================
# Return-distribution aggregates
# ============================================================================

def compute_win_rate(returns: Sequence[float]) -> float:
    """
    Fraction of periods with a strictly positive return.

    Raises:
        EmptyInput: If returns is empty.
    """
    arr = _as_array(returns, "returns")
    return float(np.count_nonzero(arr > 0) / arr.size)


def compute_profit_factor(returns: Sequence[float]) -> float:
    """
    Gross gains divided by gross losses.

    **Mathematical**:
        Profit Factor = sum(r_t for r_t > 0) / sum(|r_t| for r_t <= 0)

    **Edge cases**:
    - No losses -> 0.0 (the ratio is undefined, not infinite).
    - Empty returns -> EmptyInput.
    """
    arr = _as_array(returns, "returns")

    gross_profit = arr[arr > 0].sum()
    gross_loss = np.abs(arr[arr <= 0]).sum()

    if gross_loss == 0:
        return 0.0

    return float(gross_profit / gross_loss)


def compute_average_trade_return(returns: Sequence[float]) -> float:
    """
    Arithmetic mean of the period returns.

    Raises:
        EmptyInput: If returns is empty.
    """
    return float(_as_array(returns, "returns").mean())


def compute_expectancy(returns: Sequence[float]) -> float:
    """
    Win-rate-weighted blend of the average win and the average loss.

    **Mathematical**:
        win_rate = count(r > 0) / N
        avg_win = mean(r | r > 0)   (0 if no wins)
        avg_loss = mean(r | r < 0)  (0 if no losses; negative otherwise)
        Expectancy = win_rate * avg_win + (1 - win_rate) * avg_loss

    Flat periods count toward the loss rate but not the average loss.

    Raises:
        EmptyInput: If returns is empty.
    """
    arr = _as_array(returns, "returns")

    wins = arr[arr > 0]
    losses = arr[arr < 0]

    avg_win = wins.mean() if wins.size > 0 else 0.0
    avg_loss = losses.mean() if losses.size > 0 else 0.0

    win_rate = wins.size / arr.size
    loss_rate = 1.0 - win_rate

    return float(win_rate * avg_win + loss_rate * avg_loss)


# ============================================================================
# Rolling figures
# ============================================================================

class RollingReturns:
    """
    Finite, restartable sequence of window returns over an equity curve.

    For every window start i in [0, len(curve) - window_size]:
        (curve[i + window_size - 1] - curve[i]) / curve[i]

    Each iteration starts over from the first window. Values are computed
    lazily; a zero at a window start raises DegenerateEquity when reached.
    """

    def __init__(self, equity_curve: Sequence[float], window_size: int):
        self._curve = tuple(float(v) for v in equity_curve)
        self._window_size = window_size

    def __iter__(self) -> Iterator[float]:
        w = self._window_size
        for i in range(len(self._curve) - w + 1):
            start = self._curve[i]
            end = self._curve[i + w - 1]
            if start == 0:
                raise DegenerateEquity(f"Rolling window starting at {i} begins at zero equity.")
            yield (end - start) / start

    def __len__(self) -> int:
        return len(self._curve) - self._window_size + 1

    def __repr__(self) -> str:
        return f"RollingReturns(window_size={self._window_size}, windows={len(self)})"


def compute_rolling_returns(equity_curve: Sequence[float], window_size: int) -> RollingReturns:
    """
    Returns over every window of `window_size` consecutive equity points.

    Args:
        equity_curve: Equity values over time.
        window_size: Points per window (1 <= window_size <= len(curve)).
                     A window of 1 yields all zeros.

    Returns:
        RollingReturns (iterate it, or wrap in list()).

    Raises:
        InvalidWindow: If window_size < 1 or exceeds the curve length.
    """
    n_points = len(np.asarray(equity_curve, dtype=float).ravel())
    if window_size < 1 or window_size > n_points:
        raise InvalidWindow(
            f"window_size must be between 1 and the curve length ({n_points}), "
            f"got {window_size}."
        )
    return RollingReturns(equity_curve, window_size)


# ============================================================================
# Summary report
# ============================================================================

@dataclass(frozen=True)
class PerformanceReport:
    """
    Scalar summary of one backtest run.

    Attributes:
        total_return: (last - first) / first.
        annualized_return: Compound annual growth rate.
        sharpe_ratio: Per-period Sharpe (population std).
        sortino_ratio: Per-period Sortino.
        max_drawdown: Worst peak-to-trough fraction (>= 0).
        calmar_ratio: annualized_return / max_drawdown (0 with no drawdown).
        win_rate: Fraction of positive periods.
        profit_factor: Gross gains / gross losses (0 with no losses).
        average_trade_return: Mean period return.
        expectancy: Win-rate-weighted average win/loss.
        final_equity: Last equity point.
        num_periods: Number of equity points.
    """
    total_return: float
    annualized_return: float
    sharpe_ratio: float
    sortino_ratio: float
    max_drawdown: float
    calmar_ratio: float
    win_rate: float
    profit_factor: float
    average_trade_return: float
    expectancy: float
    final_equity: float
    num_periods: int

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


def compute_performance_report(
    equity_curve: Sequence[float],
    returns: Sequence[float],
    periods_per_year: int = 252,
    risk_free_rate: float = 0.0,
) -> PerformanceReport:
    """
    Compute every summary metric for a finished run.

    Args:
        equity_curve: Equity values over time (at least 2).
        returns: Period returns derived from the curve (non-empty).
        periods_per_year: Periods in one year (252 for daily bars).
        risk_free_rate: Per-period risk-free rate for Sharpe/Sortino.

    Returns:
        PerformanceReport.

    Raises:
        InsufficientData: If the curve has fewer than 2 points.
        EmptyInput: If returns is empty.
        InvalidConfiguration: If periods_per_year <= 0.
    """
    curve = np.asarray(equity_curve, dtype=float).ravel()

    return PerformanceReport(
        total_return=compute_total_return(curve),
        annualized_return=compute_annualized_return(curve, periods_per_year),
        sharpe_ratio=compute_sharpe_ratio(returns, risk_free_rate),
        sortino_ratio=compute_sortino_ratio(returns, risk_free_rate),
        max_drawdown=compute_max_drawdown(curve),
        calmar_ratio=compute_calmar_ratio(curve, periods_per_year),
        win_rate=compute_win_rate(returns),
        profit_factor=compute_profit_factor(returns),
        average_trade_return=compute_average_trade_return(returns),
        expectancy=compute_expectancy(returns),
        final_equity=float(curve[-1]),
        num_periods=int(curve.size),
    )
