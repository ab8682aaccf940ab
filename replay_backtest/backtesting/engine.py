"""
Deterministic event-replay engine for strategy evaluation.

**Conceptual**: The replay engine is the orchestrator that brings together a
price series, a strategy and a ledger. It walks the series bar by bar, oldest
first, lets the strategy act on each bar, and then values the ledger at that
bar's close. The output is an equity curve, its period returns, and (through
`run_backtest`) a performance report.

**Why separate engine from ledger and strategy?**
  - The engine owns time: ordering and lifecycle callbacks.
  - The ledger owns money: cash, positions, valuation.
  - The strategy owns decisions: when to buy or sell.
Each can be tested on its own and swapped without touching the others.

**Time-travel prevention**: No reordering, buffering or lookahead. Bar i+1 is
not touched until bar i's strategy call and mark-to-market have both finished,
so a decision at time t can only use information available at or before t.

**Lifecycle**: NOT_STARTED -> RUNNING -> FINISHED. An engine replays exactly
one series; build a new engine (and ledger) for the next run.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

import pandas as pd

from replay_backtest.analytics.risk_metrics import (
    PerformanceReport,
    compute_performance_report,
)
from replay_backtest.data.schemas import TimestampedSeries
from replay_backtest.errors import BacktestError, ComputedMetricError, InvalidConfiguration
from replay_backtest.execution.ledger import Ledger, LedgerSnapshot
from replay_backtest.execution.performance import PerformanceSeries
from replay_backtest.strategies.base import Strategy

logger = logging.getLogger(__name__)


class EngineState(Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    FINISHED = "finished"


class ReplayEngine:
    """
    Replays a series through a strategy and marks the ledger after every bar.

    Args:
        ledger: Ledger the strategy trades against; valued after each bar.
        strategy: Object implementing the Strategy protocol.
    """

    def __init__(self, ledger: Ledger, strategy: Strategy):
        self.ledger = ledger
        self.strategy = strategy
        self._state = EngineState.NOT_STARTED
        self._bars_processed = 0

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def bars_processed(self) -> int:
        return self._bars_processed

    def run(self, series: TimestampedSeries) -> PerformanceSeries:
        """
        Replay `series` from first bar to last.

        For each bar: `strategy.on_data(timestamp, bar)`, then
        `ledger.mark_to_market({symbol: close})` where the close comes from the
        bar's market-data projection. `on_start` and `on_end` bracket the loop
        and fire even for an empty series.

        Args:
            series: Chronologically ordered bars for one symbol.

        Returns:
            The ledger's performance series (equity curve and returns).

        Raises:
            InvalidConfiguration: If this engine has already been started.
            BacktestError: Any contract violation from the strategy or ledger.
                           The run is aborted and the state stays RUNNING.
        """
        if self._state is not EngineState.NOT_STARTED:
            raise InvalidConfiguration(
                f"ReplayEngine can only run once (current state: {self._state.value})."
            )

        logger.info("Backtesting started: %r", series)
        self._state = EngineState.RUNNING
        self.strategy.on_start()

        for timestamp, bar in series:
            try:
                self.strategy.on_data(timestamp, bar)
                close = bar.to_market_data()['Close']
                self.ledger.mark_to_market({series.symbol: close})
            except BacktestError:
                logger.error(
                    "Backtest aborted at %s after %d bars", timestamp, self._bars_processed,
                )
                raise
            self._bars_processed += 1

        self.strategy.on_end()
        self._state = EngineState.FINISHED
        logger.info(
            "Backtesting completed: %d bars, net worth %.2f",
            self._bars_processed, self.ledger.get_net_worth(),
        )

        return self.ledger.performance


@dataclass
class BacktestParams:
    """
    Parameters for a backtest run.

    Attributes:
        initial_cash: Starting capital (>= 0).
        periods_per_year: Bars per year, for annualization (default 252 daily bars).
        risk_free_rate: Per-period risk-free rate for Sharpe/Sortino (default 0).
    """
    initial_cash: float
    periods_per_year: int = 252
    risk_free_rate: float = 0.0

    def __post_init__(self):
        if self.initial_cash < 0:
            raise InvalidConfiguration(
                f"initial_cash cannot be negative, got {self.initial_cash}"
            )
        if self.periods_per_year <= 0:
            raise InvalidConfiguration(
                f"periods_per_year must be positive, got {self.periods_per_year}"
            )


@dataclass
class BacktestResult:
    """
    Results from a backtest run.

    Attributes:
        equity_curve: Equity after each bar, indexed by bar timestamp.
        returns: Period returns, indexed by the later timestamp of each pair.
        final_state: Ledger snapshot after the last bar.
        metrics: Performance report, or None if fewer than 2 equity points or
                 a metric is undefined (e.g. a zero starting equity).
        params: The BacktestParams that produced this result.
        strategy: The strategy instance (for inspecting recorded signals).
    """
    equity_curve: pd.Series
    returns: pd.Series
    final_state: LedgerSnapshot
    metrics: PerformanceReport | None = None
    params: BacktestParams | None = None
    strategy: Strategy | None = field(default=None, repr=False)


def run_backtest(
    series: TimestampedSeries,
    strategy_factory: Callable[[Ledger], Strategy],
    params: BacktestParams,
) -> BacktestResult:
    """
    Run a complete backtest and compute its metrics.

    Steps:
      1. Build a ledger funded with `params.initial_cash`.
      2. Build the strategy from `strategy_factory(ledger)`.
      3. Replay the series with a fresh ReplayEngine.
      4. Package the equity curve and returns as pandas Series.
      5. Compute the performance report when there are at least 2 points
         (left as None, with a warning, if a metric is undefined).

    Args:
        series: Bars to replay.
        strategy_factory: Callable taking the ledger and returning a strategy,
                          e.g. `lambda ledger: MovingAverageCrossoverStrategy(ledger, 5, 20)`.
        params: Run parameters.

    Returns:
        BacktestResult.

    Raises:
        BacktestError: Any fatal contract violation during setup or replay.
    """
    ledger = Ledger(initial_cash=params.initial_cash)
    strategy = strategy_factory(ledger)

    engine = ReplayEngine(ledger, strategy)
    performance = engine.run(series)

    timestamps = series.timestamps
    equity_curve = pd.Series(
        data=performance.equity_curve,
        index=pd.DatetimeIndex(timestamps, name='timestamp'),
        name='equity',
        dtype=float,
    )
    returns = pd.Series(
        data=performance.returns,
        index=pd.DatetimeIndex(timestamps[1:], name='timestamp'),
        name='return',
        dtype=float,
    )

    metrics = None
    if len(equity_curve) >= 2:
        try:
            metrics = compute_performance_report(
                performance.equity_curve,
                performance.returns,
                periods_per_year=params.periods_per_year,
                risk_free_rate=params.risk_free_rate,
            )
        except ComputedMetricError as e:
            # The replay itself finished; only the summary is undefined
            logger.warning("Performance metrics unavailable: %s", e)
    else:
        logger.warning(
            "Only %d equity point(s); skipping performance metrics", len(equity_curve),
        )

    return BacktestResult(
        equity_curve=equity_curve,
        returns=returns,
        final_state=ledger.snapshot(),
        metrics=metrics,
        params=params,
        strategy=strategy,
    )
