"""
Tests for the replay engine.

This module tests the replay engine's ability to:
  - Call the strategy lifecycle in the right sequence.
  - Mark the ledger at each bar's close, after the strategy acts.
  - Enforce the NOT_STARTED -> RUNNING -> FINISHED lifecycle.
  - Abort on contract violations.
  - Package equity curves, returns and metrics in run_backtest.

All tests use trivial or recording strategies and short synthetic series with
known expected outcomes.
"""

import logging

import pandas as pd
import pytest

from replay_backtest.backtesting.engine import (
    BacktestParams,
    BacktestResult,
    EngineState,
    ReplayEngine,
    run_backtest,
)
from replay_backtest.errors import InsufficientFunds, InvalidConfiguration
from replay_backtest.execution.ledger import Ledger
from replay_backtest.strategies.base import AlwaysCashStrategy, BuyAndHoldStrategy
from replay_backtest.strategies.moving_average import MovingAverageCrossoverStrategy


class RecordingStrategy:
    """Strategy that records every callback and the equity seen at each bar."""

    def __init__(self, ledger: Ledger):
        self.ledger = ledger
        self.calls: list[str] = []
        self.marks_seen: list[int] = []

    def on_start(self):
        self.calls.append("start")

    def on_data(self, timestamp, bar):
        self.calls.append(f"data:{timestamp.date()}")
        self.marks_seen.append(len(self.ledger.equity_curve))

    def on_end(self):
        self.calls.append("end")


class OverspendingStrategy:
    """Strategy that tries to buy far more than it can afford on the second bar."""

    def __init__(self, ledger: Ledger):
        self.ledger = ledger
        self._bars = 0

    def on_start(self):
        pass

    def on_data(self, timestamp, bar):
        self._bars += 1
        if self._bars == 2:
            self.ledger.buy("SPY", 1_000_000, bar.close)

    def on_end(self):
        pass


# ============================================================================
# ReplayEngine
# ============================================================================

def test_lifecycle_order(make_series):
    ledger = Ledger(initial_cash=100)
    strategy = RecordingStrategy(ledger)
    engine = ReplayEngine(ledger, strategy)

    engine.run(make_series([1.0, 2.0, 3.0], start="2024-03-01"))

    assert strategy.calls == [
        "start", "data:2024-03-01", "data:2024-03-02", "data:2024-03-03", "end",
    ]
    # Bar i sees exactly i prior marks: valuation happens after on_data
    assert strategy.marks_seen == [0, 1, 2]


def test_empty_series_still_brackets_lifecycle(make_series):
    ledger = Ledger(initial_cash=100)
    strategy = RecordingStrategy(ledger)
    engine = ReplayEngine(ledger, strategy)

    performance = engine.run(make_series([]))

    assert strategy.calls == ["start", "end"]
    assert performance.equity_curve == []
    assert performance.returns == []
    assert engine.state is EngineState.FINISHED


def test_state_transitions_and_single_run(make_series):
    ledger = Ledger(initial_cash=100)
    engine = ReplayEngine(ledger, AlwaysCashStrategy())
    assert engine.state is EngineState.NOT_STARTED

    engine.run(make_series([1.0, 2.0]))
    assert engine.state is EngineState.FINISHED
    assert engine.bars_processed == 2

    with pytest.raises(InvalidConfiguration):
        engine.run(make_series([1.0]))


def test_always_cash_gives_flat_curve(make_series):
    ledger = Ledger(initial_cash=1_000)
    performance = ReplayEngine(ledger, AlwaysCashStrategy()).run(make_series([5.0, 7.0, 3.0, 9.0]))

    assert performance.equity_curve == [1_000.0] * 4
    assert performance.returns == [0.0] * 3


def test_marks_use_bar_close_for_series_symbol(make_series):
    """
    Scenario: buy-and-hold 10 shares of QQQ on a QQQ series with closes [10, 12, 9]
    Expected equity: 900 + 10*close -> [1000, 1020, 990]
    """
    ledger = Ledger(initial_cash=1_000)
    strategy = BuyAndHoldStrategy(ledger, symbol="QQQ", lot_size=10)

    performance = ReplayEngine(ledger, strategy).run(make_series([10.0, 12.0, 9.0], symbol="QQQ"))

    assert performance.equity_curve == pytest.approx([1_000.0, 1_020.0, 990.0])
    assert performance.returns == pytest.approx([0.02, -30.0 / 1_020.0])


def test_contract_violation_aborts_run(make_series):
    ledger = Ledger(initial_cash=100)
    engine = ReplayEngine(ledger, OverspendingStrategy(ledger))

    with pytest.raises(InsufficientFunds):
        engine.run(make_series([1.0, 2.0, 3.0]))

    assert engine.state is EngineState.RUNNING
    assert engine.bars_processed == 1
    assert ledger.equity_curve == [100.0]


# ============================================================================
# run_backtest
# ============================================================================

def test_run_backtest_packages_result(make_series):
    series = make_series([100.0, 110.0, 99.0, 120.0])
    params = BacktestParams(initial_cash=1_000, periods_per_year=4)

    result = run_backtest(series, lambda ledger: BuyAndHoldStrategy(ledger, lot_size=10), params)

    assert isinstance(result, BacktestResult)
    assert isinstance(result.equity_curve.index, pd.DatetimeIndex)
    assert list(result.equity_curve.index) == series.timestamps
    assert list(result.returns.index) == series.timestamps[1:]
    assert result.equity_curve.tolist() == pytest.approx([1_000.0, 1_100.0, 990.0, 1_200.0])

    assert result.metrics is not None
    assert result.metrics.total_return == pytest.approx(0.2)
    assert result.metrics.max_drawdown == pytest.approx(0.1)
    # periods_per_year == number of points -> annualized equals total
    assert result.metrics.annualized_return == pytest.approx(0.2)

    assert result.final_state.positions["SPY"].quantity == 10
    assert result.final_state.net_worth == pytest.approx(1_200.0)
    assert result.params is params


def test_run_backtest_single_bar_has_no_metrics(make_series):
    result = run_backtest(
        make_series([100.0]),
        lambda ledger: AlwaysCashStrategy(),
        BacktestParams(initial_cash=500),
    )

    assert result.metrics is None
    assert result.equity_curve.tolist() == [500.0]
    assert result.returns.empty


def test_run_backtest_with_crossover_strategy(make_series):
    result = run_backtest(
        make_series([10.0, 10.0, 10.0, 12.0, 8.0]),
        lambda ledger: MovingAverageCrossoverStrategy(ledger, 2, 3),
        BacktestParams(initial_cash=1_000),
    )

    # Buy 10 @ 12 on bar 4, then valued at 8 on bar 5
    assert result.equity_curve.tolist() == pytest.approx([1_000.0, 1_000.0, 1_000.0, 1_000.0, 960.0])
    assert len(result.returns) == len(result.equity_curve) - 1
    assert len(result.strategy.signals) == 3


def test_zero_cash_run_completes_without_metrics(make_series, caplog):
    """A run funded with $0 replays every bar; only the metrics are undefined."""
    with caplog.at_level(logging.WARNING, logger="replay_backtest.backtesting.engine"):
        result = run_backtest(
            make_series([10.0, 11.0]),
            lambda ledger: AlwaysCashStrategy(),
            BacktestParams(initial_cash=0),
        )

    assert result.equity_curve.tolist() == [0.0, 0.0]
    assert result.returns.tolist() == [0.0]
    assert result.metrics is None
    assert "Performance metrics unavailable" in caplog.text


def test_unpriced_holding_does_not_abort_run(make_series):
    """
    Scenario: buy-and-hold 100 SPY @ 10 with all $1,000, but replay a QQQ series
    Expected: SPY is never priced, every mark is 0 and the run still finishes
    """
    ledger = Ledger(initial_cash=1_000)
    engine = ReplayEngine(ledger, BuyAndHoldStrategy(ledger, symbol="SPY"))

    performance = engine.run(make_series([10.0, 11.0, 12.0], symbol="QQQ"))

    assert engine.state is EngineState.FINISHED
    assert performance.equity_curve == [0.0, 0.0, 0.0]
    assert performance.returns == [0.0, 0.0]
    assert ledger.get_position("SPY") == 100


@pytest.mark.parametrize(
    "kwargs",
    [{"initial_cash": -1.0}, {"initial_cash": 100.0, "periods_per_year": 0}],
)
def test_backtest_params_validation(kwargs):
    with pytest.raises(InvalidConfiguration):
        BacktestParams(**kwargs)


def test_overflowing_annualized_return_leaves_metrics_empty(make_series):
    """A 1000x gain over 2 daily bars cannot be annualized; the run still returns."""
    result = run_backtest(
        make_series([1.0, 1_000.0]),
        lambda ledger: BuyAndHoldStrategy(ledger),
        BacktestParams(initial_cash=1.0, periods_per_year=252),
    )

    assert result.equity_curve.tolist() == pytest.approx([1.0, 1_000.0])
    assert result.metrics is None
