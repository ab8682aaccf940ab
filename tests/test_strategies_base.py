"""
Tests for the benchmark strategies in replay_backtest/strategies/base.py
"""

import pytest

from replay_backtest.errors import InvalidConfiguration
from replay_backtest.execution.ledger import Ledger
from replay_backtest.strategies.base import AlwaysCashStrategy, BuyAndHoldStrategy, Strategy


def test_strategies_satisfy_protocol_shape():
    for strategy in (AlwaysCashStrategy(), BuyAndHoldStrategy(Ledger(100))):
        assert callable(strategy.on_start)
        assert callable(strategy.on_data)
        assert callable(strategy.on_end)


def test_always_cash_never_trades(make_series):
    ledger = Ledger(initial_cash=1_000)
    strategy: Strategy = AlwaysCashStrategy()

    strategy.on_start()
    for timestamp, bar in make_series([10.0, 11.0, 12.0]):
        strategy.on_data(timestamp, bar)
    strategy.on_end()

    assert ledger.cash == 1_000
    assert ledger.positions == {}


def test_buy_and_hold_spends_all_cash_in_whole_shares(make_series):
    """
    Scenario: $1,000 cash, first close $30
    Expected: floor(1000 / 30) = 33 shares, cash 1,000 - 990 = 10
    """
    ledger = Ledger(initial_cash=1_000)
    strategy = BuyAndHoldStrategy(ledger)

    strategy.on_start()
    for timestamp, bar in make_series([30.0, 40.0, 20.0]):
        strategy.on_data(timestamp, bar)

    assert ledger.get_position("SPY") == 33
    assert ledger.cash == pytest.approx(10.0)


def test_buy_and_hold_fixed_lot(make_series):
    ledger = Ledger(initial_cash=1_000)
    strategy = BuyAndHoldStrategy(ledger, symbol="QQQ", lot_size=4)

    strategy.on_start()
    for timestamp, bar in make_series([50.0, 60.0], symbol="QQQ"):
        strategy.on_data(timestamp, bar)

    assert ledger.get_position("QQQ") == 4
    assert ledger.get_avg_cost_basis("QQQ") == pytest.approx(50.0)


def test_buy_and_hold_unaffordable_entry_is_skipped(make_series):
    ledger = Ledger(initial_cash=10)
    strategy = BuyAndHoldStrategy(ledger)

    strategy.on_start()
    for timestamp, bar in make_series([30.0, 5.0]):
        strategy.on_data(timestamp, bar)

    # Only the first bar is an entry opportunity
    assert ledger.positions == {}
    assert ledger.cash == 10


def test_buy_and_hold_rejects_bad_lot():
    with pytest.raises(InvalidConfiguration):
        BuyAndHoldStrategy(Ledger(100), lot_size=0)
