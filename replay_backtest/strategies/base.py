"""
Strategy interface and simple strategies for replay backtests.

**Conceptual**: This module defines the contract between strategies and the
replay engine. The engine drives one lifecycle per run:

    on_start()                      once, before the first bar
    on_data(timestamp, bar)         once per bar, oldest first
    on_end()                        once, after the last bar

A strategy keeps whatever rolling state it needs and acts by calling
`Ledger.buy` / `Ledger.sell` synchronously inside `on_data`. It never calls
`Ledger.mark_to_market`; the engine values the book right after each
`on_data` returns.

**Why order intents instead of target weights?**
  - The ledger trades whole shares with strict solvency checks, so a strategy
    must know whether an order is affordable before placing it.
  - Intents keep the control flow visible: a skipped signal is a logged
    decision inside the strategy, not a silent rebalancing difference.

**Time-travel prevention**: `on_data` only ever receives the current bar.
Anything a strategy knows about the past it must have stored itself.
"""

import logging
from typing import Protocol

import pandas as pd

from replay_backtest.data.schemas import PriceBar
from replay_backtest.errors import InvalidConfiguration
from replay_backtest.execution.ledger import Ledger

logger = logging.getLogger(__name__)


class Strategy(Protocol):
    """
    Strategy interface for replay backtests.

    This is a Protocol (structural typing), not an ABC: any object with these
    three methods can be replayed.
    """

    def on_start(self) -> None:
        """Called once before the first bar."""
        ...

    def on_data(self, timestamp: pd.Timestamp, bar: PriceBar) -> None:
        """
        Called once per bar in chronological order.

        Args:
            timestamp: Time of the bar. Decisions may use only this bar and
                       earlier ones.
            bar: The OHLCV observation at `timestamp`.
        """
        ...

    def on_end(self) -> None:
        """Called once after the last bar (also for an empty series)."""
        ...


# ============================================================================
# Simple strategy implementations for testing and benchmarking
# ============================================================================

class AlwaysCashStrategy:
    """
    Trivial strategy that never trades.

    **Expected behavior in backtest**: equity stays at initial cash on every
    bar, so the equity curve is flat and every return is 0. Useful to verify
    engine plumbing.
    """

    def on_start(self) -> None:
        pass

    def on_data(self, timestamp: pd.Timestamp, bar: PriceBar) -> None:
        pass

    def on_end(self) -> None:
        pass


class BuyAndHoldStrategy:
    """
    Buy once on the first bar, then hold to the end.

    **Conceptual**: The classic benchmark. With `lot_size=None` the strategy
    spends as much cash as whole shares allow at the first close; with a fixed
    `lot_size` it buys exactly that many shares (if affordable).

    Args:
        ledger: Ledger to trade against.
        symbol: Symbol to buy.
        lot_size: Shares to buy, or None for "all cash".

    Raises:
        InvalidConfiguration: If lot_size is given and not positive.
    """

    def __init__(self, ledger: Ledger, symbol: str = "SPY", lot_size: int | None = None):
        if lot_size is not None and lot_size <= 0:
            raise InvalidConfiguration(f"lot_size must be positive, got {lot_size}")
        self.ledger = ledger
        self.symbol = symbol
        self.lot_size = lot_size
        self._invested = False

    def on_start(self) -> None:
        self._invested = False

    def on_data(self, timestamp: pd.Timestamp, bar: PriceBar) -> None:
        if self._invested:
            return
        self._invested = True

        if self.lot_size is None:
            quantity = int(self.ledger.cash // bar.close)
        else:
            quantity = self.lot_size

        if quantity <= 0 or quantity * bar.close > self.ledger.cash:
            logger.info("%s: buy-and-hold entry skipped, insufficient cash", timestamp)
            return

        self.ledger.buy(self.symbol, quantity, bar.close)
        logger.info("%s: bought %d %s @ %.2f and holding", timestamp, quantity, self.symbol, bar.close)

    def on_end(self) -> None:
        pass
