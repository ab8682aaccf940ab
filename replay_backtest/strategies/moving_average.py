"""
Moving-average crossover strategy.

**Conceptual**: Trend following in its simplest form. When the average of the
last few closes (short window) sits above the average of a longer history
(long window), prices are rising relative to their recent past, so the
strategy buys a fixed lot; when it sits below, it sells a lot. Equal averages
mean no signal.

**State**: a bounded buffer of the last `long_window` closes. The oldest close
is evicted as each new one arrives, so memory is constant for any series
length. No decision is made until the buffer is full.

**Signal policy**:
  - short MA > long MA: buy `lot_size` shares if cash covers them at the close.
  - short MA < long MA: sell `lot_size` shares if at least that many are held.
  - equal: hold.
Unaffordable buys and uncovered sells are skipped and logged, not raised.
"""

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum

import pandas as pd

from replay_backtest.data.schemas import PriceBar
from replay_backtest.errors import InvalidConfiguration
from replay_backtest.execution.ledger import Ledger
from replay_backtest.utils.math import compute_simple_moving_average

logger = logging.getLogger(__name__)


class SignalAction(Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass(frozen=True)
class Signal:
    """
    One crossover decision, recorded for every bar with a full buffer.

    Attributes:
        timestamp: Bar the decision was made on.
        action: BUY, SELL or HOLD.
        short_ma: Short-window moving average at that bar.
        long_ma: Long-window moving average at that bar.
        price: Close the order would fill at.
        executed: True if the order reached the ledger (always False for HOLD).
    """
    timestamp: pd.Timestamp
    action: SignalAction
    short_ma: float
    long_ma: float
    price: float
    executed: bool


class MovingAverageCrossoverStrategy:
    """
    Fixed-lot moving-average crossover on a single symbol.

    Args:
        ledger: Ledger to trade against.
        short_window: Bars in the short moving average (> 0).
        long_window: Bars in the long moving average (>= short_window).
        symbol: Symbol to trade (default "SPY").
        lot_size: Shares per signal (> 0, default 10).

    Raises:
        InvalidConfiguration: If a window or the lot size is out of range.
    """

    def __init__(
        self,
        ledger: Ledger,
        short_window: int,
        long_window: int,
        symbol: str = "SPY",
        lot_size: int = 10,
    ):
        if short_window <= 0 or long_window <= 0 or short_window > long_window:
            raise InvalidConfiguration(
                f"Invalid window sizes for moving averages: "
                f"short_window={short_window}, long_window={long_window}. "
                f"Both must be positive and short_window <= long_window."
            )
        if lot_size <= 0:
            raise InvalidConfiguration(f"lot_size must be positive, got {lot_size}")

        self.ledger = ledger
        self.short_window = short_window
        self.long_window = long_window
        self.symbol = symbol
        self.lot_size = lot_size

        # deque(maxlen=...) evicts the oldest close on overflow
        self._closes: deque[float] = deque(maxlen=long_window)
        self.signals: list[Signal] = []

    def on_start(self) -> None:
        logger.info(
            "Starting moving average crossover on %s (short=%d, long=%d, lot=%d)",
            self.symbol, self.short_window, self.long_window, self.lot_size,
        )

    def on_data(self, timestamp: pd.Timestamp, bar: PriceBar) -> None:
        self._closes.append(bar.close)

        if len(self._closes) < self.long_window:
            return

        short_ma = compute_simple_moving_average(self._closes, self.short_window)
        long_ma = compute_simple_moving_average(self._closes, self.long_window)
        logger.debug("%s: short MA = %.4f, long MA = %.4f", timestamp, short_ma, long_ma)

        if short_ma > long_ma:
            action = SignalAction.BUY
            executed = self._execute_buy(timestamp, bar.close)
        elif short_ma < long_ma:
            action = SignalAction.SELL
            executed = self._execute_sell(timestamp, bar.close)
        else:
            action = SignalAction.HOLD
            executed = False

        self.signals.append(
            Signal(
                timestamp=timestamp,
                action=action,
                short_ma=short_ma,
                long_ma=long_ma,
                price=bar.close,
                executed=executed,
            )
        )

    def on_end(self) -> None:
        executed = sum(1 for s in self.signals if s.executed)
        logger.info(
            "Moving average crossover finished: %d signals, %d executed, %d %s held",
            len(self.signals), executed, self.ledger.get_position(self.symbol), self.symbol,
        )

    @property
    def window(self) -> list[float]:
        """Closes currently buffered, oldest first."""
        return list(self._closes)

    # ========================================================================
    # Internal helper methods
    # ========================================================================

    def _execute_buy(self, timestamp: pd.Timestamp, price: float) -> bool:
        if self.ledger.cash < price * self.lot_size:
            logger.info("%s: Buy signal skipped due to insufficient cash.", timestamp)
            return False
        self.ledger.buy(self.symbol, self.lot_size, price)
        logger.info("%s: Buy signal executed (%d %s @ %.2f).", timestamp, self.lot_size, self.symbol, price)
        return True

    def _execute_sell(self, timestamp: pd.Timestamp, price: float) -> bool:
        if self.ledger.get_position(self.symbol) < self.lot_size:
            logger.info("%s: Sell signal skipped due to insufficient shares.", timestamp)
            return False
        self.ledger.sell(self.symbol, self.lot_size, price)
        logger.info("%s: Sell signal executed (%d %s @ %.2f).", timestamp, self.lot_size, self.symbol, price)
        return True
