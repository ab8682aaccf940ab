"""
Cash and position ledger for single-symbol backtests.

**Conceptual**: The Ledger is the single owner of cash, share counts, cost
basis and the equity curve. Strategies express intents by calling `buy` and
`sell`; the replay engine values the book once per bar by calling
`mark_to_market`. Nothing else mutates ledger state.

**Financial assumptions** (documented for reproducibility):
  - Orders fill immediately and completely at the price given.
  - Whole shares only; no shorting, no margin. Cash can never go negative.
  - No commissions or slippage.
  - Average cost basis is the quantity-weighted blend of all buys since the
    position was last flat. Sells do not change the basis of what remains.

**Invariants**:
  - cash >= 0 at all times.
  - A symbol with zero shares is absent from the book (its basis goes with it).
  - A rejected order leaves every field unchanged.
  - len(returns) == max(0, len(equity_curve) - 1).
"""

import logging
from dataclasses import dataclass, field
from numbers import Integral
from typing import Mapping

from replay_backtest.errors import (
    InsufficientFunds,
    InsufficientPosition,
    InvalidConfiguration,
    InvalidOrder,
)
from replay_backtest.execution.performance import PerformanceSeries

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Position:
    """
    Holding in a single symbol.

    Attributes:
        symbol: Instrument symbol (e.g., "SPY").
        quantity: Shares held (always >= 1 while the position exists).
        avg_cost: Quantity-weighted average purchase price per share.
    """
    symbol: str
    quantity: int
    avg_cost: float

    @property
    def cost_value(self) -> float:
        """Total amount paid for the shares still held."""
        return self.quantity * self.avg_cost


@dataclass(frozen=True)
class LedgerSnapshot:
    """
    Point-in-time copy of the ledger, for logging and reports.

    Attributes:
        cash: Cash balance.
        positions: symbol -> Position (only non-zero holdings).
        net_worth: Last marked total, or cash if never marked.
        marks: Number of equity points recorded so far.
    """
    cash: float
    positions: dict[str, Position] = field(default_factory=dict)
    net_worth: float = 0.0
    marks: int = 0


class Ledger:
    """
    Portfolio ledger enforcing solvency and cost-basis accounting.

    Args:
        initial_cash: Starting cash (>= 0). Routed through set_initial_cash.

    Raises:
        InvalidConfiguration: If initial_cash < 0.
    """

    def __init__(self, initial_cash: float = 0.0):
        self._cash = 0.0
        self._quantities: dict[str, int] = {}
        self._avg_cost: dict[str, float] = {}
        self._performance = PerformanceSeries()
        self.set_initial_cash(initial_cash)

    def set_initial_cash(self, amount: float) -> None:
        """
        Reset the ledger to `amount` of cash and nothing else.

        Clears positions, cost basis, the equity curve and returns.

        Raises:
            InvalidConfiguration: If amount < 0.
        """
        if amount < 0:
            raise InvalidConfiguration(f"initial cash cannot be negative, got {amount}")

        self._cash = float(amount)
        self._quantities.clear()
        self._avg_cost.clear()
        self._performance.clear()

    # ========================================================================
    # Orders
    # ========================================================================

    def buy(self, symbol: str, quantity: int, price: float) -> None:
        """
        Buy `quantity` shares of `symbol` at `price`.

        **Financial logic**:
          - cost = quantity * price, paid from cash.
          - new_basis = (old_basis * old_qty + cost) / (old_qty + quantity),
            with old_basis and old_qty 0 for a symbol not held.

        Raises:
            InvalidOrder: If quantity or price is not strictly positive,
                          or quantity is not a whole number of shares.
            InsufficientFunds: If cost exceeds available cash.
        """
        self._validate_order(symbol, quantity, price)

        cost = quantity * price
        if cost > self._cash:
            raise InsufficientFunds(
                f"buy {quantity} {symbol} @ {price} costs {cost:.2f}, "
                f"only {self._cash:.2f} cash available"
            )

        old_qty = self._quantities.get(symbol, 0)
        old_basis = self._avg_cost.get(symbol, 0.0)
        new_qty = old_qty + quantity

        self._cash -= cost
        self._quantities[symbol] = new_qty
        self._avg_cost[symbol] = (old_basis * old_qty + cost) / new_qty

        logger.debug(
            "BUY %d %s @ %.4f; cash=%.2f position=%d basis=%.4f",
            quantity, symbol, price, self._cash, new_qty, self._avg_cost[symbol],
        )

    def sell(self, symbol: str, quantity: int, price: float) -> None:
        """
        Sell `quantity` shares of `symbol` at `price`.

        Proceeds are added to cash. A position sold down to zero is removed
        along with its cost basis.

        Raises:
            InvalidOrder: If quantity or price is not strictly positive,
                          or quantity is not a whole number of shares.
            InsufficientPosition: If fewer than `quantity` shares are held.
        """
        self._validate_order(symbol, quantity, price)

        held = self._quantities.get(symbol, 0)
        if held < quantity:
            raise InsufficientPosition(
                f"sell {quantity} {symbol} requested, only {held} held"
            )

        self._cash += quantity * price
        remaining = held - quantity

        if remaining == 0:
            del self._quantities[symbol]
            del self._avg_cost[symbol]
        else:
            self._quantities[symbol] = remaining

        logger.debug(
            "SELL %d %s @ %.4f; cash=%.2f position=%d",
            quantity, symbol, price, self._cash, remaining,
        )

    # ========================================================================
    # Valuation
    # ========================================================================

    def mark_to_market(self, current_prices: Mapping[str, float]) -> float:
        """
        Value cash plus holdings at `current_prices` and record the result.

        **Degraded valuation**: A held symbol missing from `current_prices`
        is logged as a warning and contributes 0 to this mark only.

        Args:
            current_prices: symbol -> price snapshot for this period.

        Returns:
            The total recorded on the equity curve. A zero total is recorded
            too; the return out of it is recorded as 0.0.
        """
        total_value = self._cash
        for symbol, quantity in self._quantities.items():
            price = current_prices.get(symbol)
            if price is None:
                logger.warning(
                    "No current price for held symbol %s; valuing %d shares at 0 for this mark",
                    symbol, quantity,
                )
                continue
            total_value += quantity * price

        self._performance.append(total_value)
        logger.debug("Marked net worth %.2f (%d points)", total_value, len(self._performance))
        return total_value

    def get_net_worth(self) -> float:
        """
        Most recent mark-to-market total, or cash if nothing has been marked.

        There is no price source outside the replay loop, so this never
        revalues positions itself.
        """
        latest = self._performance.latest
        return self._cash if latest is None else latest

    # ========================================================================
    # Read accessors
    # ========================================================================

    @property
    def cash(self) -> float:
        return self._cash

    @property
    def positions(self) -> dict[str, Position]:
        return {
            symbol: Position(symbol=symbol, quantity=qty, avg_cost=self._avg_cost[symbol])
            for symbol, qty in self._quantities.items()
        }

    @property
    def performance(self) -> PerformanceSeries:
        return self._performance

    @property
    def equity_curve(self) -> list[float]:
        return self._performance.equity_curve

    @property
    def returns(self) -> list[float]:
        return self._performance.returns

    def get_position(self, symbol: str) -> int:
        """Shares held in `symbol` (0 when flat)."""
        return self._quantities.get(symbol, 0)

    def get_avg_cost_basis(self, symbol: str) -> float:
        """
        Average cost basis of the shares held in `symbol`.

        Raises:
            InsufficientPosition: If `symbol` is not held (a flat position
                                  has no cost basis).
        """
        if symbol not in self._avg_cost:
            raise InsufficientPosition(f"no cost basis for {symbol}: position is flat")
        return self._avg_cost[symbol]

    def snapshot(self) -> LedgerSnapshot:
        return LedgerSnapshot(
            cash=self._cash,
            positions=self.positions,
            net_worth=self.get_net_worth(),
            marks=len(self._performance),
        )

    # ========================================================================
    # Internal helper methods
    # ========================================================================

    @staticmethod
    def _validate_order(symbol: str, quantity: int, price: float) -> None:
        if isinstance(quantity, bool) or not isinstance(quantity, Integral):
            raise InvalidOrder(
                f"quantity must be a whole number of shares, got {quantity!r} for {symbol}"
            )
        if quantity <= 0 or not price > 0:
            raise InvalidOrder(
                f"quantity and price must be positive, got quantity={quantity} "
                f"price={price} for {symbol}"
            )
