"""
Error taxonomy for the replay backtester.

**Conceptual**: Every contract violation raised by the core (ledger, strategies,
engine, metrics) is a `BacktestError`. Each subclass carries an `ErrorKind`
member on its `kind` attribute, so callers can either catch a specific class
or catch the base class and branch on `err.kind`:

    try:
        ledger.buy("SPY", 10, 450.0)
    except BacktestError as err:
        if err.kind is ErrorKind.INSUFFICIENT_FUNDS:
            ...

Recoverable situations (a strategy skipping a signal, a missing price during a
mark, a malformed CSV row) are logged and never raised; see the modules that
handle them.
"""

from enum import Enum


class ErrorKind(Enum):
    """Discriminator for the failure families the core can report."""

    INVALID_CONFIGURATION = "invalid_configuration"
    INVALID_ORDER = "invalid_order"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INSUFFICIENT_POSITION = "insufficient_position"
    EMPTY_INPUT = "empty_input"
    INSUFFICIENT_DATA = "insufficient_data"
    INVALID_WINDOW = "invalid_window"
    COMPUTED_METRIC = "computed_metric"


class BacktestError(Exception):
    """Base error for all backtest contract violations."""

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class InvalidConfiguration(BacktestError):
    """Run or strategy parameters are out of range."""

    kind = ErrorKind.INVALID_CONFIGURATION


class InvalidOrder(BacktestError):
    """Order quantity or price is not strictly positive."""

    kind = ErrorKind.INVALID_ORDER


class InsufficientFunds(BacktestError):
    """A buy would drive cash below zero."""

    kind = ErrorKind.INSUFFICIENT_FUNDS


class InsufficientPosition(BacktestError):
    """A sell asks for more shares than are held."""

    kind = ErrorKind.INSUFFICIENT_POSITION


class EmptyInput(BacktestError):
    """A metric received an empty series."""

    kind = ErrorKind.EMPTY_INPUT


class InsufficientData(BacktestError):
    """A metric needs more points than it was given."""

    kind = ErrorKind.INSUFFICIENT_DATA


class InvalidWindow(BacktestError):
    """A rolling window does not fit the series."""

    kind = ErrorKind.INVALID_WINDOW


class ComputedMetricError(BacktestError):
    """A figure cannot be computed from otherwise valid inputs."""

    kind = ErrorKind.COMPUTED_METRIC


class DegenerateEquity(ComputedMetricError):
    """An equity value of zero would be used as a divisor."""
