"""
Price bar and time-series contracts consumed by the replay engine.

**Conceptual**: This module defines the "data contracts" between the loader and
the core. A `PriceBar` is one OHLCV observation; a `TimestampedSeries` is the
chronologically ordered, read-only collection of bars for one symbol that the
engine iterates. Validation happens here, once, so the engine and strategies
can assume clean data.

**Schema philosophy**:
  - Timestamps are parsed into `pd.Timestamp` values on construction. Ordering
    is always by the parsed value, never by the raw string (a string sort only
    matches calendar order for formats like `YYYY-MM-DD`).
  - Series are sorted strictly ascending (oldest first), the order of replay.
  - Duplicate timestamps are rejected: one bar per timestamp.
  - Validation raises SchemaValidationError with actionable messages.
"""

from dataclasses import dataclass
from typing import Iterable, Iterator

import pandas as pd


class SchemaValidationError(Exception):
    """
    Raised when price data does not conform to the expected schema.

    **Conceptual**: This exception signals data problems (missing columns,
    unparseable timestamps, duplicate timestamps, impossible bar values) and
    should include enough context (file path, row, value) for quick remediation.
    """
    pass


# Column layout of a price CSV, in file order
PRICE_BAR_COLUMNS = [
    'timestamp',
    'open',
    'high',
    'low',
    'close',
    'volume',
]

# Keys of the market-data projection (volume is not a price)
MARKET_DATA_FIELDS = ('Open', 'High', 'Low', 'Close')


@dataclass(frozen=True)
class PriceBar:
    """
    One OHLCV observation.

    **Conceptual**: Bars are immutable once constructed. The closing price is
    the valuation price for mark-to-market, so it must be strictly positive.
    Volume is informational and never used to value a position.

    Attributes:
        open: Opening price.
        high: High of the period.
        low: Low of the period.
        close: Closing price (> 0).
        volume: Shares traded (integer, >= 0).
    """
    open: float
    high: float
    low: float
    close: float
    volume: int

    def __post_init__(self):
        """Validate bar values after initialization."""
        if not self.close > 0:
            raise SchemaValidationError(
                f"close must be positive for valuation, got {self.close}"
            )
        if self.volume < 0:
            raise SchemaValidationError(
                f"volume must be non-negative, got {self.volume}"
            )

    def to_market_data(self) -> dict[str, float]:
        """
        Project the bar onto its price fields.

        Returns:
            Mapping with exactly the keys Open, High, Low, Close.
        """
        return {
            'Open': self.open,
            'High': self.high,
            'Low': self.low,
            'Close': self.close,
        }


class TimestampedSeries:
    """
    Chronologically ordered, immutable sequence of (timestamp, PriceBar) pairs.

    **Conceptual**: The series is owned by whoever loaded it; the engine only
    iterates it. Construction parses every timestamp, sorts by the parsed value
    and rejects duplicates, so iteration order is true calendar order whatever
    string format the source used.

    Args:
        rows: Iterable of (timestamp, bar) pairs. Timestamps may be strings,
              datetimes or pd.Timestamp values, in any order.
        symbol: Instrument the bars describe (used as the valuation key).

    Raises:
        SchemaValidationError: If a timestamp cannot be parsed or appears twice.
    """

    def __init__(
        self,
        rows: Iterable[tuple[object, PriceBar]],
        symbol: str = "SPY",
    ):
        if not symbol:
            raise SchemaValidationError("symbol must be a non-empty string")

        parsed: list[tuple[pd.Timestamp, PriceBar]] = []
        for raw_ts, bar in rows:
            try:
                ts = pd.Timestamp(raw_ts)
            except (ValueError, TypeError) as e:
                raise SchemaValidationError(
                    f"{symbol}: timestamp {raw_ts!r} is not parseable. Error: {e}"
                )
            if pd.isna(ts):
                raise SchemaValidationError(f"{symbol}: timestamp {raw_ts!r} is missing")
            parsed.append((ts, bar))

        # Stable sort on the parsed value only
        parsed.sort(key=lambda item: item[0])

        for (prev_ts, _), (ts, _) in zip(parsed, parsed[1:]):
            if ts == prev_ts:
                raise SchemaValidationError(
                    f"{symbol}: duplicate timestamp {ts}. "
                    f"Expected exactly one bar per timestamp."
                )

        self._rows: tuple[tuple[pd.Timestamp, PriceBar], ...] = tuple(parsed)
        self._symbol = symbol

    @classmethod
    def from_frame(cls, df: pd.DataFrame, symbol: str = "SPY") -> "TimestampedSeries":
        """
        Build a series from a DataFrame with the PRICE_BAR_COLUMNS layout.

        Raises:
            SchemaValidationError: If columns are missing or a row is invalid.
        """
        missing_cols = set(PRICE_BAR_COLUMNS) - set(df.columns)
        if missing_cols:
            raise SchemaValidationError(
                f"{symbol}: Missing required columns: {sorted(missing_cols)}. "
                f"Expected columns: {PRICE_BAR_COLUMNS}. "
                f"Found columns: {list(df.columns)}."
            )

        rows = (
            (
                row.timestamp,
                PriceBar(
                    open=float(row.open),
                    high=float(row.high),
                    low=float(row.low),
                    close=float(row.close),
                    volume=int(row.volume),
                ),
            )
            for row in df.itertuples(index=False)
        )
        return cls(rows, symbol=symbol)

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def timestamps(self) -> list[pd.Timestamp]:
        return [ts for ts, _ in self._rows]

    @property
    def closes(self) -> list[float]:
        return [bar.close for _, bar in self._rows]

    def __iter__(self) -> Iterator[tuple[pd.Timestamp, PriceBar]]:
        return iter(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def __repr__(self) -> str:
        if not self._rows:
            return f"TimestampedSeries(symbol={self._symbol!r}, empty)"
        return (
            f"TimestampedSeries(symbol={self._symbol!r}, bars={len(self._rows)}, "
            f"start={self._rows[0][0]}, end={self._rows[-1][0]})"
        )
