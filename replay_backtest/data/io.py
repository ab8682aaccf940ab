"""
CSV readers and writers for price bars and backtest outputs.

**Conceptual**: This module is the I/O boundary of the system. Price CSVs are
read here, cleaned row by row, and handed to the core as a
`TimestampedSeries`; finished equity curves are written back here. Keeping I/O
in one place means the engine, ledger and strategies never touch files.

**Row policy**: A malformed row is a recoverable problem. It is logged at
WARNING with its line number and skipped, and loading continues. Problems that
make the whole file unusable (missing file, missing columns, duplicate
timestamps) are raised.

Expected layout (header required, column names case-insensitive, a `date`
column is accepted in place of `timestamp`):

    timestamp,open,high,low,close,volume
    2024-01-02,472.16,473.67,470.49,472.65,123623700
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import pandas as pd

from replay_backtest.data.schemas import (
    PRICE_BAR_COLUMNS,
    SchemaValidationError,
    TimestampedSeries,
)

if TYPE_CHECKING:
    from replay_backtest.backtesting.engine import BacktestResult

logger = logging.getLogger(__name__)

_NUMERIC_COLUMNS = ['open', 'high', 'low', 'close', 'volume']
_COLUMN_ALIASES = {'date': 'timestamp'}


def read_price_bars_csv(path: Path | str, symbol: str = "SPY") -> TimestampedSeries:
    """
    Read an OHLCV CSV into a chronologically ordered series.

    **Functionally**:
      - Normalises header names (strip, lower-case, `date` -> `timestamp`).
      - Lines with too many fields are skipped by the parser callback.
      - Rows with a missing field, a non-numeric price, a non-integral or
        negative volume, a non-positive close, or an unparseable timestamp
        are skipped and logged.
      - Remaining rows are sorted ascending by parsed timestamp.

    Args:
        path: Path to the CSV file.
        symbol: Instrument the file describes (e.g., "SPY").

    Returns:
        TimestampedSeries for `symbol`.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        SchemaValidationError: If required columns are missing or two valid
                               rows share a timestamp.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Price CSV not found: {path}")

    def _log_bad_line(bad_line: list[str]) -> None:
        logger.warning("%s: skipping line with unexpected field count: %s", path, bad_line)
        return None

    # Read everything as text; conversion happens below so bad cells can be
    # reported instead of failing the whole read
    try:
        df = pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            on_bad_lines=_log_bad_line,
            engine='python',
        )
    except pd.errors.EmptyDataError:
        raise SchemaValidationError(f"{path}: file is empty, expected a header row.")
    df.columns = [str(col).strip().lower() for col in df.columns]
    df = df.rename(columns=_COLUMN_ALIASES)

    missing_cols = set(PRICE_BAR_COLUMNS) - set(df.columns)
    if missing_cols:
        raise SchemaValidationError(
            f"{path}: Missing required columns: {sorted(missing_cols)}. "
            f"Expected columns: {PRICE_BAR_COLUMNS}. "
            f"Found columns: {list(df.columns)}."
        )

    df = df[PRICE_BAR_COLUMNS].copy()

    # Coerce: anything unparseable becomes NaN/NaT and is caught by the mask
    for col in _NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col].str.strip(), errors='coerce')
    df['timestamp'] = pd.to_datetime(
        df['timestamp'].str.strip(), format='ISO8601', errors='coerce'
    )

    valid = df.notna().all(axis=1)
    valid &= df['close'] > 0
    valid &= df['volume'] >= 0
    valid &= df['volume'] == df['volume'].round()

    # 1-based position among the rows the parser accepted
    for idx in df.index[~valid]:
        logger.warning("%s: skipping malformed data row %d", path, int(idx) + 1)

    df = df[valid].sort_values('timestamp', kind='stable').reset_index(drop=True)
    df['volume'] = df['volume'].astype('int64')

    series = TimestampedSeries.from_frame(df, symbol=symbol)
    logger.info(
        "Loaded %d bars for %s from %s (%d rows skipped)",
        len(series), symbol, path, int((~valid).sum()),
    )
    return series


def write_equity_curve_csv(result: "BacktestResult", path: Path | str) -> None:
    """
    Write a finished run's equity curve as `timestamp,equity`.

    Creates the parent directory if needed. Timestamps are written in the
    canonical "YYYY-MM-DD HH:MM:SS" form.

    Args:
        result: BacktestResult from run_backtest.
        path: Output CSV path.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    df = pd.DataFrame({
        'timestamp': result.equity_curve.index,
        'equity': result.equity_curve.values,
    })
    df['timestamp'] = pd.to_datetime(df['timestamp']).dt.strftime('%Y-%m-%d %H:%M:%S')
    df.to_csv(path, index=False)
    logger.info("Wrote %d equity points to %s", len(df), path)
