#!/usr/bin/env python3
"""
Run the moving-average crossover backtest on a price CSV and print the results.

**Usage**:
    From project root:
    ```bash
    python actions/run_moving_average_backtest.py --data data/raw/SPY.csv
    python actions/run_moving_average_backtest.py --short-window 10 --long-window 50 \\
        --equity-out data/results/spy_ma_equity_curve.csv
    ```

Any option not given on the command line falls back to BacktestSettings
(environment variables / .env, then built-in defaults).

**Exit codes**:
  - 0: backtest completed
  - 1: fatal error (bad data, bad configuration, aborted run)
"""

import argparse
import logging
import sys
from pathlib import Path

# Ensure project root is on path for imports
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from replay_backtest.analytics.report import format_performance_report
from replay_backtest.backtesting.engine import run_backtest
from replay_backtest.config.settings import BacktestSettings, get_settings
from replay_backtest.data.io import read_price_bars_csv, write_equity_curve_csv
from replay_backtest.data.schemas import SchemaValidationError
from replay_backtest.errors import BacktestError
from replay_backtest.strategies.moving_average import MovingAverageCrossoverStrategy
from replay_backtest.utils.logging_config import setup_logging

logger = logging.getLogger("replay_backtest.actions.run_moving_average_backtest")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Replay a price CSV through a moving-average crossover strategy.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--data", type=Path, help="OHLCV CSV to replay")
    parser.add_argument("--symbol", type=str, help="Symbol the CSV describes")
    parser.add_argument("--initial-cash", type=float, help="Starting cash")
    parser.add_argument("--short-window", type=int, help="Short moving-average window")
    parser.add_argument("--long-window", type=int, help="Long moving-average window")
    parser.add_argument("--lot-size", type=int, help="Shares traded per signal")
    parser.add_argument("--periods-per-year", type=int, help="Bars per year for annualization")
    parser.add_argument("--log-level", type=str, help="DEBUG, INFO, WARNING, ERROR")
    parser.add_argument("--equity-out", type=Path, help="Optional CSV path for the equity curve")
    return parser


def resolve_settings(args: argparse.Namespace, base: BacktestSettings) -> BacktestSettings:
    """Overlay command-line options on top of the environment settings."""
    return BacktestSettings(
        data_path=args.data if args.data is not None else base.data_path,
        symbol=args.symbol or base.symbol,
        initial_cash=args.initial_cash if args.initial_cash is not None else base.initial_cash,
        short_window=args.short_window if args.short_window is not None else base.short_window,
        long_window=args.long_window if args.long_window is not None else base.long_window,
        lot_size=args.lot_size if args.lot_size is not None else base.lot_size,
        periods_per_year=(
            args.periods_per_year if args.periods_per_year is not None else base.periods_per_year
        ),
        risk_free_rate=base.risk_free_rate,
        log_level=args.log_level or base.log_level,
    )


def main(argv: list[str] | None = None) -> int:
    """
    Main entrypoint for the moving-average backtest.

    Steps:
      1. Resolve settings (CLI over environment over defaults).
      2. Load the price CSV.
      3. Run the backtest.
      4. Print metrics and final holdings; optionally save the equity curve.
    """
    args = build_parser().parse_args(argv)

    try:
        settings = resolve_settings(args, get_settings())
    except BacktestError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(settings.log_level)

    try:
        series = read_price_bars_csv(settings.data_path, symbol=settings.symbol)
    except (FileNotFoundError, SchemaValidationError) as e:
        print(f"Failed to load data: {e}", file=sys.stderr)
        return 1

    try:
        result = run_backtest(
            series,
            lambda ledger: MovingAverageCrossoverStrategy(
                ledger,
                short_window=settings.short_window,
                long_window=settings.long_window,
                symbol=settings.symbol,
                lot_size=settings.lot_size,
            ),
            settings.to_backtest_params(),
        )
    except BacktestError as e:
        print(f"Error during backtest: {e}", file=sys.stderr)
        return 1

    print(format_performance_report(result.metrics, result.final_state))

    if args.equity_out is not None:
        write_equity_curve_csv(result, args.equity_out)
        print(f"\nEquity curve saved to {args.equity_out}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
