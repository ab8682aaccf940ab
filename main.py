"""
replay-backtest – Main entry point.

Runs the moving-average crossover backtest with settings from the
environment (see replay_backtest.config.settings) and any command-line options.
"""

import sys

from actions.run_moving_average_backtest import main


if __name__ == "__main__":
    sys.exit(main())
