"""
replay_backtest – deterministic single-symbol backtesting.

Replays a chronologically ordered price series through a strategy, keeps a
cash/position ledger, and derives risk/return metrics from the equity curve.
"""
