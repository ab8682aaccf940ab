"""
Replay engine and backtest runner.

Sequences strategy decisions against market data and produces equity curves
and performance reports.
"""
