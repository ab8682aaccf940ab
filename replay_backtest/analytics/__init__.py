"""
Risk/performance metrics and report rendering.

Pure functions over finished equity curves and return series: Sharpe, Sortino,
drawdown, Calmar, win rate, and friends.
"""
