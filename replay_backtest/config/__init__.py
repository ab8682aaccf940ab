"""
Configuration loading and validation for backtest runs.

Provides a strongly typed settings object read from environment variables
with upfront validation.
"""
