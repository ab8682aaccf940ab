"""
Price bar contracts and CSV I/O.

Loads OHLCV CSVs into chronologically ordered, validated series and writes
equity curves back out.
"""
