"""
Cash/position ledger and the equity series it records.

Enforces solvency and cost-basis accounting for buy/sell intents and values
the book once per bar.
"""
