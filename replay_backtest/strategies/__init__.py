"""
Strategy protocol and implementations.

Strategies consume one bar at a time, keep their own rolling state, and issue
buy/sell intents against the ledger.
"""
