"""
Generic utility functions shared across modules.

Includes the moving-average helper and logging setup.
"""
