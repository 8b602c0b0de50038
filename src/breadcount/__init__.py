"""
Bread count ingestion – core package.

Bakery staff photograph a batch of bread; a vision model estimates the item
count and the result is stored with a cash amount and provider name for
daily and per-employee reporting.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "errors",
    "logging",
    "paths",
]
