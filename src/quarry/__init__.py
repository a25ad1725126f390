"""Quarry: tabular analytics with memoized computation."""

__version__ = "0.1.0"
