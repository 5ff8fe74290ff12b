"""Clicklog - click tracking with asynchronous browser enrichment."""

__version__ = "0.1.0"
