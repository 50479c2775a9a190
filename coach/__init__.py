"""Tradal Coach - multi-provider AI trading coach."""

__version__ = "1.0.0"
