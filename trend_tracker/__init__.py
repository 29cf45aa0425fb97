"""Trend keyword clustering, product matching, and period rankings."""

__version__ = "0.1.0"
