"""Corridor payment success prediction service."""

__version__ = "1.0.0"
