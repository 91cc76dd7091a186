"""XPBD cloth simulator."""

__version__ = "0.1.0"
