"""Ortu: background clipboard history with categories, groups and expiry."""

__version__ = "0.3.0"
