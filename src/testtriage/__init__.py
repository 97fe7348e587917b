"""Rank functions by how urgently they need unit tests."""

__version__ = "0.1.0"
