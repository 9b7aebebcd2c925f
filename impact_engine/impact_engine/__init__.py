"""Deletion impact analysis engine for processed documents."""

__version__ = "0.3.0"
