"""HTTP service exposing deletion impact analysis."""

__version__ = "0.3.0"
