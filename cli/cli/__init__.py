"""deletion-impact command-line interface."""

__version__ = "0.3.0"
