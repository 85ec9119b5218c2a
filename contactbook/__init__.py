"""Local contact manager backed by a single SQLite file."""

__version__ = "0.1.0"
