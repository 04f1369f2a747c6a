"""X account linking and thread publishing service."""

__version__ = "0.1.0"
