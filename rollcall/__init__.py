"""Event check-in roster with multi-instance snapshot synchronization."""

__version__ = "0.1.0"
