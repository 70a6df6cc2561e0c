"""Sales reconciliation and reporting backend."""

__version__ = "0.4.0"
