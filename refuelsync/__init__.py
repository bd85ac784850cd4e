"""Entry synchronization bridge over a synchronized key-value store."""

__version__ = "0.1.0"
