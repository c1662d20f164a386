"""Event check-in scanner: QR driven attendance marking for multi-day events."""

__version__ = "0.1.0"
