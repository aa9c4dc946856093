"""Output profile execution engine for barcode scanning."""

__version__ = "1.0.0"
