"""Ledger de ventas alimentado por los reportes Excel del POS."""

__version__ = "0.1.0"
