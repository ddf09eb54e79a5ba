"""Forma property resolution and reconciliation core."""

__version__ = "0.4.0"
