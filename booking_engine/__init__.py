"""Slot availability and conflict-detection engine for service appointment booking."""

__version__ = "0.1.0"
