"""Meter sync - local/remote synchronization for edge meter collectors."""

__version__ = "0.1.0"
