"""Kernel integration branch automation."""

__version__ = "0.1.0"
