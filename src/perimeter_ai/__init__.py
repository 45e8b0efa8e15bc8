"""Perimeter AI - request-boundary security service."""

__version__ = "0.1.0"
