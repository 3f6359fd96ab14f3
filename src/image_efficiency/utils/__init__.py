"""Utility functions for image efficiency analysis."""

from .format import format_bytes, format_percent

__all__ = ["format_bytes", "format_percent"]
