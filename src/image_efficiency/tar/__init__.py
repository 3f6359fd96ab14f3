"""Saved image archive reading."""
