"""Human readable formatting helpers."""

import humanize


def format_bytes(size: int) -> str:
    """Format a byte count with decimal (SI) units.

    Examples:
        format_bytes(512) -> "512 Bytes"
        format_bytes(1_500_000) -> "1.5 MB"
    """
    return humanize.naturalsize(size)


def format_percent(fraction: float) -> str:
    """Format a 0..1 fraction as a percentage string."""
    return f"{fraction * 100:.2f} %"
