"""Utility functions for Memoria."""

from datetime import datetime
from typing import Optional

# =============================================================================
# Timestamp parsing utilities
# =============================================================================


def parse_iso_timestamp(timestamp_str: Optional[str]) -> Optional[datetime]:
    """Parse an ISO format timestamp returned by the backend.

    Args:
        timestamp_str: ISO timestamp (e.g., "2025-01-15T10:30:00.123456+00:00")

    Returns:
        Naive datetime in local time, or None if parsing fails
    """
    if not timestamp_str:
        return None

    # The 'Z' suffix indicates UTC time
    if timestamp_str.endswith("Z"):
        timestamp_str = timestamp_str[:-1] + "+00:00"

    try:
        dt = datetime.fromisoformat(timestamp_str)
    except ValueError:
        # Postgres may return fractional seconds that fromisoformat rejects
        if "." not in timestamp_str:
            return None
        head, _, tail = timestamp_str.partition(".")
        offset = ""
        for sign in ("+", "-"):
            if sign in tail:
                offset = sign + tail.split(sign, 1)[1]
                break
        try:
            dt = datetime.fromisoformat(head + offset)
        except ValueError:
            return None

    if dt.tzinfo is not None:
        return datetime.fromtimestamp(dt.timestamp())
    return dt


def format_timestamp(timestamp_str: Optional[str]) -> str:
    """Format a backend timestamp for display ("-" if missing)."""
    dt = parse_iso_timestamp(timestamp_str)
    return dt.strftime("%Y-%m-%d %H:%M") if dt else "-"


# =============================================================================
# Size formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"
