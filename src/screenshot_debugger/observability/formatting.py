"""
Display Formatting
==================

Small formatters shared by the Streamlit viewer, the API and the CLI.
"""

from datetime import datetime
from typing import Optional, Union


def format_airtime(seconds: Optional[float]) -> str:
    """
    Render a duration as "1h 2m 3s".

    Zero-valued leading units are skipped; "0s" for zero or None.
    """
    if not seconds:
        return "0s"

    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0 or not parts:
        parts.append(f"{secs}s")
    return " ".join(parts)


def format_timestamp(value: Optional[str]) -> str:
    """Render an ISO 8601 timestamp; "N/A" when absent, input echoed when unparsable."""
    if not value:
        return "N/A"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def format_file_size(size: Union[int, float]) -> str:
    if size < 1024:
        return f"{int(size)} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"
