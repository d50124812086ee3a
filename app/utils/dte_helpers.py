"""
DTE-CL Bridge — DTE Utilities
Date stamps and text helpers shared by builders and responses.
"""

from datetime import datetime, timezone


def current_date() -> str:
    """Issue date as sent to Lioren: "YYYY-MM-DD" (UTC)."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


def current_timestamp() -> str:
    """ISO 8601 UTC timestamp for response envelopes."""
    return datetime.now(timezone.utc).isoformat()


def date_part(iso_value: str | None) -> str | None:
    """"2024-03-01T10:15:00-03:00" → "2024-03-01"."""
    if not iso_value:
        return None
    return iso_value.split("T")[0]


def truncate(value, max_length: int, default: str = "") -> str:
    if value is None or value == "":
        return default[:max_length]
    return str(value)[:max_length]
