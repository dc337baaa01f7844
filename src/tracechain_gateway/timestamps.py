"""Timestamp parsing for ledger records and block events."""

from datetime import UTC, datetime


def parse_timestamp(value: object) -> datetime | None:
    """Parse an ISO-8601 string or epoch milliseconds into an aware datetime.

    Returns None for missing or unparseable values.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None
