"""Date normalization for form inputs.

The service returns dates as full ISO timestamps (``2024-03-05T00:00:00.000Z``)
while forms hold plain ``YYYY-MM-DD`` values. Everything entering a form
passes through ``to_date_input`` first.
"""

from __future__ import annotations

from datetime import date, datetime


def to_date_input(value: str | date | datetime | None) -> str:
    """Normalize a date-like value to ``YYYY-MM-DD``.

    Returns an empty string for empty or unparsable input rather than
    raising, so a malformed stored date never blocks loading a form.
    """
    if value is None:
        return ""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()

    text = value.strip()
    if not text:
        return ""
    try:
        return datetime.fromisoformat(text).date().isoformat()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10]).isoformat()
    except ValueError:
        return ""


def blank_to_none(value: str | None) -> str | None:
    """Trim ``value``; an empty result becomes None."""
    if value is None:
        return None
    text = value.strip()
    return text or None
