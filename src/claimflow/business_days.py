"""Due-date offsets in calendar or business (Mon-Fri) days."""

from __future__ import annotations

from datetime import date, timedelta


def due_date(offset: int, mode: str = "calendar", today: date | None = None) -> date:
    """Return the date ``offset`` days after ``today``.

    Rules:
    - ``calendar``: plain day arithmetic, negative offsets go backwards.
    - ``business``: step forward one day at a time and count only
      Monday-Friday until ``offset`` days have been counted. An offset of
      zero (or less) returns ``today`` unchanged, weekend or not.
    - Any other mode is treated as ``calendar``.
    """
    start = today or date.today()
    offset = int(offset)
    if mode != "business":
        return start + timedelta(days=offset)
    current = start
    counted = 0
    while counted < offset:
        current += timedelta(days=1)
        if current.weekday() < 5:
            counted += 1
    return current
