"""Application date parsing, formatting and calendar helpers.

Dates are stored as text. The canonical form is ``DD/MM/YYYY``; older
records may hold ``YYYY-MM-DD`` and must keep working for display and
editing.
"""

import calendar
from datetime import date, datetime
from typing import Optional

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

WEEKDAY_HEADERS = ("Su", "Mo", "Tu", "We", "Th", "Fr", "Sa")

_SUNDAY_FIRST = calendar.Calendar(firstweekday=calendar.SUNDAY)


def parse_date(text: Optional[str], today: Optional[date] = None) -> date:
    """Parse a stored or typed date, falling back to today.

    Never raises: empty, malformed or out-of-range input yields today.
    """
    fallback = today or date.today()
    if not text:
        return fallback

    text = text.strip()
    if "/" in text:
        parts = text.split("/")
        if len(parts) != 3:
            return fallback
        try:
            day, month, year = (int(part) for part in parts)
            return date(year, month, day)
        except ValueError:
            return fallback

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return fallback


def format_date(value: date) -> str:
    """Format a date as DD/MM/YYYY."""
    return f"{value.day:02d}/{value.month:02d}/{value.year:04d}"


def today_text() -> str:
    """Today in the canonical form, the default for new applications."""
    return format_date(date.today())


def is_selected(value: Optional[str], day: int, month: int, year: int) -> bool:
    """Check whether a stored date string refers to the given day.

    Both the canonical and the legacy ISO form match.
    """
    if not value:
        return False
    canonical = f"{day:02d}/{month:02d}/{year:04d}"
    legacy = f"{year:04d}-{month:02d}-{day:02d}"
    return value == canonical or value == legacy


def shift_month(view: date, offset: int) -> date:
    """Move a calendar view by whole months, returning the first of that month."""
    index = view.year * 12 + (view.month - 1) + offset
    year, month = divmod(index, 12)
    return date(year, month + 1, 1)


def month_title(view: date) -> str:
    """Calendar heading such as "January 2024"."""
    return f"{MONTH_NAMES[view.month - 1]} {view.year}"


def month_grid(view: date) -> list[list[Optional[int]]]:
    """Weeks of the view's month, Sunday first, with None for blank cells."""
    return [
        [day or None for day in week]
        for week in _SUNDAY_FIRST.monthdayscalendar(view.year, view.month)
    ]


def select_day(view: date, day: int) -> str:
    """Canonical text for a day picked in the view's month."""
    return format_date(date(view.year, view.month, day))


def is_today(day: int, view: date, today: Optional[date] = None) -> bool:
    """Whether a day cell of the view month is today."""
    today = today or date.today()
    return (today.year, today.month, today.day) == (view.year, view.month, day)


def display_date(text: Optional[str]) -> str:
    """Render a stored date for listing, converting legacy ISO values."""
    if not text:
        return "-"
    if "/" in text:
        return text

    parts = text.split("-")
    if len(parts) == 3:
        year, month, day = parts
        return f"{day}/{month}/{year}"

    return text
