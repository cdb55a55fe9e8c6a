"""
Resolve free-text dates and times against the restaurant's local clock.

All functions are pure: the caller supplies "today" (or "now"), normally
from a clock bound to the restaurant timezone, so the same input always
resolves to the same value.
"""

import re
from datetime import date, datetime, timedelta
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from concierge.config import settings

Clock = Callable[[], datetime]

MONTHS = {
    "january": 1, "jan": 1, "february": 2, "feb": 2, "march": 3, "mar": 3,
    "april": 4, "apr": 4, "may": 5, "june": 6, "jun": 6, "july": 7, "jul": 7,
    "august": 8, "aug": 8, "september": 9, "sept": 9, "sep": 9,
    "october": 10, "oct": 10, "november": 11, "nov": 11, "december": 12, "dec": 12,
}

WEEKDAYS = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
}

NUMBER_WORDS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
    "thirteen": 13, "fourteen": 14, "fifteen": 15, "sixteen": 16,
    "seventeen": 17, "eighteen": 18, "nineteen": 19, "twenty": 20,
}

# Unmarked hours in this range are read as evening (dinner-service bias).
EVENING_HOURS = range(6, 12)

_MONTH_ALT = "|".join(sorted(MONTHS, key=len, reverse=True))
_WEEKDAY_ALT = "|".join(WEEKDAYS)
_HOUR_WORD_ALT = "|".join(k for k, v in NUMBER_WORDS.items() if v <= 12)

_ISO_RE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
_DAY_MONTH_RE = re.compile(
    rf"\b(\d{{1,2}})(?:st|nd|rd|th)?\s+(?:of\s+)?({_MONTH_ALT})\b"
)
_MONTH_DAY_RE = re.compile(rf"\b({_MONTH_ALT})\.?\s+(\d{{1,2}})(?:st|nd|rd|th)?\b")
_NUMERIC_RE = re.compile(r"\b(\d{1,2})/(\d{1,2})(?:/(\d{2}|\d{4}))?\b")
_WEEKDAY_RE = re.compile(rf"\b(?:(next|this|on)\s+)?({_WEEKDAY_ALT})\b")

_AMPM_RE = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*(a\.?m\.?|p\.?m\.?)(?![a-z])")
_CLOCK_RE = re.compile(r"\b([01]?\d|2[0-3]):([0-5]\d)\b")
_OCLOCK_RE = re.compile(rf"\b(\d{{1,2}}|{_HOUR_WORD_ALT})\s*o'?\s*clock\b")
_AT_HOUR_RE = re.compile(
    rf"\bat\s+(\d{{1,2}}|{_HOUR_WORD_ALT})\b(?!\s*(?:people|persons|guests|pax|of us))"
)


def local_clock(timezone_name: Optional[str] = None) -> Clock:
    """Return a clock that reports the current time in the given timezone."""
    tz = ZoneInfo(timezone_name or settings.restaurant.timezone)
    return lambda: datetime.now(tz)


def restaurant_now(clock: Clock, timezone_name: Optional[str] = None) -> datetime:
    """Read ``clock`` on the restaurant's wall clock when it has its own timezone."""
    now = clock()
    if timezone_name:
        return now.astimezone(ZoneInfo(timezone_name))
    return now


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _roll_forward(today: date, month: int, day: int) -> Optional[date]:
    candidate = _safe_date(today.year, month, day)
    if candidate is not None and candidate < today:
        candidate = _safe_date(today.year + 1, month, day)
    return candidate


def parse_date(text: str, today: date) -> Optional[str]:
    """Resolve a date mention to ISO ``YYYY-MM-DD``.

    Handles ISO dates, today/tonight, tomorrow, the day after tomorrow,
    next week, weekday names (next occurrence; only "this <weekday>"
    said on that weekday means today) and
    day-month mentions such as "3 August", "August 3rd" or "3/8".
    Month-day mentions already in the past roll forward a year.
    """
    lower = text.lower()

    match = _ISO_RE.search(lower)
    if match:
        parsed = _safe_date(*(int(g) for g in match.groups()))
        if parsed is not None:
            return parsed.isoformat()

    if re.search(r"\bday after tomorrow\b", lower):
        return (today + timedelta(days=2)).isoformat()
    if re.search(r"\btomorrow\b", lower):
        return (today + timedelta(days=1)).isoformat()
    if re.search(r"\b(today|tonight|this evening)\b", lower):
        return today.isoformat()
    if re.search(r"\bnext week\b", lower):
        return (today + timedelta(days=7)).isoformat()

    match = _WEEKDAY_RE.search(lower)
    if match:
        days_ahead = (WEEKDAYS[match.group(2)] - today.weekday()) % 7
        if days_ahead == 0 and match.group(1) != "this":
            days_ahead = 7
        return (today + timedelta(days=days_ahead)).isoformat()

    match = _DAY_MONTH_RE.search(lower)
    if match:
        resolved = _roll_forward(today, MONTHS[match.group(2)], int(match.group(1)))
        return resolved.isoformat() if resolved else None

    match = _MONTH_DAY_RE.search(lower)
    if match:
        resolved = _roll_forward(today, MONTHS[match.group(1)], int(match.group(2)))
        return resolved.isoformat() if resolved else None

    match = _NUMERIC_RE.search(lower)
    if match:
        day, month = int(match.group(1)), int(match.group(2))
        if match.group(3):
            year = int(match.group(3))
            year = year + 2000 if year < 100 else year
            resolved = _safe_date(year, month, day)
        else:
            resolved = _roll_forward(today, month, day)
        return resolved.isoformat() if resolved else None

    return None


def _hour_value(token: str) -> int:
    return NUMBER_WORDS[token] if token in NUMBER_WORDS else int(token)


def _evening_bias(hour: int) -> int:
    return hour + 12 if hour in EVENING_HOURS else hour


def parse_time(text: str) -> Optional[str]:
    """Normalise a time mention to 24h ``HH:MM``.

    Checked in order: noon/midnight, am/pm, ``HH:MM``, "N o'clock" and
    "at N". Unmarked hours from 6 to 11 are treated as PM.
    """
    lower = text.lower()

    if re.search(r"\b(noon|midday)\b", lower):
        return "12:00"
    if re.search(r"\bmidnight\b", lower):
        return "00:00"

    match = _AMPM_RE.search(lower)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        if 1 <= hour <= 12 and minute < 60:
            is_pm = match.group(3).startswith("p")
            if is_pm and hour != 12:
                hour += 12
            elif not is_pm and hour == 12:
                hour = 0
            return f"{hour:02d}:{minute:02d}"

    match = _CLOCK_RE.search(lower)
    if match:
        hour = _evening_bias(int(match.group(1)))
        return f"{hour:02d}:{match.group(2)}"

    for pattern in (_OCLOCK_RE, _AT_HOUR_RE):
        match = pattern.search(lower)
        if match:
            hour = _hour_value(match.group(1))
            if 0 <= hour <= 23:
                return f"{_evening_bias(hour):02d}:00"

    return None


def has_explicit_time(text: str) -> bool:
    """True when the text carries a self-describing time (am/pm, HH:MM, o'clock)."""
    lower = text.lower()
    return bool(
        _AMPM_RE.search(lower)
        or _CLOCK_RE.search(lower)
        or _OCLOCK_RE.search(lower)
        or re.search(r"\b(noon|midday|midnight)\b", lower)
    )


def validate_booking_window(
    booking_date: str,
    booking_time: Optional[str],
    now: datetime,
    horizon_days: Optional[int] = None,
) -> Optional[tuple[str, str]]:
    """Check the slot is neither in the past nor beyond the booking horizon.

    Returns:
        None when bookable, else ``(field, message)`` naming the slot to
        ask for again and a user-facing explanation.
    """
    horizon = horizon_days or settings.restaurant.booking_horizon_days
    try:
        day = date.fromisoformat(booking_date)
    except ValueError:
        return "date", "I couldn't understand that date. Which day would you like to come?"

    today = now.date()
    if day < today:
        return "date", "That date has already passed. Which day would you like to come instead?"
    if day > today + timedelta(days=horizon):
        return "date", (
            f"We can only take reservations up to {horizon} days in advance. "
            "Could you choose an earlier date?"
        )
    if booking_time and day == today:
        requested = datetime.strptime(booking_time, "%H:%M").time()
        if requested <= now.time().replace(second=0, microsecond=0):
            return "time", "That time has already passed today. What later time would suit you?"
    return None
