"""Shared formatting helpers used across the concierge agents."""

import re
from datetime import date, datetime


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("210 123 4567")
        '2101234567'
        >>> normalize_phone("+30 (694) 123-4567")
        '+306941234567'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def format_time_for_display(value: str) -> str:
    """Render a 24h ``HH:MM`` string as a short 12-hour time.

    Examples:
        >>> format_time_for_display("19:30")
        '7:30pm'
        >>> format_time_for_display("20:00")
        '8pm'
        >>> format_time_for_display("00:15")
        '12:15am'
    """
    lowered = value.lower()
    if "am" in lowered or "pm" in lowered:
        return value
    try:
        parsed = datetime.strptime(value.strip(), "%H:%M")
    except ValueError:
        return value
    hour = parsed.hour % 12 or 12
    suffix = "pm" if parsed.hour >= 12 else "am"
    if parsed.minute == 0:
        return f"{hour}{suffix}"
    return f"{hour}:{parsed.minute:02d}{suffix}"


def format_date_for_display(value: str) -> str:
    """Render an ISO date as e.g. ``Saturday, October 17, 2026``."""
    try:
        parsed = date.fromisoformat(value)
    except ValueError:
        return value
    return f"{parsed.strftime('%A')}, {parsed.strftime('%B')} {parsed.day}, {parsed.year}"


def minutes_of_day(value: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def time_from_minutes(total: int) -> str:
    """Convert minutes since midnight back to ``HH:MM``."""
    return f"{total // 60:02d}:{total % 60:02d}"


def format_price(amount: float, currency: str) -> str:
    """Format a price without trailing zeros, e.g. ``€25`` or ``€12.50``."""
    if float(amount).is_integer():
        return f"{currency}{int(amount)}"
    return f"{currency}{amount:.2f}"
