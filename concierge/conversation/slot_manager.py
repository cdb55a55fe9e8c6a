"""
Slot definitions, validation and read-back for the reservation flow.

The slot extractor decides *whether* a message writes a slot; this module
knows *what* each slot is: its display name, the question that collects
it, and the validator it must pass before the booking can be confirmed.

Usage:
    manager = SlotManager()
    missing = manager.get_missing(slots, CONTACT_FIELDS)
    if not missing:
        summary = manager.get_confirmation_summary(slots)
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Sequence

from concierge.config import settings
from concierge.schemas.session_schema import CollectedSlots
from concierge.utils import format_date_for_display, format_price, format_time_for_display

logger = logging.getLogger(__name__)

# Validation thresholds
MIN_NAME_LENGTH = 2
MIN_PHONE_DIGITS = 7
MAX_PHONE_DIGITS = 15
MAX_PARTY_SIZE = 50


def _validate_name(value) -> bool:
    return isinstance(value, str) and len(value.strip()) >= MIN_NAME_LENGTH


def _validate_email(value) -> bool:
    return isinstance(value, str) and re.fullmatch(r"[\w.+-]+@[\w-]+(\.[\w-]+)+", value) is not None


def _validate_phone(value) -> bool:
    digits = re.sub(r"[^\d]", "", str(value))
    return MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS


def _validate_date(value) -> bool:
    """Validate date is in YYYY-MM-DD format."""
    try:
        datetime.strptime(str(value).strip(), "%Y-%m-%d")
        return True
    except ValueError:
        return False


def _validate_time(value) -> bool:
    """Validate time is in HH:MM format."""
    try:
        datetime.strptime(str(value).strip(), "%H:%M")
        return True
    except ValueError:
        return False


def _validate_party_size(value) -> bool:
    return isinstance(value, int) and 0 < value <= MAX_PARTY_SIZE


@dataclass(frozen=True)
class SlotDefinition:
    """Schema for a single slot to collect."""

    name: str
    display_name: str
    question: str
    validator: Optional[Callable[[object], bool]] = None
    confirmation_required: bool = True


class SlotManager:
    """Validates collected slots and builds the confirmation read-back."""

    SLOT_DEFINITIONS: list[SlotDefinition] = [
        SlotDefinition(
            name="date",
            display_name="date",
            question="Which date would you like to book?",
            validator=_validate_date,
        ),
        SlotDefinition(
            name="time",
            display_name="time",
            question="What time would you like to come?",
            validator=_validate_time,
        ),
        SlotDefinition(
            name="party_size",
            display_name="party size",
            question="How many guests will be joining?",
            validator=_validate_party_size,
        ),
        SlotDefinition(
            name="table_type",
            display_name="table",
            question="Which table type would you prefer?",
        ),
        SlotDefinition(
            name="customer_name",
            display_name="name",
            question="Could I have the name for the reservation?",
            validator=_validate_name,
        ),
        SlotDefinition(
            name="customer_email",
            display_name="email",
            question="What email address should we send the confirmation to?",
            validator=_validate_email,
        ),
        SlotDefinition(
            name="customer_phone",
            display_name="phone number",
            question="And a phone number we can reach you on?",
            validator=_validate_phone,
        ),
        SlotDefinition(
            name="celebration_type",
            display_name="occasion",
            question="Are you celebrating anything special?",
        ),
        SlotDefinition(
            name="hotel_name",
            display_name="hotel",
            question="Which hotel are you staying at?",
        ),
    ]

    def _get_definition(self, name: str) -> SlotDefinition:
        for defn in self.SLOT_DEFINITIONS:
            if defn.name == name:
                return defn
        raise ValueError(f"Unknown slot: {name}")

    def question_for(self, name: str) -> str:
        return self._get_definition(name).question

    def display_name(self, name: str) -> str:
        return self._get_definition(name).display_name

    def get_missing(self, slots: CollectedSlots, names: Sequence[str]) -> list[str]:
        """Slots in ``names`` that are empty, in the given order."""
        return slots.missing(tuple(names))

    def get_invalid(self, slots: CollectedSlots, names: Sequence[str]) -> list[str]:
        """Slots in ``names`` that hold a value failing their validator."""
        invalid = []
        for name in names:
            value = getattr(slots, name)
            defn = self._get_definition(name)
            if value is not None and defn.validator and not defn.validator(value):
                logger.debug("Slot '%s' validation failed: %r", name, value)
                invalid.append(name)
        return invalid

    def clear(self, slots: CollectedSlots, names: Sequence[str]) -> None:
        for name in names:
            setattr(slots, name, None)

    def get_confirmation_summary(self, slots: CollectedSlots) -> str:
        """Generate read-back text for the confirmation gate."""
        currency = settings.restaurant.currency
        prices = settings.add_ons
        lines = []
        for defn in self.SLOT_DEFINITIONS:
            if not defn.confirmation_required:
                continue
            value = getattr(slots, defn.name)
            if value is None:
                continue
            if defn.name == "date":
                value = format_date_for_display(value)
            elif defn.name == "time":
                value = format_time_for_display(value)
            lines.append(f"  {defn.display_name}: {value}")
        if slots.cake:
            lines.append(f"  cake: yes ({format_price(prices.cake_price, currency)})")
        if slots.flowers:
            lines.append(f"  flowers: yes ({format_price(prices.flowers_price, currency)})")
        if slots.special_requests:
            lines.append(f"  special requests: {slots.special_requests}")
        return "Here's what I have:\n" + "\n".join(lines)
