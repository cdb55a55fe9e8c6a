"""Conversation session state shared between the orchestrator and its agents."""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from concierge.schemas.reservation_schema import BookingDetails


class AgentName(str, Enum):
    """Every specialised agent the orchestrator can route to."""
    RESERVATION = "reservation"
    TABLE_AVAILABILITY = "table_availability"
    CELEBRATION = "celebration"
    MENU = "menu"
    LOCATION = "location"
    SUPPORT = "support"
    RESTAURANT_INFO = "restaurant_info"


class Sender(str, Enum):
    """Author of a conversation turn."""
    USER = "user"
    AGENT = "agent"


@dataclass
class Turn:
    """A single message in the conversation history."""
    sender: Sender
    text: str
    agent: Optional[AgentName] = None


BOOKING_FIELDS: tuple[str, ...] = ("date", "time", "party_size")
CONTACT_FIELDS: tuple[str, ...] = ("customer_name", "customer_email", "customer_phone")


@dataclass
class CollectedSlots:
    """Partial reservation gathered across turns.

    Value fields are written by the slot extractor. ``shown_table_types``
    and ``availability_confirmed`` are bookkeeping for the reservation flow.
    """
    date: Optional[str] = None
    time: Optional[str] = None
    party_size: Optional[int] = None
    table_type: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    celebration_type: Optional[str] = None
    cake: Optional[bool] = None
    flowers: Optional[bool] = None
    hotel_name: Optional[str] = None
    special_requests: Optional[str] = None
    shown_table_types: list[str] = field(default_factory=list)
    availability_confirmed: bool = False
    corrections: dict[str, list[Any]] = field(default_factory=dict)

    VALUE_FIELDS = (
        "date", "time", "party_size", "table_type",
        "customer_name", "customer_email", "customer_phone",
        "celebration_type", "cake", "flowers", "hotel_name", "special_requests",
    )

    def copy(self) -> "CollectedSlots":
        return replace(
            self,
            shown_table_types=list(self.shown_table_types),
            corrections={k: list(v) for k, v in self.corrections.items()},
        )

    def filled(self) -> dict[str, Any]:
        """Return the value fields that currently hold something."""
        return {
            name: getattr(self, name)
            for name in self.VALUE_FIELDS
            if getattr(self, name) is not None
        }

    def missing(self, names: tuple[str, ...]) -> list[str]:
        return [name for name in names if getattr(self, name) is None]

    def booking_details(self) -> BookingDetails:
        """The slots an availability check runs on."""
        return BookingDetails(
            date=self.date, time=self.time, party_size=self.party_size, table_type=self.table_type
        )

    def booking_complete(self) -> bool:
        return self.booking_details().is_complete()

    def contact_complete(self) -> bool:
        return not self.missing(CONTACT_FIELDS)

    def fill_missing(self, values: dict[str, Any]) -> list[str]:
        """Write values into empty slots only. Returns the names written."""
        written = []
        for name, value in values.items():
            if name not in self.VALUE_FIELDS or value is None:
                continue
            if getattr(self, name) is None:
                setattr(self, name, value)
                written.append(name)
        return written

    def overwrite(self, name: str, value: Any) -> bool:
        """Replace a slot value, keeping the previous one in ``corrections``."""
        previous = getattr(self, name)
        if previous == value:
            return False
        if previous is not None:
            self.corrections.setdefault(name, []).append(previous)
        setattr(self, name, value)
        return True

    def changed_fields(self, previous: "CollectedSlots") -> list[str]:
        """Names of value fields that held a value before and now differ."""
        return [
            name for name in self.VALUE_FIELDS
            if getattr(previous, name) is not None
            and getattr(previous, name) != getattr(self, name)
        ]

    def reset_booking(self) -> None:
        """Clear everything once a reservation has been persisted."""
        for f in fields(self):
            if f.name in self.VALUE_FIELDS:
                setattr(self, f.name, None)
        self.shown_table_types = []
        self.availability_confirmed = False
        self.corrections = {}


@dataclass
class Session:
    """Conversation state keyed by (session id, restaurant id)."""
    session_id: str
    restaurant_id: str
    active_agent: Optional[AgentName] = None
    collected_slots: CollectedSlots = field(default_factory=CollectedSlots)
    history: list[Turn] = field(default_factory=list)
    last_question_asked: Optional[str] = None
    reservation_state: Optional[str] = None
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def last_agent_message(self) -> Optional[str]:
        for turn in reversed(self.history):
            if turn.sender == Sender.AGENT:
                return turn.text
        return None

    def recent_history(self, window: int) -> list[Turn]:
        return list(self.history[-window:]) if window > 0 else []
