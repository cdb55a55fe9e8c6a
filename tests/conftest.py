"""Shared test fixtures and helpers."""

import json
from datetime import datetime
from typing import Optional, Sequence
from zoneinfo import ZoneInfo

import pytest

from concierge.conversation.guardrails import GuardrailPipeline
from concierge.conversation.slot_extractor import SlotExtractor
from concierge.conversation.slot_manager import SlotManager
from concierge.conversation.state_machine import ReservationStateMachine
from concierge.schemas.agent_schema import AgentContext
from concierge.schemas.restaurant_schema import (
    MenuItem,
    OpeningHours,
    Restaurant,
    TableType,
    TransferOption,
)
from concierge.schemas.session_schema import CollectedSlots, Turn
from concierge.tools.availability import AvailabilityChecker
from concierge.tools.memory_store import InMemoryRestaurantStore

# Friday 16 October 2026, noon in Athens.
NOW = datetime(2026, 10, 16, 12, 0, tzinfo=ZoneInfo("Europe/Athens"))
TODAY = "2026-10-16"
TOMORROW = "2026-10-17"  # Saturday

RESTAURANT_ID = "1"
EARLY_ID = "2"


def fixed_clock() -> datetime:
    return NOW


class FakeLanguageModel:
    """Scripted stand-in for the language model gateway.

    Returns queued replies in order, then ``default``. Every call is
    recorded so tests can inspect the prompt an agent built.
    """

    def __init__(self, replies: Optional[Sequence[str]] = None, default: str = "How can I help?"):
        self.replies = list(replies or [])
        self.default = default
        self.calls: list[dict] = []
        self.error: Optional[Exception] = None

    async def generate(self, system_prompt: str, history: Sequence[Turn], user_message: str) -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "history": list(history),
            "user_message": user_message,
        })
        if self.error is not None:
            raise self.error
        if self.replies:
            return self.replies.pop(0)
        return self.default

    @property
    def last_prompt(self) -> str:
        return self.calls[-1]["system_prompt"]


def reservation_block_reply(**overrides) -> str:
    """A model reply at the confirmation gate carrying a reservation block."""
    block = {
        "restaurant": {"id": RESTAURANT_ID, "name": "Aichmi"},
        "customer": {"name": "Maria", "email": "maria@x.com", "phone": "+301234567"},
        "reservation": {"date": TOMORROW, "time": "20:00", "partySize": 2, "tableType": "standard"},
        "addOns": {"celebration": None, "cake": False, "flowers": False},
        "transfer": {"needed": False, "hotel": None},
        "specialRequests": None,
    }
    block.update(overrides)
    return (
        "Thank you, Maria! I'm finalising your reservation now.\n"
        f"[RESERVATION_DATA]\n{json.dumps(block, indent=2)}\n[/RESERVATION_DATA]"
    )


def all_week(open_time: str, close_time: str) -> list[OpeningHours]:
    return [OpeningHours(weekday=d, open_time=open_time, close_time=close_time) for d in range(7)]


MENU = [
    MenuItem(name="Greek Salad", price=12, category="Starters", is_vegetarian=True, is_gluten_free=True),
    MenuItem(name="Vegan Moussaka", price=18, category="Mains", is_vegetarian=True, is_vegan=True),
    MenuItem(name="Lamb Kleftiko", price=26, category="Mains"),
    MenuItem(name="Baklava", price=8, category="Desserts", is_vegetarian=True),
]

STANDARD = TableType(name="standard", price=0, capacity=4)
GRASS = TableType(name="grass", price=10, capacity=6)
VIP = TableType(name="vip", price=50, capacity=8)


def seed_restaurant(
    store: InMemoryRestaurantStore,
    restaurant_id: str = RESTAURANT_ID,
    *,
    table_types: Optional[list[TableType]] = None,
    inventory: Optional[dict[str, int]] = None,
    hours: Optional[list[OpeningHours]] = None,
    fully_booked_dates: Optional[list[str]] = None,
    timezone: str = "Europe/Athens",
) -> None:
    store.add_restaurant(
        Restaurant(
            id=restaurant_id,
            name="Aichmi",
            cuisine="Greek",
            area="Plaka",
            address="12 Adrianou Street, Athens",
            phone="+30 210 123 4567",
            email="hello@aichmi.example",
            owner_name="Nikos",
            atmosphere="Candlelit rooftop with Acropolis views",
            rating=4.7,
            timezone=timezone,
        ),
        table_types=table_types or [STANDARD],
        inventory=inventory or {"standard": 1},
        hours=hours or all_week("12:00", "23:30"),
        menu=MENU,
        fully_booked_dates=fully_booked_dates,
        transfers=[TransferOption(area="Syntagma hotels", price_4_or_less=30, price_5_to_8=45)],
    )


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def store():
    """One standard table for four, open 12:00 to 23:30 every day."""
    store = InMemoryRestaurantStore()
    seed_restaurant(store)
    return store


@pytest.fixture
def multi_store():
    """Standard, grass and vip seating, one table of each."""
    store = InMemoryRestaurantStore()
    seed_restaurant(
        store,
        table_types=[STANDARD, GRASS, VIP],
        inventory={"standard": 1, "grass": 1, "vip": 1},
    )
    return store


@pytest.fixture
def early_store():
    """A short 19:30 to 20:15 evening service with 20:00 already taken."""
    store = InMemoryRestaurantStore()
    seed_restaurant(store, EARLY_ID, hours=all_week("19:30", "20:15"))
    store.add_existing_reservation(EARLY_ID, "standard", TOMORROW, "20:00")
    return store


@pytest.fixture
def llm():
    return FakeLanguageModel()


@pytest.fixture
def checker(store):
    return AvailabilityChecker(store, clock=fixed_clock)


@pytest.fixture
def extractor():
    return SlotExtractor(clock=fixed_clock)


@pytest.fixture
def state_machine():
    return ReservationStateMachine()


@pytest.fixture
def slot_manager():
    return SlotManager()


@pytest.fixture
def guardrail_pipeline():
    return GuardrailPipeline()


def make_context(reservation_state: Optional[str] = None, **slot_values) -> AgentContext:
    """AgentContext with the given slot values filled in."""
    return AgentContext(slots=CollectedSlots(**slot_values), reservation_state=reservation_state)


BOOKING = {"date": TOMORROW, "time": "20:00", "party_size": 2}
CONTACT = {"customer_name": "Maria", "customer_email": "maria@x.com", "customer_phone": "+301234567"}
