"""Tests for the reservation agent's state-driven booking flow."""

import pytest

from concierge.agents.base_agent import CHECKING_TEXT
from concierge.agents.reservation_agent import (
    CONFIRMATION_QUESTION,
    ReservationAgent,
    is_affirmative,
    is_negative,
)
from concierge.errors import DataStoreError
from concierge.schemas.agent_schema import ResponseType
from concierge.schemas.session_schema import AgentName
from concierge.tools.memory_store import InMemoryRestaurantStore
from tests.conftest import (
    BOOKING,
    CONTACT,
    EARLY_ID,
    RESTAURANT_ID,
    TOMORROW,
    FakeLanguageModel,
    fixed_clock,
    make_context,
    reservation_block_reply,
    seed_restaurant,
)


class FlakyStore(InMemoryRestaurantStore):
    """Fails the first ``failures`` creates with a generic store error."""

    def __init__(self, failures: int = 1, **kwargs):
        super().__init__(**kwargs)
        self.failures = failures

    async def create_reservation(self, payload):
        if self.failures:
            self.failures -= 1
            raise DataStoreError("connection reset")
        return await super().create_reservation(payload)


def _agent(store, llm=None) -> ReservationAgent:
    return ReservationAgent(store, llm or FakeLanguageModel(), clock=fixed_clock)


async def _run(agent, context, message="", restaurant_id=RESTAURANT_ID):
    return await agent.process_message(message, [], restaurant_id, context)


class TestConfirmationWords:
    @pytest.mark.parametrize("text", ["yes", "Yes, confirm", "go ahead", "sounds good", "ok"])
    def test_affirmative(self, text):
        assert is_affirmative(text)

    @pytest.mark.parametrize("text", ["no", "wait, wrong date", "yes... no, hold on"])
    def test_not_affirmative(self, text):
        assert not is_affirmative(text)

    def test_negative(self):
        assert is_negative("no, that's not right")
        assert not is_negative("perfect")


class TestCollecting:
    @pytest.mark.asyncio
    async def test_asks_for_first_missing_field(self, store):
        llm = FakeLanguageModel(default="Which day would you like to come?")
        context = make_context(party_size=2)
        response = await _run(_agent(store, llm), context, "a table for 2 please")
        assert response.type == ResponseType.MESSAGE
        assert response.last_question == "date"
        assert context.reservation_state == "collecting_date_time_party"
        assert "Now ask for their date" in llm.last_prompt

    @pytest.mark.asyncio
    async def test_past_date_rejected(self, store):
        llm = FakeLanguageModel()
        context = make_context(date="2026-10-10", time="20:00", party_size=2)
        response = await _run(_agent(store, llm), context)
        assert "already passed" in response.text
        assert response.last_question == "date"
        assert context.slots.date is None
        assert context.slots.time == "20:00"
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_time_already_gone_today(self, store):
        context = make_context(date="2026-10-16", time="11:00", party_size=2)
        response = await _run(_agent(store), context)
        assert response.last_question == "time"
        assert context.slots.time is None


class TestAvailability:
    @pytest.mark.asyncio
    async def test_single_option_goes_straight_to_contact(self, store):
        llm = FakeLanguageModel()
        context = make_context(**BOOKING)
        response = await _run(_agent(store, llm), context)
        assert response.type == ResponseType.TWO_MESSAGES
        assert response.messages[0] == CHECKING_TEXT
        assert response.messages[1].startswith("Good news")
        assert response.last_question == "customer_name"
        assert context.reservation_state == "collecting_contact"
        assert context.slots.table_type == "standard"
        assert context.slots.availability_confirmed
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_unavailable_keeps_other_fields(self, early_store):
        context = make_context(**BOOKING)
        response = await _run(_agent(early_store), context, restaurant_id=EARLY_ID)
        assert response.type == ResponseType.TWO_MESSAGES
        assert "7:30pm" in response.text
        assert response.last_question == "time"
        assert context.reservation_state == "collecting_date_time_party"
        assert context.slots.time is None
        assert context.slots.date == TOMORROW
        assert context.slots.party_size == 2

    @pytest.mark.asyncio
    async def test_party_too_large_asks_for_party_size(self, store):
        context = make_context(date=TOMORROW, time="20:00", party_size=9)
        response = await _run(_agent(store), context)
        assert response.last_question == "party_size"
        assert context.slots.party_size is None
        assert context.slots.time == "20:00"

    @pytest.mark.asyncio
    async def test_multiple_options_listed(self, multi_store):
        context = make_context(**BOOKING)
        response = await _run(_agent(multi_store), context)
        assert response.type == ResponseType.TWO_MESSAGES
        assert context.reservation_state == "selecting_table_type"
        assert response.last_question == "table_type"
        assert "- grass (up to 6 guests, €10)" in response.text
        assert context.slots.shown_table_types == ["standard", "grass", "vip"]

    @pytest.mark.asyncio
    async def test_shown_options_not_repeated(self, multi_store):
        context = make_context(**BOOKING, shown_table_types=["standard"])
        response = await _run(_agent(multi_store), context)
        assert "- standard" not in response.text
        assert "- grass" in response.text

    @pytest.mark.asyncio
    async def test_requested_type_chosen_directly(self, multi_store):
        context = make_context(**BOOKING, table_type="vip")
        await _run(_agent(multi_store), context)
        assert context.reservation_state == "collecting_contact"
        assert context.slots.table_type == "vip"

    @pytest.mark.asyncio
    async def test_confirmed_availability_not_rechecked(self, store):
        # The slot is gone in the store, but the carried verdict is trusted.
        store.add_existing_reservation(RESTAURANT_ID, "standard", TOMORROW, "20:00")
        context = make_context(**BOOKING, availability_confirmed=True)
        context.handoff_context["table_options"] = [
            {"table_type": "standard", "price": 0, "capacity": 4}
        ]
        await _run(_agent(store), context)
        assert context.reservation_state == "collecting_contact"
        assert context.slots.table_type == "standard"


class TestTableSelection:
    @pytest.mark.asyncio
    async def test_selected_type_moves_to_contact(self, multi_store):
        context = make_context(
            "selecting_table_type", **BOOKING, table_type="grass",
            shown_table_types=["standard", "grass", "vip"],
        )
        response = await _run(_agent(multi_store), context, "the grass one")
        assert response.text.startswith("Great, a grass table it is.")
        assert response.last_question == "customer_name"
        assert context.reservation_state == "collecting_contact"

    @pytest.mark.asyncio
    async def test_question_without_choice(self, multi_store):
        llm = FakeLanguageModel(default="The vip table has a view. Which would you like?")
        context = make_context(
            "selecting_table_type", **BOOKING, shown_table_types=["standard", "vip"]
        )
        response = await _run(_agent(multi_store, llm), context, "which has a view?")
        assert response.last_question == "table_type"
        assert "- vip" in llm.last_prompt
        assert "- grass" not in llm.last_prompt
        assert context.reservation_state == "selecting_table_type"


class TestContact:
    @pytest.mark.asyncio
    async def test_complete_contact_reaches_gate(self, store):
        context = make_context("collecting_contact", **BOOKING, **CONTACT, table_type="standard")
        response = await _run(_agent(store), context, "maria@x.com")
        assert context.reservation_state == "awaiting_confirmation"
        assert response.last_question == "confirmation"
        assert response.text.startswith("Here's what I have:")
        assert response.text.endswith(CONFIRMATION_QUESTION)

    @pytest.mark.asyncio
    async def test_invalid_email_reasked(self, store):
        context = make_context(
            "collecting_contact", **BOOKING, table_type="standard",
            customer_name="Maria", customer_email="maria-at-x",
        )
        response = await _run(_agent(store), context)
        assert response.last_question == "customer_email"
        assert "doesn't look right" in response.text
        assert context.slots.customer_email is None
        assert context.reservation_state == "collecting_contact"

    @pytest.mark.asyncio
    async def test_missing_contact_asked_by_model(self, store):
        llm = FakeLanguageModel(default="And what's the best email for you?")
        context = make_context(
            "collecting_contact", **BOOKING, table_type="standard", customer_name="Maria"
        )
        response = await _run(_agent(store, llm), context, "Maria")
        assert response.last_question == "customer_email"
        assert "Now ask for their email" in llm.last_prompt

    @pytest.mark.asyncio
    async def test_changed_time_rechecks(self, store):
        context = make_context("collecting_contact", **BOOKING, table_type="standard")
        context.changed_fields = ["time"]
        response = await _run(_agent(store), context, "change the time to 8pm")
        assert response.messages[0] == CHECKING_TEXT
        assert context.reservation_state == "collecting_contact"


class TestConfirmationGate:
    def _awaiting(self, **extra):
        return make_context(
            "awaiting_confirmation", **BOOKING, **CONTACT, table_type="standard", **extra
        )

    @pytest.mark.asyncio
    async def test_yes_creates_reservation(self):
        store = InMemoryRestaurantStore(first_reservation_id=42)
        seed_restaurant(store)
        context = self._awaiting()
        llm = FakeLanguageModel(replies=[reservation_block_reply()])
        response = await _run(_agent(store, llm), context, "yes, confirm")

        assert response.type == ResponseType.REDIRECT
        assert response.reservation_created
        assert response.reservation_details["reservation_id"] == 42
        assert response.reservation_details["customer_email"] == "maria@x.com"
        assert response.text == "Your reservation is confirmed. Your reservation number is 42."
        assert context.reservation_state == "reservation_created"
        assert context.slots.filled() == {}
        assert len(store.reservations()) == 1

    @pytest.mark.asyncio
    async def test_slots_override_model_block(self, store):
        context = self._awaiting()
        reply = reservation_block_reply(
            customer={"name": "Someone Else", "email": "x@y.com", "phone": "+300000000"}
        )
        response = await _run(_agent(store, FakeLanguageModel(replies=[reply])), context, "yes")
        assert response.reservation_details["customer_name"] == "Maria"

    @pytest.mark.asyncio
    async def test_add_on_prices_from_config(self, store):
        context = self._awaiting(celebration_type="birthday", cake=True)
        response = await _run(
            _agent(store, FakeLanguageModel(replies=[reservation_block_reply()])), context, "yes"
        )
        assert response.reservation_details["cake"] is True
        assert response.reservation_details["cake_price"] == 25

    @pytest.mark.asyncio
    async def test_no_block_means_no_booking(self, store):
        context = self._awaiting()
        llm = FakeLanguageModel(replies=["Wonderful, your table is all set!"])
        response = await _run(_agent(store, llm), context, "yes")
        assert response.type == ResponseType.MESSAGE
        assert not response.reservation_created
        assert context.reservation_state == "awaiting_confirmation"
        assert store.reservations() == []

    @pytest.mark.asyncio
    async def test_without_yes_nothing_is_created(self, store):
        llm = FakeLanguageModel(default="Please confirm the details above.")
        context = self._awaiting()
        response = await _run(_agent(store, llm), context, "is there parking nearby?")
        assert response.last_question == "confirmation"
        assert context.reservation_state == "awaiting_confirmation"
        assert store.reservations() == []

    @pytest.mark.asyncio
    async def test_no_asks_what_to_change(self, store):
        context = self._awaiting()
        response = await _run(_agent(store), context, "no, not quite")
        assert response.text == "No problem. What would you like to change?"
        assert store.reservations() == []

    @pytest.mark.asyncio
    async def test_invalid_phone_goes_back_to_contact(self, store):
        context = self._awaiting()
        context.slots.customer_phone = "12"
        response = await _run(
            _agent(store, FakeLanguageModel(replies=[reservation_block_reply()])), context, "yes"
        )
        assert response.last_question == "customer_phone"
        assert context.reservation_state == "collecting_contact"
        assert context.slots.customer_phone is None
        assert store.reservations() == []

    @pytest.mark.asyncio
    async def test_conflict_rechecks_availability(self, store):
        store.add_existing_reservation(RESTAURANT_ID, "standard", TOMORROW, "20:00")
        context = self._awaiting()
        response = await _run(
            _agent(store, FakeLanguageModel(replies=[reservation_block_reply()])), context, "yes"
        )
        assert response.type == ResponseType.TWO_MESSAGES
        assert response.text.startswith("Someone else just took that table.")
        assert "fully booked" in response.text
        assert context.reservation_state == "collecting_date_time_party"
        assert context.slots.time is None
        assert context.slots.table_type is None
        assert not response.reservation_created

    @pytest.mark.asyncio
    async def test_store_failure_then_retry(self):
        store = FlakyStore(failures=1)
        seed_restaurant(store)
        llm = FakeLanguageModel(default=reservation_block_reply())
        agent = _agent(store, llm)
        context = self._awaiting()

        failed = await _run(agent, context, "yes")
        assert "nothing has been booked" in failed.text
        assert context.reservation_state == "reservation_failed"

        retried = await _run(agent, context, "yes please")
        assert retried.type == ResponseType.REDIRECT
        assert context.reservation_state == "reservation_created"


class TestHandoffs:
    @pytest.mark.asyncio
    async def test_suggested_agent_takes_over(self, store):
        context = make_context(party_size=2)
        context.suggested_agent = AgentName.MENU
        response = await _run(_agent(store), context, "what vegan dishes do you have")
        assert response.type == ResponseType.DELEGATION
        assert response.handoff.target_agent == AgentName.MENU
        assert response.handoff.context["slots"].party_size == 2
        assert context.reservation_state == "collecting_date_time_party"

    @pytest.mark.asyncio
    async def test_celebration_phrase_hands_off(self, store):
        context = make_context(**BOOKING)
        response = await _run(_agent(store), context, "it's a birthday, can we have a cake?")
        assert response.type == ResponseType.DELEGATION
        assert response.handoff.target_agent == AgentName.CELEBRATION

    @pytest.mark.asyncio
    async def test_yes_at_gate_never_hands_off(self, store):
        context = self._context_with_menu_suggestion()
        llm = FakeLanguageModel(replies=[reservation_block_reply()])
        response = await _run(_agent(store, llm), context, "yes, and send me the menu")
        assert response.type == ResponseType.REDIRECT

    @staticmethod
    def _context_with_menu_suggestion():
        context = make_context(
            "awaiting_confirmation", **BOOKING, **CONTACT, table_type="standard"
        )
        context.suggested_agent = AgentName.MENU
        return context

    @pytest.mark.asyncio
    async def test_menu_notes_reach_prompt(self, store):
        llm = FakeLanguageModel()
        context = make_context(party_size=2)
        context.handoff_context["menu_context"] = {"dietary": "vegan", "dishes": ["Vegan Moussaka"]}
        await _run(_agent(store, llm), context, "let's book")
        assert "Vegan Moussaka" in llm.last_prompt
