"""
Reservation agent: drives a booking through the reservation state machine.

Collect -> Check availability -> Select table -> Collect contact ->
Confirm -> Create. The state machine decides which step runs; the
language model only phrases questions and, at the confirmation gate,
emits the structured reservation block. Nothing reaches the data store
until that block has been merged with the session slots and validated.
"""

import logging
import re
from typing import Optional, Sequence

from pydantic import ValidationError

from concierge.agents.base_agent import CHECKING_TEXT, BaseAgent
from concierge.config import settings
from concierge.conversation.datetime_parsing import validate_booking_window
from concierge.conversation.slot_manager import SlotManager
from concierge.conversation.state_machine import (
    ReservationState,
    ReservationStateMachine,
    ReservationTrigger,
)
from concierge.conversation.structured_output import (
    extract_structured_block,
    flatten_reservation_block,
)
from concierge.errors import DataStoreError, ReservationConflictError
from concierge.prompts.prompt_templates import (
    build_confirmation_prompt,
    build_slot_collection_prompt,
    build_table_options_prompt,
)
from concierge.prompts.system_prompts import RESERVATION_ROLE, build_system_prompt
from concierge.schemas.agent_schema import AgentContext, AgentResponse, ResponseType
from concierge.schemas.reservation_schema import (
    AvailabilityReason,
    AvailabilityResult,
    ReservationPayload,
    TableOption,
)
from concierge.schemas.session_schema import (
    BOOKING_FIELDS,
    CONTACT_FIELDS,
    AgentName,
    CollectedSlots,
    Turn,
)
from concierge.tools.availability import field_to_change

logger = logging.getLogger(__name__)

S = ReservationState
T = ReservationTrigger

CONFIRMATION_QUESTION = "Shall I go ahead and confirm this reservation?"

AFFIRMATIVE_RE = re.compile(
    r"\b(yes|yeah|yep|yup|sure|confirm|correct|go ahead|please do|sounds good|"
    r"that's right|perfect|absolutely|book it|ok|okay)\b"
)
NEGATIVE_RE = re.compile(r"\b(no|nope|not quite|wrong|wait|hold on|don't|cancel)\b")

_RETRY_QUESTION = {
    "date": "Would another day work for you?",
    "party_size": "Could you let me know a party size we can seat?",
    "time": "Would one of those times work, or would you like another time?",
}
_AVAILABILITY_FIELDS = ("date", "time", "party_size", "table_type")


def is_affirmative(message: str) -> bool:
    lower = message.lower()
    return bool(AFFIRMATIVE_RE.search(lower)) and not NEGATIVE_RE.search(lower)


def is_negative(message: str) -> bool:
    return bool(NEGATIVE_RE.search(message.lower()))


class ReservationAgent(BaseAgent):
    """Books tables: availability-aware slot filling with a confirmation gate."""

    name = AgentName.RESERVATION
    role = RESERVATION_ROLE
    HANDOFF_RULES = {
        AgentName.CELEBRATION: (
            "birthday", "anniversary", "celebration", "special occasion", "cake", "flowers",
        ),
        AgentName.LOCATION: ("transfer", "pickup", "transport", "directions"),
        AgentName.MENU: ("what food", "menu", "dishes", "vegan", "vegetarian", "gluten"),
    }

    def __init__(self, *args, slot_manager: Optional[SlotManager] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._slots = slot_manager or SlotManager()
        self._add_ons = settings.add_ons

    async def process_message(
        self,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        machine = ReservationStateMachine(context.reservation_state)
        if machine.current_state == S.RESERVATION_CREATED:
            machine.transition(T.NEW_BOOKING)

        at_gate = machine.current_state in (S.AWAITING_CONFIRMATION, S.RESERVATION_FAILED)
        if not (at_gate and is_affirmative(message)):
            target = self.handoff_target(message, context)
            if target is not None:
                context.reservation_state = machine.current_state.value
                return self.handoff(target, message, restaurant_id, context)

        self._restart_if_details_changed(machine, context)
        response = await self._advance(machine, message, history, restaurant_id, context)
        context.reservation_state = machine.current_state.value
        logger.info("Reservation flow: %s", " -> ".join(machine.get_state_trace()))
        return response

    def _restart_if_details_changed(
        self, machine: ReservationStateMachine, context: AgentContext
    ) -> None:
        changed = [f for f in context.changed_fields if f in _AVAILABILITY_FIELDS]
        if not changed or not machine.can(T.DETAILS_CHANGED):
            return
        machine.transition(T.DETAILS_CHANGED)
        slots = context.slots
        slots.availability_confirmed = False
        slots.shown_table_types = []
        context.handoff_context.pop("table_options", None)
        logger.info("Booking details changed (%s), availability will be re-checked", changed)

    async def _advance(
        self,
        machine: ReservationStateMachine,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        state = machine.current_state
        if state == S.COLLECTING_DATE_TIME_PARTY:
            return await self._collect_booking(machine, message, history, restaurant_id, context)
        if state == S.CHECKING_AVAILABILITY:
            return await self._check_availability(machine, restaurant_id, context)
        if state == S.SELECTING_TABLE_TYPE:
            return await self._select_table(machine, message, history, restaurant_id, context)
        if state == S.COLLECTING_CONTACT:
            return await self._collect_contact(machine, message, history, restaurant_id, context)
        if state == S.AWAITING_CONFIRMATION:
            return await self._await_confirmation(machine, message, history, restaurant_id, context)
        return await self._recover(machine, message, history, restaurant_id, context)

    # ------------------------------------------------------------------ #
    # Collecting date, time and party size
    # ------------------------------------------------------------------ #

    async def _collect_booking(
        self,
        machine: ReservationStateMachine,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        slots = context.slots
        if slots.date:
            problem = validate_booking_window(slots.date, slots.time, self.now(context))
            if problem:
                field_name, text = problem
                self._slots.clear(slots, [field_name])
                return self.reply(text, last_question=field_name)

        missing = slots.missing(BOOKING_FIELDS)
        if missing:
            details = build_slot_collection_prompt(
                [self._slots.display_name(missing[0])], self._collected(slots)
            )
            system = await self.system_prompt(restaurant_id, details + self._handoff_notes(context))
            text = await self.generate(system, history, message)
            return self.reply(text, last_question=missing[0])

        machine.transition(T.DETAILS_COMPLETE, guard=slots.booking_complete)
        return await self._check_availability(machine, restaurant_id, context)

    # ------------------------------------------------------------------ #
    # Availability
    # ------------------------------------------------------------------ #

    async def _check_availability(
        self,
        machine: ReservationStateMachine,
        restaurant_id: str,
        context: AgentContext,
        lead: str = "",
    ) -> AgentResponse:
        slots = context.slots
        carried = context.handoff_context.get("table_options")
        if slots.availability_confirmed and carried:
            logger.info("Availability already confirmed before handoff, skipping re-check")
            result = AvailabilityResult(
                available=True,
                table_options=[TableOption(**option) for option in carried],
                message=context.handoff_context.get(
                    "availability_message", "Good news, we have availability."
                ),
            )
        else:
            result = await self.check_slots(restaurant_id, context)
        return self._apply_availability(machine, context, result, lead)

    def _apply_availability(
        self,
        machine: ReservationStateMachine,
        context: AgentContext,
        result: AvailabilityResult,
        lead: str = "",
    ) -> AgentResponse:
        slots = context.slots
        prefix = f"{lead} " if lead else ""

        if not result.available:
            return self._unavailable(machine, slots, result, prefix)

        slots.availability_confirmed = True
        options = result.table_options
        chosen = None
        if slots.table_type and result.reason != AvailabilityReason.SUBSTITUTED:
            chosen = next(
                (o for o in options if o.table_type.lower() == slots.table_type.lower()), None
            )
        elif len(options) == 1 and result.reason == AvailabilityReason.AVAILABLE:
            chosen = options[0]

        if chosen is not None:
            machine.transition(T.SINGLE_OPTION)
            slots.table_type = chosen.table_type
            self._mark_shown(slots, [chosen])
            return self._ask_contact_or_confirm(
                machine, slots, f"{prefix}{result.message}", checking=True
            )

        machine.transition(T.MULTIPLE_OPTIONS)
        if result.reason == AvailabilityReason.SUBSTITUTED:
            slots.table_type = None
        text = prefix + self._options_text(slots, options, result.message)
        return self.reply(text, last_question="table_type", messages=[CHECKING_TEXT, text])

    def _unavailable(
        self,
        machine: ReservationStateMachine,
        slots: CollectedSlots,
        result: AvailabilityResult,
        prefix: str = "",
    ) -> AgentResponse:
        machine.transition(T.NO_AVAILABILITY)
        slots.availability_confirmed = False
        field_name = field_to_change(result.reason)
        setattr(slots, field_name, None)
        logger.info("No availability (%s), asking for a new %s", result.reason.value, field_name)
        question = _RETRY_QUESTION[field_name]
        if field_name == "time" and not result.alternatives:
            question = "Is there another time or day that would suit you?"
        text = f"{prefix}{result.message} {question}"
        return self.reply(text, last_question=field_name, messages=[CHECKING_TEXT, text])

    def _options_text(
        self, slots: CollectedSlots, options: list[TableOption], lead: str
    ) -> str:
        fresh = [o for o in options if o.table_type not in slots.shown_table_types]
        self._mark_shown(slots, fresh)
        listing = build_table_options_prompt(fresh or options)
        return f"{lead}\n{listing}\nWhich would you prefer?"

    @staticmethod
    def _mark_shown(slots: CollectedSlots, options: list[TableOption]) -> None:
        for option in options:
            if option.table_type not in slots.shown_table_types:
                slots.shown_table_types.append(option.table_type)

    # ------------------------------------------------------------------ #
    # Table selection
    # ------------------------------------------------------------------ #

    async def _select_table(
        self,
        machine: ReservationStateMachine,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        slots = context.slots
        if slots.table_type is None:
            shown = [
                TableOption(table_type=t.name, price=t.price, capacity=t.capacity)
                for t in await self._store.get_table_types(restaurant_id)
                if t.name in slots.shown_table_types
            ]
            system = await self.system_prompt(
                restaurant_id,
                "The guest is choosing a table type from:\n"
                f"{build_table_options_prompt(shown)}\n"
                "Answer their question, then ask which one they would like.",
            )
            text = await self.generate(system, history, message)
            return self.reply(text, last_question="table_type")

        result = await self.check_slots(restaurant_id, context)
        if not result.available:
            return self._unavailable(machine, slots, result)
        if result.reason == AvailabilityReason.SUBSTITUTED:
            slots.table_type = None
            text = self._options_text(slots, result.table_options, result.message)
            return self.reply(text, last_question="table_type")

        machine.transition(T.TABLE_SELECTED)
        slots.table_type = result.table_options[0].table_type
        return self._ask_contact_or_confirm(
            machine, slots, f"Great, a {slots.table_type} table it is."
        )

    # ------------------------------------------------------------------ #
    # Contact details and the confirmation gate
    # ------------------------------------------------------------------ #

    def _ask_contact_or_confirm(
        self,
        machine: ReservationStateMachine,
        slots: CollectedSlots,
        lead: str,
        checking: bool = False,
    ) -> AgentResponse:
        self._slots.clear(slots, self._slots.get_invalid(slots, CONTACT_FIELDS))
        missing = slots.missing(CONTACT_FIELDS)
        if missing:
            text = f"{lead} {self._slots.question_for(missing[0])}"
            last_question = missing[0]
        else:
            machine.transition(T.CONTACT_COMPLETE, guard=slots.contact_complete)
            text = f"{lead}\n\n{self._confirmation_request(slots)}"
            last_question = "confirmation"
        messages = [CHECKING_TEXT, text] if checking else None
        return self.reply(text, last_question=last_question, messages=messages)

    def _confirmation_request(self, slots: CollectedSlots) -> str:
        return f"{self._slots.get_confirmation_summary(slots)}\n\n{CONFIRMATION_QUESTION}"

    async def _collect_contact(
        self,
        machine: ReservationStateMachine,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        slots = context.slots
        invalid = self._slots.get_invalid(slots, CONTACT_FIELDS)
        if invalid:
            self._slots.clear(slots, invalid)
            field_name = invalid[0]
            text = (
                f"That {self._slots.display_name(field_name)} doesn't look right. "
                f"{self._slots.question_for(field_name)}"
            )
            return self.reply(text, last_question=field_name)

        missing = slots.missing(CONTACT_FIELDS)
        if not missing:
            machine.transition(T.CONTACT_COMPLETE, guard=slots.contact_complete)
            return self.reply(self._confirmation_request(slots), last_question="confirmation")

        details = build_slot_collection_prompt(
            [self._slots.display_name(missing[0])], self._collected(slots)
        )
        system = await self.system_prompt(restaurant_id, details + self._handoff_notes(context))
        text = await self.generate(system, history, message)
        return self.reply(text, last_question=missing[0])

    async def _await_confirmation(
        self,
        machine: ReservationStateMachine,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        if is_affirmative(message):
            return await self._confirm(machine, message, history, restaurant_id, context)
        if is_negative(message):
            return self.reply("No problem. What would you like to change?")

        system = await self.system_prompt(
            restaurant_id,
            "The guest has not confirmed the reservation yet. Answer their message "
            "briefly, then ask them to confirm these details:\n"
            f"{self._slots.get_confirmation_summary(context.slots)}",
        )
        text = await self.generate(system, history, message)
        return self.reply(text, last_question="confirmation")

    async def _recover(
        self,
        machine: ReservationStateMachine,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        if is_affirmative(message):
            machine.transition(T.RETRY)
            return await self._confirm(machine, message, history, restaurant_id, context)
        machine.transition(T.CONTACT_INVALID)
        return await self._collect_contact(machine, message, history, restaurant_id, context)

    async def _confirm(
        self,
        machine: ReservationStateMachine,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        """Turn the guest's "yes" into a created reservation, or explain why not."""
        slots = context.slots
        restaurant = await self._store.get_restaurant(restaurant_id)
        details = build_confirmation_prompt(restaurant, slots, self._add_ons.as_dict())
        system = build_system_prompt(self.role, restaurant, self.today(restaurant), details)
        raw = await self.generate(system, history, message, raw=True)

        block = extract_structured_block(raw)
        if block is None:
            logger.warning("Model reply carried no reservation block, nothing created")
            return self.reply(
                "I wasn't able to finalise that just now. Shall I try again?",
                last_question="confirmation",
            )

        data = flatten_reservation_block(block)
        data.update({k: v for k, v in slots.filled().items() if k in ReservationPayload.model_fields})
        data["restaurant_id"] = restaurant_id
        if data.get("cake"):
            data["cake_price"] = self._add_ons.cake_price
        if data.get("flowers"):
            data["flowers_price"] = self._add_ons.flowers_price

        table_types = [t.name for t in await self._store.get_table_types(restaurant_id)]
        try:
            payload = ReservationPayload.model_validate(data, context={"table_types": table_types})
        except ValidationError as exc:
            return self._reprompt_invalid(machine, slots, exc)

        try:
            confirmation = await self._store.create_reservation(payload)
        except ReservationConflictError:
            logger.info("Slot taken before insert, re-checking availability")
            machine.transition(T.CONFLICT)
            slots.availability_confirmed = False
            slots.shown_table_types = []
            slots.table_type = None
            context.handoff_context.pop("table_options", None)
            return await self._check_availability(
                machine, restaurant_id, context, lead="Someone else just took that table."
            )
        except DataStoreError:
            logger.exception("Reservation create failed")
            machine.transition(T.CREATE_FAILED)
            return self.reply(
                "I'm sorry, something went wrong while saving your reservation and "
                "nothing has been booked. Would you like me to try again?",
                last_question="confirmation",
            )

        machine.transition(T.CREATE_SUCCEEDED)
        logger.info("Reservation %d created", confirmation.reservation_id)
        reservation_details = {
            "reservation_id": confirmation.reservation_id,
            **payload.model_dump(),
        }
        slots.reset_booking()
        return AgentResponse(
            agent=self.name,
            type=ResponseType.REDIRECT,
            text=(
                f"Your reservation is confirmed. "
                f"Your reservation number is {confirmation.reservation_id}."
            ),
            reservation_details=reservation_details,
            reservation_created=True,
        )

    def _reprompt_invalid(
        self,
        machine: ReservationStateMachine,
        slots: CollectedSlots,
        exc: ValidationError,
    ) -> AgentResponse:
        fields = [str(err["loc"][0]) for err in exc.errors() if err.get("loc")]
        logger.warning("Reservation payload failed validation: %s", fields)
        field_name = next((f for f in fields if f in CONTACT_FIELDS + _AVAILABILITY_FIELDS), None)

        if field_name in CONTACT_FIELDS:
            machine.transition(T.CONTACT_INVALID)
        elif field_name is not None:
            machine.transition(T.DETAILS_CHANGED)
            slots.availability_confirmed = False
            slots.shown_table_types = []
        else:
            machine.transition(T.CREATE_FAILED)
            return self.reply(
                "I'm sorry, I couldn't put that reservation together. "
                "Would you like me to try again?",
                last_question="confirmation",
            )

        setattr(slots, field_name, None)
        text = (
            f"Before I can book, I need a valid {self._slots.display_name(field_name)}. "
            f"{self._slots.question_for(field_name)}"
        )
        return self.reply(text, last_question=field_name)

    # ------------------------------------------------------------------ #
    # Prompt helpers
    # ------------------------------------------------------------------ #

    def _collected(self, slots: CollectedSlots) -> dict[str, object]:
        return {
            self._slots.display_name(name): value
            for name, value in slots.filled().items()
            if name in BOOKING_FIELDS + CONTACT_FIELDS + ("table_type",)
        }

    @staticmethod
    def _handoff_notes(context: AgentContext) -> str:
        notes = []
        menu = context.handoff_context.get("menu_context")
        if menu:
            notes.append(f"The guest was just looking at the menu: {menu}")
        celebration = context.handoff_context.get("celebration_details")
        if celebration:
            notes.append(f"Celebration plans so far: {celebration}")
        return "\n\n" + "\n".join(notes) if notes else ""
