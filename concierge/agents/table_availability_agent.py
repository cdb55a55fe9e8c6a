"""
Table availability agent: capacity questions and stand-alone availability checks.

When a message already names a date, time and party size, this agent runs
the availability check itself. A positive result is handed to the
reservation agent flagged ``availability_confirmed`` together with the
table options, so the booking flow does not check the same slot twice.
"""

import logging
import re
from typing import Sequence

from concierge.agents.base_agent import CHECKING_TEXT, BaseAgent
from concierge.conversation.datetime_parsing import validate_booking_window
from concierge.prompts.prompt_templates import (
    build_inventory_prompt,
    build_slot_collection_prompt,
)
from concierge.prompts.system_prompts import TABLE_AVAILABILITY_ROLE
from concierge.schemas.agent_schema import AgentContext, AgentResponse
from concierge.schemas.session_schema import BOOKING_FIELDS, AgentName, Turn
from concierge.tools.availability import field_to_change

logger = logging.getLogger(__name__)

CAPACITY_RE = re.compile(
    r"\b(biggest|largest|capacity|how many (?:tables|people|guests)|seat up to|maximum)\b"
)


class TableAvailabilityAgent(BaseAgent):
    """Seating, capacity and availability specialist."""

    name = AgentName.TABLE_AVAILABILITY
    role = TABLE_AVAILABILITY_ROLE
    HANDOFF_RULES = {
        AgentName.RESERVATION: ("book", "reserve", "make a reservation"),
        AgentName.MENU: ("menu", "dishes"),
    }

    async def process_message(
        self,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        slots = context.slots
        mentioned = self._extractor.parse_booking_details(message, self.now(context).date())
        slots.fill_missing(mentioned.model_dump(exclude_none=True))

        target = self.handoff_target(message, context)
        if target is not None:
            return self.handoff(target, message, restaurant_id, context)

        if slots.booking_complete() and not CAPACITY_RE.search(message.lower()):
            return await self._check(message, restaurant_id, context)

        types = await self._store.get_table_types(restaurant_id)
        inventory = await self._store.get_table_inventory(restaurant_id)
        details = build_inventory_prompt(types, inventory)
        missing = slots.missing(BOOKING_FIELDS)
        last_question = None
        if missing and not CAPACITY_RE.search(message.lower()):
            collected = {k: v for k, v in slots.filled().items() if k in BOOKING_FIELDS}
            details += "\n\n" + build_slot_collection_prompt(
                [missing[0].replace("_", " ")], collected
            )
            last_question = missing[0]

        system = await self.system_prompt(restaurant_id, details)
        text = await self.generate(system, history, message)
        return self.reply(text, last_question=last_question)

    async def _check(
        self, message: str, restaurant_id: str, context: AgentContext
    ) -> AgentResponse:
        slots = context.slots
        problem = validate_booking_window(slots.date, slots.time, self.now(context))
        if problem:
            field_name, text = problem
            setattr(slots, field_name, None)
            return self.reply(text, last_question=field_name)

        result = await self.check_slots(restaurant_id, context)
        if result.available:
            logger.info(
                "Availability confirmed (%s), handing to reservations",
                [o.table_type for o in result.table_options],
            )
            return self.handoff(
                AgentName.RESERVATION,
                message,
                restaurant_id,
                context,
                availability_confirmed=True,
                table_options=[o.model_dump() for o in result.table_options],
                availability_message=result.message,
            )

        field_name = field_to_change(result.reason)
        setattr(slots, field_name, None)
        text = result.message
        if result.alternatives:
            text += " Would one of those work for you?"
        return self.reply(text, last_question=field_name, messages=[CHECKING_TEXT, text])
