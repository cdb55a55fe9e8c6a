"""
Location agent: directions, the restaurant's area and hotel transfers.

Transfer prices depend on party size, so the agent quotes the bracket
that fits the party when it is already known.
"""

import logging
from typing import Sequence

from concierge.agents.base_agent import BaseAgent
from concierge.prompts.prompt_templates import build_location_prompt
from concierge.prompts.system_prompts import LOCATION_ROLE
from concierge.schemas.agent_schema import AgentContext, AgentResponse
from concierge.schemas.session_schema import AgentName, Turn

logger = logging.getLogger(__name__)

SMALL_PARTY_MAX = 4


class LocationAgent(BaseAgent):
    """Location and transfer specialist."""

    name = AgentName.LOCATION
    role = LOCATION_ROLE
    HANDOFF_RULES = {
        AgentName.RESERVATION: ("book", "reserve", "reservation"),
    }

    async def process_message(
        self,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        target = self.handoff_target(message, context)
        if target is not None:
            return self.handoff(target, message, restaurant_id, context)

        slots = context.slots
        restaurant = await self._store.get_restaurant(restaurant_id)
        transfers = await self._store.get_transfer_options(restaurant_id)
        details = build_location_prompt(restaurant, transfers, slots.hotel_name)
        if slots.party_size:
            bracket = "4 or fewer" if slots.party_size <= SMALL_PARTY_MAX else "5 to 8"
            details += f"\nThe party is {slots.party_size} guests, so quote the {bracket} price."

        last_question = None
        if transfers and slots.hotel_name is None:
            details += "\nIf the guest wants a transfer, ask which hotel they are staying at."
            last_question = "hotel_name"

        system = await self.system_prompt(restaurant_id, details)
        text = await self.generate(system, history, message)
        return self.reply(text, last_question=last_question)
