"""
Restaurant info agent: the default host for general questions.

Answers questions about the restaurant, its atmosphere and opening hours,
and receives any message no other agent claims.
"""

import logging
from typing import Sequence

from concierge.agents.base_agent import BaseAgent
from concierge.prompts.prompt_templates import build_hours_prompt
from concierge.prompts.system_prompts import RESTAURANT_INFO_ROLE
from concierge.schemas.agent_schema import AgentContext, AgentResponse
from concierge.schemas.session_schema import AgentName, Turn

logger = logging.getLogger(__name__)


class RestaurantInfoAgent(BaseAgent):
    """General information host."""

    name = AgentName.RESTAURANT_INFO
    role = RESTAURANT_INFO_ROLE
    HANDOFF_RULES = {
        AgentName.RESERVATION: ("book", "reserve", "reservation", "table for"),
        AgentName.MENU: ("menu", "dishes", "food"),
        AgentName.LOCATION: ("where", "address", "directions"),
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

        restaurant = await self._store.get_restaurant(restaurant_id)
        details = [build_hours_prompt(await self._store.get_restaurant_hours(restaurant_id))]
        if restaurant.atmosphere:
            details.append(f"ATMOSPHERE: {restaurant.atmosphere}")
        if restaurant.rating is not None:
            details.append(f"RATING: {restaurant.rating}")
        system = await self.system_prompt(restaurant_id, "\n".join(details))
        text = await self.generate(system, history, message)
        return self.reply(text)
