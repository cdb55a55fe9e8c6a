"""Support agent: problems, complaints and how to reach the restaurant."""

import logging
from typing import Sequence

from concierge.agents.base_agent import BaseAgent
from concierge.prompts.prompt_templates import build_contact_prompt
from concierge.prompts.system_prompts import SUPPORT_ROLE
from concierge.schemas.agent_schema import AgentContext, AgentResponse
from concierge.schemas.session_schema import AgentName, Turn

logger = logging.getLogger(__name__)


class SupportAgent(BaseAgent):
    """Guest support and contact specialist."""

    name = AgentName.SUPPORT
    role = SUPPORT_ROLE
    HANDOFF_RULES = {
        AgentName.RESERVATION: ("book", "reserve", "reservation"),
        AgentName.MENU: ("menu", "dishes"),
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
        system = await self.system_prompt(restaurant_id, build_contact_prompt(restaurant))
        text = await self.generate(system, history, message)
        return self.reply(text)
