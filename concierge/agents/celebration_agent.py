"""
Celebration agent: plans birthdays, anniversaries and other occasions.

Records the occasion and any add-ons the guest asks for, quotes add-on
prices from configuration, and passes the guest to reservations once they
want to book.
"""

import logging
from typing import Sequence

from concierge.agents.base_agent import BaseAgent
from concierge.config import settings
from concierge.conversation.slot_extractor import parse_celebration
from concierge.prompts.prompt_templates import build_celebration_prompt
from concierge.prompts.system_prompts import CELEBRATION_ROLE
from concierge.schemas.agent_schema import AgentContext, AgentResponse
from concierge.schemas.session_schema import AgentName, Turn

logger = logging.getLogger(__name__)


class CelebrationAgent(BaseAgent):
    """Occasion and add-on specialist."""

    name = AgentName.CELEBRATION
    role = CELEBRATION_ROLE
    HANDOFF_RULES = {
        AgentName.RESERVATION: (
            "book", "reserve", "table", "sounds perfect", "let's do it",
        ),
    }

    async def process_message(
        self,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        slots = context.slots
        written = slots.fill_missing(parse_celebration(message))
        if written:
            logger.info("Celebration details recorded: %s", written)

        target = self.handoff_target(message, context)
        if target is not None:
            details = {
                "occasion": slots.celebration_type,
                "cake": bool(slots.cake),
                "flowers": bool(slots.flowers),
            }
            return self.handoff(
                target, message, restaurant_id, context, celebration_details=details
            )

        prompt = build_celebration_prompt(slots, settings.add_ons.as_dict())
        system = await self.system_prompt(restaurant_id, prompt)
        text = await self.generate(system, history, message)
        return self.reply(text)
