"""
Menu agent: answers dish, dietary and pricing questions from the live menu.

Hands the guest to the reservation agent when they decide to book,
carrying along what they were looking at.
"""

import logging
from typing import Sequence

from concierge.agents.base_agent import BaseAgent
from concierge.prompts.prompt_templates import build_menu_prompt
from concierge.prompts.system_prompts import MENU_ROLE
from concierge.schemas.agent_schema import AgentContext, AgentResponse
from concierge.schemas.session_schema import AgentName, Turn
from concierge.tools.menu import (
    detect_dietary_filter,
    filter_menu,
    match_category,
    organize_by_category,
)

logger = logging.getLogger(__name__)


class MenuAgent(BaseAgent):
    """Menu and pricing specialist."""

    name = AgentName.MENU
    role = MENU_ROLE
    HANDOFF_RULES = {
        AgentName.RESERVATION: ("book", "reserve", "sounds good", "want to book"),
    }

    async def process_message(
        self,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        items = await self._store.get_menu_items(restaurant_id)
        dietary = detect_dietary_filter(message)
        category = match_category(message, items)
        matching = filter_menu(items, dietary)
        if category:
            matching = [i for i in matching if i.category == category] or matching

        target = self.handoff_target(message, context)
        if target is not None:
            menu_context = {
                "dietary": dietary,
                "category": category,
                "dishes": [i.name for i in matching][:10],
            }
            return self.handoff(target, message, restaurant_id, context, menu_context=menu_context)

        logger.info(
            "Menu question: %d of %d dishes match (dietary=%s, category=%s)",
            len(matching), len(items), dietary, category,
        )
        details = build_menu_prompt(organize_by_category(matching), dietary, category)
        system = await self.system_prompt(restaurant_id, details)
        text = await self.generate(system, history, message)
        return self.reply(text)
