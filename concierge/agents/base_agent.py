"""
Common contract and plumbing shared by every specialised agent.

An agent receives the user message, the bounded recent history, the
restaurant id and a per-turn ``AgentContext``; it returns an
``AgentResponse`` that is either a reply or a ``HandoffRequest`` for the
orchestrator to resolve.
"""

import asyncio
import logging
import re
from datetime import datetime
from typing import Optional, Sequence

from concierge.config import settings
from concierge.conversation.datetime_parsing import Clock, local_clock, restaurant_now
from concierge.conversation.intent import best_agent, score_intents
from concierge.conversation.slot_extractor import SlotExtractor
from concierge.conversation.structured_output import clean_response
from concierge.errors import LanguageModelTimeout
from concierge.prompts.system_prompts import build_system_prompt
from concierge.schemas.agent_schema import (
    AgentContext,
    AgentResponse,
    HandoffRequest,
    ResponseType,
)
from concierge.schemas.reservation_schema import AvailabilityResult
from concierge.schemas.restaurant_schema import Restaurant
from concierge.schemas.session_schema import AgentName, Turn
from concierge.tools.availability import AvailabilityChecker
from concierge.tools.data_store import RestaurantDataStore
from concierge.tools.language_model import LanguageModelGateway

logger = logging.getLogger(__name__)

# First message of a two-message reply, shown while availability is checked.
CHECKING_TEXT = "Okay, checking for availability..."


class BaseAgent:
    """Base class for agents: handoff detection, prompting and model calls.

    Subclasses set ``name``, ``role`` and ``HANDOFF_RULES`` (target agent ->
    phrases that suggest the guest wants that agent) and implement
    ``process_message``.
    """

    name: AgentName
    role: str = ""
    HANDOFF_RULES: dict[AgentName, tuple[str, ...]] = {}

    def __init__(
        self,
        store: RestaurantDataStore,
        llm: LanguageModelGateway,
        *,
        checker: Optional[AvailabilityChecker] = None,
        extractor: Optional[SlotExtractor] = None,
        clock: Optional[Clock] = None,
        llm_timeout_sec: Optional[float] = None,
    ) -> None:
        self._store = store
        self._llm = llm
        self._clock = clock or local_clock()
        self._checker = checker or AvailabilityChecker(store, clock=self._clock)
        self._extractor = extractor or SlotExtractor(clock=self._clock)
        self._timeout = llm_timeout_sec or settings.model.llm_timeout_sec

    async def process_message(
        self,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
    ) -> AgentResponse:
        raise NotImplementedError

    # ------------------------------------------------------------------ #
    # Handoffs
    # ------------------------------------------------------------------ #

    def handoff_target(self, message: str, context: AgentContext) -> Optional[AgentName]:
        """Agent the guest should be passed to, or None to answer here.

        An agent suggested by the orchestrator wins outright. Otherwise a
        handoff phrase must match and the target's intent score must beat
        this agent's own score.
        """
        if context.suggested_agent and context.suggested_agent != self.name:
            return context.suggested_agent

        lower = message.lower()
        candidates = [
            target
            for target, phrases in self.HANDOFF_RULES.items()
            if target != context.routed_from
            and any(re.search(rf"\b{re.escape(p)}", lower) for p in phrases)
        ]
        if not candidates:
            return None

        scores = score_intents(message)
        own = scores.get(self.name, 0.0)
        target = best_agent({c: scores.get(c, 0.0) for c in candidates})
        if target is None or scores.get(target, 0.0) <= own:
            return None
        return target

    def handoff(
        self,
        target: AgentName,
        message: str,
        restaurant_id: str,
        context: AgentContext,
        **extra,
    ) -> AgentResponse:
        logger.info("Handoff %s -> %s", self.name.value, target.value)
        return AgentResponse(
            agent=self.name,
            type=ResponseType.DELEGATION,
            handoff=HandoffRequest(
                target_agent=target,
                message=message,
                restaurant_id=restaurant_id,
                context={"slots": context.slots.copy(), **extra},
            ),
        )

    # ------------------------------------------------------------------ #
    # Model calls
    # ------------------------------------------------------------------ #

    def now(self, context: Optional[AgentContext] = None) -> datetime:
        """Restaurant wall clock for this turn, else the agent clock."""
        if context is not None and context.now is not None:
            return context.now
        return self._clock()

    def today(self, restaurant: Optional[Restaurant] = None) -> str:
        timezone_name = restaurant.timezone if restaurant is not None else None
        return restaurant_now(self._clock, timezone_name).date().isoformat()

    async def check_slots(self, restaurant_id: str, context: AgentContext) -> AvailabilityResult:
        details = context.slots.booking_details()
        return await self._checker.check(
            restaurant_id,
            details.date,
            details.time,
            details.party_size,
            details.table_type,
            now=self.now(context),
        )

    async def system_prompt(self, restaurant_id: str, details: str = "") -> str:
        restaurant = await self._store.get_restaurant(restaurant_id)
        return build_system_prompt(self.role, restaurant, self.today(restaurant), details)

    async def generate(
        self, system_prompt: str, history: Sequence[Turn], message: str, *, raw: bool = False
    ) -> str:
        """Call the language model with a timeout.

        Returns the reply with structured blocks stripped unless ``raw``.

        Raises:
            LanguageModelTimeout: If no reply arrives within the timeout.
            LanguageModelError: For any other model failure.
        """
        try:
            reply = await asyncio.wait_for(
                self._llm.generate(system_prompt, history, message), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            raise LanguageModelTimeout(
                f"{self.name.value} agent: no model reply within {self._timeout}s"
            ) from exc
        return reply if raw else clean_response(reply)

    def reply(
        self,
        text: str,
        *,
        last_question: Optional[str] = None,
        messages: Optional[list[str]] = None,
    ) -> AgentResponse:
        if messages:
            return AgentResponse(
                agent=self.name,
                type=ResponseType.TWO_MESSAGES,
                text=messages[-1],
                messages=messages,
                last_question=last_question,
            )
        return AgentResponse(agent=self.name, text=text, last_question=last_question)
