"""
Orchestrator: the single entry point for one conversation turn.

handle_turn(session_id, restaurant_id, message)
    1. Serialise on the session lock and load (or start) the session
    2. Classify the message and run the slot extractor on a copy of the slots
    3. Pick an agent: stay with the active agent for direct answers,
       otherwise weighted intent scoring
    4. Invoke it and follow handoffs up to ``max_handoff_depth``
    5. Apply output guardrails, then commit slots, state and history

A language model or data store failure anywhere in steps 2-4 returns a
fixed apology and leaves the session exactly as it was.
"""

import logging
from typing import Mapping, Optional, Sequence

from concierge.agents.base_agent import BaseAgent
from concierge.agents.registry import create_all_agents
from concierge.config import settings
from concierge.conversation.datetime_parsing import Clock, local_clock, restaurant_now
from concierge.conversation.guardrails import GuardrailPipeline
from concierge.conversation.intent import best_agent, score_intents
from concierge.conversation.session_store import SessionStore
from concierge.conversation.slot_extractor import SlotExtractor
from concierge.conversation.state_machine import ReservationState
from concierge.errors import DataStoreError, HandoffDepthExceeded, LanguageModelError
from concierge.logging_context import session_scope
from concierge.schemas.agent_schema import (
    AgentContext,
    AgentResponse,
    ResponseKind,
    ResponseType,
    TurnResult,
)
from concierge.schemas.session_schema import (
    BOOKING_FIELDS,
    AgentName,
    CollectedSlots,
    Sender,
    Session,
    Turn,
)
from concierge.tools.availability import AvailabilityChecker
from concierge.tools.data_store import RestaurantDataStore
from concierge.tools.language_model import LanguageModelGateway

logger = logging.getLogger(__name__)

FALLBACK_TEXT = (
    "I'm sorry, I'm having trouble answering right now. "
    "Could you please try again in a moment?"
)
CLARIFICATION_TEXT = (
    "I'm sorry, I didn't quite follow. "
    "Could you tell me a little more about what you need?"
)


class Orchestrator:
    """Routes messages to agents and owns every write to session state."""

    def __init__(
        self,
        store: RestaurantDataStore,
        llm: LanguageModelGateway,
        *,
        sessions: Optional[SessionStore] = None,
        agents: Optional[Mapping[AgentName, BaseAgent]] = None,
        clock: Optional[Clock] = None,
        max_handoff_depth: Optional[int] = None,
        history_window: Optional[int] = None,
    ) -> None:
        cfg = settings.orchestration
        self._store = store
        self._clock = clock or local_clock()
        self._extractor = SlotExtractor(clock=self._clock)
        self._sessions = sessions if sessions is not None else SessionStore()
        self._guardrails = GuardrailPipeline()
        self._max_depth = max_handoff_depth or cfg.max_handoff_depth
        self._window = history_window or cfg.history_window

        if agents is None:
            agents = create_all_agents(
                store=store,
                llm=llm,
                checker=AvailabilityChecker(store, clock=self._clock),
                extractor=self._extractor,
                clock=self._clock,
            )
        missing = [name.value for name in AgentName if name not in agents]
        if missing:
            raise ValueError(f"Orchestrator needs an agent for every name, missing: {missing}")
        self._agents = dict(agents)

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    # ------------------------------------------------------------------ #
    # Inbound boundary
    # ------------------------------------------------------------------ #

    async def handle_turn(self, session_id: str, restaurant_id: str, message: str) -> TurnResult:
        """Process one user message and return what to show the guest."""
        with session_scope(session_id):
            async with self._sessions.lock(session_id):
                session = self._sessions.get_or_create(session_id, restaurant_id)
                try:
                    response, context = await self._run(message, session)
                except (LanguageModelError, DataStoreError):
                    logger.exception("Turn failed, session left unchanged")
                    return TurnResult(
                        type=ResponseType.MESSAGE, text=FALLBACK_TEXT, agent=session.active_agent
                    )

                result = self._finalise(response)
                self._commit(session, message, response, context, result)
                return result

    async def route(self, message: str, session: Session) -> AgentResponse:
        """Resolve the agent reply for ``message`` without modifying ``session``."""
        response, _ = await self._run(message, session)
        return response

    # ------------------------------------------------------------------ #
    # Routing
    # ------------------------------------------------------------------ #

    async def _run(self, message: str, session: Session) -> tuple[AgentResponse, AgentContext]:
        restaurant_id = session.restaurant_id
        restaurant = await self._store.get_restaurant(restaurant_id)
        now = restaurant_now(self._clock, restaurant.timezone)
        table_types = [t.name for t in await self._store.get_table_types(restaurant_id)]
        history = session.recent_history(self._window)

        kind = self._extractor.classify(
            message,
            session.last_agent_message(),
            last_question=session.last_question_asked,
            known_table_types=table_types,
            today=now.date(),
        )
        slots = self._extractor.extract(
            message,
            history,
            session.collected_slots,
            last_question=session.last_question_asked,
            known_table_types=table_types,
            today=now.date(),
        )
        context = AgentContext(
            slots=slots,
            kind=kind,
            reservation_state=session.reservation_state,
            last_question=session.last_question_asked,
            changed_fields=slots.changed_fields(session.collected_slots),
            now=now,
        )
        target = self._select_agent(message, session, context)

        try:
            response = await self._dispatch(target, message, history, restaurant_id, context, 0)
        except HandoffDepthExceeded as exc:
            logger.warning("%s", exc)
            response = AgentResponse(
                agent=session.active_agent or AgentName.RESTAURANT_INFO,
                text=CLARIFICATION_TEXT,
            )
        return response, context

    def _select_agent(self, message: str, session: Session, context: AgentContext) -> AgentName:
        active = session.active_agent
        in_flow = self._booking_in_progress(session)
        answering = context.kind in (ResponseKind.DIRECT_ANSWER, ResponseKind.CORRECTION)
        if active is not None and answering and (
            session.last_question_asked or (active == AgentName.RESERVATION and in_flow)
        ):
            logger.debug("Staying with %s for a %s", active.value, context.kind.value)
            return active

        winner = best_agent(score_intents(message))
        if winner is None:
            if _wrote_booking_details(context.slots, session.collected_slots):
                return AgentName.RESERVATION
            return active or AgentName.RESTAURANT_INFO

        if active == AgentName.RESERVATION and in_flow and winner != AgentName.RESERVATION:
            # The reservation agent owns an open booking and hands the guest over itself.
            context.suggested_agent = winner
            return AgentName.RESERVATION

        if winner != active:
            logger.info(
                "Agent switch: %s -> %s", active.value if active else None, winner.value
            )
        return winner

    @staticmethod
    def _booking_in_progress(session: Session) -> bool:
        return session.reservation_state not in (None, ReservationState.RESERVATION_CREATED.value)

    async def _dispatch(
        self,
        target: AgentName,
        message: str,
        history: Sequence[Turn],
        restaurant_id: str,
        context: AgentContext,
        depth: int,
    ) -> AgentResponse:
        response = await self._agents[target].process_message(
            message, history, restaurant_id, context
        )
        if response.type != ResponseType.DELEGATION or response.handoff is None:
            return response

        handoff = response.handoff
        if depth >= self._max_depth:
            raise HandoffDepthExceeded(
                f"Handoff chain exceeded {self._max_depth} "
                f"({target.value} -> {handoff.target_agent.value})"
            )
        logger.info(
            "Handoff %d: %s -> %s", depth + 1, target.value, handoff.target_agent.value
        )
        context.absorb(handoff)
        context.routed_from = target
        return await self._dispatch(
            handoff.target_agent, handoff.message, history,
            handoff.restaurant_id, context, depth + 1,
        )

    # ------------------------------------------------------------------ #
    # Output and commit
    # ------------------------------------------------------------------ #

    def _finalise(self, response: AgentResponse) -> TurnResult:
        if response.type == ResponseType.REDIRECT:
            return TurnResult(
                type=response.type,
                text=response.text,
                reservation_details=response.reservation_details,
                agent=response.agent,
            )
        created = response.reservation_created
        messages = [self._guardrails.enforce(m, created) for m in response.messages]
        text = messages[-1] if messages else self._guardrails.enforce(response.text, created)
        return TurnResult(
            type=response.type,
            text=text,
            messages=messages,
            reservation_details=response.reservation_details,
            agent=response.agent,
        )

    def _commit(
        self,
        session: Session,
        message: str,
        response: AgentResponse,
        context: AgentContext,
        result: TurnResult,
    ) -> None:
        session.collected_slots = context.slots.copy()
        session.reservation_state = context.reservation_state
        session.active_agent = response.agent
        session.last_question_asked = response.last_question
        session.history.append(Turn(sender=Sender.USER, text=message))
        for text in result.messages or [result.text]:
            session.history.append(Turn(sender=Sender.AGENT, text=text, agent=response.agent))
        self._sessions.touch(session)


def _wrote_booking_details(slots: CollectedSlots, previous: CollectedSlots) -> bool:
    return any(getattr(slots, f) != getattr(previous, f) for f in BOOKING_FIELDS)
