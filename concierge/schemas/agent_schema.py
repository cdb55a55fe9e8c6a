"""Messages exchanged between the orchestrator and the agents."""

from dataclasses import dataclass, field
from enum import Enum
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from concierge.schemas.session_schema import AgentName, CollectedSlots


class ResponseType(str, Enum):
    """Shape of an agent's reply."""
    MESSAGE = "message"
    REDIRECT = "redirect"
    TWO_MESSAGES = "two_messages"
    DELEGATION = "delegation"


class ResponseKind(str, Enum):
    """How a user message relates to the last agent question."""
    DIRECT_ANSWER = "direct_answer"
    CORRECTION = "correction"
    GREETING = "greeting"
    LOCATION_DATA = "location_data"
    UNCLEAR = "unclear"


@dataclass
class HandoffRequest:
    """Transfer of control from one agent to another within the same turn."""
    target_agent: AgentName
    message: str
    restaurant_id: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class AgentContext:
    """Working state handed to an agent for one turn.

    ``slots`` and ``reservation_state`` are per-turn copies. Agents may
    update them; the orchestrator copies them back into the session only
    after the turn succeeds.

    ``now`` is the restaurant wall clock at the start of the turn.
    """
    slots: CollectedSlots
    kind: ResponseKind = ResponseKind.UNCLEAR
    reservation_state: Optional[str] = None
    last_question: Optional[str] = None
    changed_fields: list[str] = field(default_factory=list)
    handoff_context: dict[str, Any] = field(default_factory=dict)
    routed_from: Optional[AgentName] = None
    suggested_agent: Optional[AgentName] = None
    now: Optional[datetime] = None

    def absorb(self, handoff: HandoffRequest) -> None:
        """Merge carry-over context from a handoff into this context."""
        carried = handoff.context.get("slots")
        if isinstance(carried, CollectedSlots):
            self.slots.fill_missing(carried.filled())
            for name in carried.shown_table_types:
                if name not in self.slots.shown_table_types:
                    self.slots.shown_table_types.append(name)
        extras = {k: v for k, v in handoff.context.items() if k != "slots"}
        self.handoff_context.update(extras)
        if extras.get("availability_confirmed"):
            self.slots.availability_confirmed = True
        self.suggested_agent = None


@dataclass
class AgentResponse:
    """What an agent returns for one invocation."""
    agent: AgentName
    type: ResponseType = ResponseType.MESSAGE
    text: str = ""
    messages: list[str] = field(default_factory=list)
    reservation_details: Optional[dict[str, Any]] = None
    handoff: Optional[HandoffRequest] = None
    last_question: Optional[str] = None
    reservation_created: bool = False


class TurnResult(BaseModel):
    """Outbound result of one conversation turn."""
    type: ResponseType
    text: str
    messages: list[str] = Field(default_factory=list)
    reservation_details: Optional[dict[str, Any]] = None
    agent: Optional[AgentName] = None
