from concierge.conversation.guardrails import GuardrailPipeline
from concierge.conversation.session_store import SessionStore
from concierge.conversation.slot_extractor import SlotExtractor
from concierge.conversation.slot_manager import SlotManager
from concierge.conversation.state_machine import (
    InvalidTransitionError,
    ReservationState,
    ReservationStateMachine,
    ReservationTrigger,
)

__all__ = [
    "ReservationStateMachine",
    "ReservationState",
    "ReservationTrigger",
    "InvalidTransitionError",
    "SlotExtractor",
    "SlotManager",
    "SessionStore",
    "GuardrailPipeline",
]
