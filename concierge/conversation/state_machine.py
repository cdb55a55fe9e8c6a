"""
Finite state machine for the reservation flow.

Every booking follows a deterministic path through these states, so the
probabilistic model output can never skip the availability check or the
confirmation gate. The current state is persisted in the session between
turns and restored with ``ReservationStateMachine(initial_state=...)``.

Usage:
    sm = ReservationStateMachine()
    sm.transition(ReservationTrigger.DETAILS_COMPLETE)
    assert sm.current_state == ReservationState.CHECKING_AVAILABILITY
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)


class ReservationState(str, Enum):
    """All possible states of a reservation flow."""
    COLLECTING_DATE_TIME_PARTY = "collecting_date_time_party"
    CHECKING_AVAILABILITY = "checking_availability"
    SELECTING_TABLE_TYPE = "selecting_table_type"
    COLLECTING_CONTACT = "collecting_contact"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    RESERVATION_CREATED = "reservation_created"
    RESERVATION_FAILED = "reservation_failed"


class ReservationTrigger(str, Enum):
    """Events that cause state transitions."""
    DETAILS_COMPLETE = "details_complete"
    MULTIPLE_OPTIONS = "multiple_options"
    SINGLE_OPTION = "single_option"
    NO_AVAILABILITY = "no_availability"
    TABLE_SELECTED = "table_selected"
    CONTACT_COMPLETE = "contact_complete"
    CUSTOMER_CONFIRMED = "customer_confirmed"
    CREATE_SUCCEEDED = "create_succeeded"
    CREATE_FAILED = "create_failed"
    CONFLICT = "conflict"
    DETAILS_CHANGED = "details_changed"
    CONTACT_INVALID = "contact_invalid"
    RETRY = "retry"
    NEW_BOOKING = "new_booking"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: ReservationState
    to_state: ReservationState
    trigger: ReservationTrigger
    guard: Optional[Callable[[], bool]] = None


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: ReservationState
    entered_at: datetime
    trigger: Optional[ReservationTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


S = ReservationState
T = ReservationTrigger

# States from which a change of date, time, party size or table type
# sends the flow back to collecting.
_CHANGEABLE = (
    S.CHECKING_AVAILABILITY,
    S.SELECTING_TABLE_TYPE,
    S.COLLECTING_CONTACT,
    S.AWAITING_CONFIRMATION,
    S.RESERVATION_FAILED,
)


class ReservationStateMachine:
    """
    Deterministic state machine controlling the reservation flow.

    Every transition must be explicitly defined. Guards passed to
    ``transition`` let callers veto a move (for example, the booking
    details are incomplete) without the machine knowing about slots.
    """

    TRANSITIONS: list[Transition] = [
        # --- Collecting ---
        Transition(S.COLLECTING_DATE_TIME_PARTY, S.CHECKING_AVAILABILITY, T.DETAILS_COMPLETE),

        # --- Availability verdict ---
        Transition(S.CHECKING_AVAILABILITY, S.SELECTING_TABLE_TYPE, T.MULTIPLE_OPTIONS),
        Transition(S.CHECKING_AVAILABILITY, S.COLLECTING_CONTACT, T.SINGLE_OPTION),
        Transition(S.CHECKING_AVAILABILITY, S.COLLECTING_DATE_TIME_PARTY, T.NO_AVAILABILITY),

        # --- Table selection ---
        Transition(S.SELECTING_TABLE_TYPE, S.COLLECTING_CONTACT, T.TABLE_SELECTED),
        Transition(S.SELECTING_TABLE_TYPE, S.COLLECTING_DATE_TIME_PARTY, T.NO_AVAILABILITY),

        # --- Contact and confirmation gate ---
        Transition(S.COLLECTING_CONTACT, S.AWAITING_CONFIRMATION, T.CONTACT_COMPLETE),
        Transition(S.AWAITING_CONFIRMATION, S.RESERVATION_CREATED, T.CREATE_SUCCEEDED),
        Transition(S.AWAITING_CONFIRMATION, S.RESERVATION_FAILED, T.CREATE_FAILED),
        Transition(S.AWAITING_CONFIRMATION, S.CHECKING_AVAILABILITY, T.CONFLICT),
        Transition(S.AWAITING_CONFIRMATION, S.COLLECTING_CONTACT, T.CONTACT_INVALID),

        # --- Recovery ---
        Transition(S.RESERVATION_FAILED, S.AWAITING_CONFIRMATION, T.RETRY),
        Transition(S.RESERVATION_FAILED, S.COLLECTING_CONTACT, T.CONTACT_INVALID),

        # --- Terminal ---
        Transition(S.RESERVATION_CREATED, S.COLLECTING_DATE_TIME_PARTY, T.NEW_BOOKING),
    ] + [
        Transition(state, S.COLLECTING_DATE_TIME_PARTY, T.DETAILS_CHANGED)
        for state in _CHANGEABLE
    ]

    def __init__(
        self, initial_state: Union[ReservationState, str, None] = None
    ) -> None:
        state = ReservationState(initial_state) if initial_state else S.COLLECTING_DATE_TIME_PARTY
        self._current_state = state
        self._history: list[StateEntry] = [
            StateEntry(state=state, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> ReservationState:
        return self._current_state

    def transition(
        self, trigger: ReservationTrigger, guard: Optional[Callable[[], bool]] = None
    ) -> ReservationState:
        """
        Execute a state transition.

        Args:
            trigger: The event triggering the transition.
            guard: Optional extra condition that must hold for the move.

        Returns:
            The new reservation state.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                if t.guard is not None and not t.guard():
                    continue
                if guard is not None and not guard():
                    raise InvalidTransitionError(
                        f"Guard rejected '{trigger.value}' from '{self._current_state.value}'"
                    )

                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Reservation state: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def can(self, trigger: ReservationTrigger) -> bool:
        return trigger in self.get_valid_triggers()

    def get_valid_triggers(self) -> list[ReservationTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        """Return the full state transition history."""
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        """Check if the flow has reached a terminal state."""
        return self._current_state in (S.RESERVATION_CREATED, S.RESERVATION_FAILED)
