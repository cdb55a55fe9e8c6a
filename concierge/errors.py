"""Exception hierarchy for the orchestration core.

Upstream failures (language model, data store) are recoverable per turn:
the orchestrator catches them at the agent boundary and leaves the
session untouched so the user can simply retry.
"""


class ConciergeError(Exception):
    """Base class for all errors raised by this package."""


class LanguageModelError(ConciergeError):
    """The language model call failed."""


class LanguageModelTimeout(LanguageModelError):
    """The language model did not answer within the configured timeout."""


class LanguageModelRateLimited(LanguageModelError):
    """The language model provider rejected the call due to rate limits."""


class DataStoreError(ConciergeError):
    """A restaurant data store operation failed."""


class RestaurantNotFoundError(DataStoreError):
    """No restaurant exists for the given identifier."""


class ReservationConflictError(DataStoreError):
    """The requested slot was taken between the availability check and the insert."""


class HandoffDepthExceeded(ConciergeError):
    """Agents delegated to each other more times than allowed in one turn."""
