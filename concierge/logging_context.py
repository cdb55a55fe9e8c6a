"""Session correlation id stamped on every log record of a turn.

The orchestrator wraps each turn in ``session_scope(session_id)``. A
``SessionIdFilter`` installed on the root handlers copies the current id
onto every record that reaches them, so a plain
``logging.getLogger(__name__)`` anywhere in the package logs with
``%(session_id)s``. Outside a turn the id is ``-``.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterable, Iterator, Optional

NO_SESSION = "-"

_session_id: ContextVar[str] = ContextVar("session_id", default=NO_SESSION)


@contextmanager
def session_scope(session_id: str) -> Iterator[None]:
    """Tag log records with ``session_id`` until the block exits."""
    token = _session_id.set(session_id)
    try:
        yield
    finally:
        _session_id.reset(token)


class SessionIdFilter(logging.Filter):
    """Adds ``session_id`` to records that do not already carry one."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "session_id"):
            record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def install_session_filter(handlers: Optional[Iterable[logging.Handler]] = None) -> None:
    """Attach one ``SessionIdFilter`` to each handler, the root handlers by default."""
    targets = logging.getLogger().handlers if handlers is None else handlers
    for handler in targets:
        if not any(isinstance(f, SessionIdFilter) for f in handler.filters):
            handler.addFilter(SessionIdFilter())
