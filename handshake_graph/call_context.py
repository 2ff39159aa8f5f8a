"""Call-scoped context helpers for logging correlation.

This module provides a context-local call id and a logging Filter that injects
it into every LogRecord so all log lines of one traversal can be grepped
together, including lines emitted from batch worker threads.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from uuid import uuid4

_CALL_ID: ContextVar[str] = ContextVar("handshake_call_id", default="-")


def new_call_id() -> str:
    return uuid4().hex[:8]


def set_call_id(call_id: str):
    """Set the call id and return the token needed to restore the previous one."""
    return _CALL_ID.set(call_id)


def reset_call_id(token) -> None:
    _CALL_ID.reset(token)


def get_call_id() -> str:
    return _CALL_ID.get()


class CallIdFilter(logging.Filter):
    """Inject `call_id` into log records (always present)."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 - required by logging.Filter
        record.call_id = get_call_id()
        return True
