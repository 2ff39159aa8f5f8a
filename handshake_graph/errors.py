"""Exceptions raised by the handshake graph engine.

All package errors inherit from HandshakeGraphError. Outcomes that are part of
normal operation (a truncated scan, a missing path) are returned as values and
never raised.
"""
from __future__ import annotations


class HandshakeGraphError(Exception):
    """Base exception for handshake graph errors."""


class StoreUnavailable(HandshakeGraphError):
    """The connection store failed with an I/O or database error.

    Callers may retry; the partially accumulated traversal is discarded.
    """

    retryable = True


class InvalidParameter(HandshakeGraphError, ValueError):
    """A depth, limit, window or id was rejected before traversal started."""


class RootNotFound(HandshakeGraphError, LookupError):
    """The requested user does not exist (or was deleted)."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"User '{user_id}' not found")
        self.user_id = user_id


class TraversalCancelled(HandshakeGraphError):
    """The traversal was cancelled before it completed."""


class TraversalTimeout(TraversalCancelled):
    """The traversal deadline passed before it completed."""


class DuplicateConnection(HandshakeGraphError):
    """The two users are already connected."""


class ConnectionLimitReached(HandshakeGraphError):
    """One of the endpoints already has the maximum number of connections."""
