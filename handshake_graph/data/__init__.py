"""Relational store access for users and connections."""

from __future__ import annotations

from .connection_store import (
    ConnectionStore,
    GraphUser,
    canonical_pair,
    create_store_engine,
    get_connection_store,
)

__all__ = [
    "ConnectionStore",
    "GraphUser",
    "canonical_pair",
    "create_store_engine",
    "get_connection_store",
]
