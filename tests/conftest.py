"""Shared pytest configuration and fixtures for the test suite.

This module centralizes:
- Path setup (eliminates sys.path hacks in individual test files)
- Pytest markers for test categorization (unit, integration)
- SQLite-backed connection store fixtures for integration tests
- Engine factories with small, test-friendly bounds
"""
from __future__ import annotations

import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import pytest


# ==============================================================================
# Path Setup - Ensures handshake_graph/ is importable
# ==============================================================================

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy import create_engine  # noqa: E402

from handshake_graph.config import TraversalSettings  # noqa: E402
from handshake_graph.data.connection_store import ConnectionStore, GraphUser  # noqa: E402
from handshake_graph.graph.engine import TraversalEngine  # noqa: E402


# ==============================================================================
# Pytest Configuration
# ==============================================================================

def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers",
        "unit: Fast tests with no I/O (in-memory store doubles)",
    )
    config.addinivalue_line(
        "markers",
        "integration: Tests hitting SQLite or the file system",
    )


# ==============================================================================
# Temporary Database Fixtures
# ==============================================================================

@pytest.fixture
def temp_graph_db(tmp_path) -> Path:
    """Path to a throwaway SQLite file for connection store tests."""
    return tmp_path / "graph.db"


@pytest.fixture
def connection_store(temp_graph_db) -> ConnectionStore:
    """Empty ConnectionStore on a temporary SQLite file.

    Example:
        def test_something(connection_store):
            connection_store.upsert_users([GraphUser("a")])
    """
    engine = create_engine(f"sqlite:///{temp_graph_db}", future=True)
    store = ConnectionStore(engine)
    yield store
    engine.dispose()


@pytest.fixture
def seed_graph(connection_store):
    """Populate the store from an edge list and return it.

    Example:
        def test_chain(seed_graph):
            store = seed_graph([("A", "B"), ("B", "C")])
    """

    def _seed(
        edges: Iterable[Tuple[str, str]],
        *,
        users: Iterable[str] = (),
        created_at: Optional[Dict[Tuple[str, str], datetime]] = None,
    ) -> ConnectionStore:
        edges = list(edges)
        ids = set(users)
        for a, b in edges:
            ids.update((a, b))
        connection_store.upsert_users([GraphUser(user_id=user_id, name=user_id.title()) for user_id in sorted(ids)])
        stamps = created_at or {}
        for a, b in edges:
            connection_store.add_connection(a, b, created_at=stamps.get((a, b)))
        return connection_store

    return _seed


# ==============================================================================
# Engine Fixtures
# ==============================================================================

@pytest.fixture
def small_settings() -> TraversalSettings:
    """Bounds small enough that batching and caps show up in tiny graphs."""
    return TraversalSettings(
        batch_size=2,
        max_parallel_batches=1,
        max_bfs_depth=6,
        max_bfs_recipients=50,
        max_path_depth=20,
        slice_max_nodes=20,
        max_growth_days=90,
    )


@pytest.fixture
def make_engine(small_settings):
    """Factory for TraversalEngine instances that are closed after the test."""
    engines = []

    def _make(store, settings: Optional[TraversalSettings] = None, **kwargs) -> TraversalEngine:
        engine = TraversalEngine(store, settings or small_settings, **kwargs)
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.close()
