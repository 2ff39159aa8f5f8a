"""Unit tests for configuration module.

Tests environment variable handling, defaults and validation logic.
"""
from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from hypothesis import given, strategies as st

from handshake_graph.config import (
    BATCH_SIZE_ENV,
    DB_URL_ENV,
    DEFAULT_BATCH_SIZE,
    DEFAULT_DB_PATH,
    DEFAULT_MAX_BFS_DEPTH,
    DEFAULT_MAX_BFS_RECIPIENTS,
    DEFAULT_MAX_PATH_DEPTH,
    DEFAULT_SLICE_MAX_NODES,
    MAX_BFS_DEPTH_ENV,
    MAX_PARALLEL_BATCHES_ENV,
    PROJECT_ROOT,
    TRAVERSAL_TIMEOUT_ENV,
    get_store_settings,
    get_traversal_settings,
)


# ==============================================================================
# get_store_settings() Tests
# ==============================================================================

@pytest.mark.unit
def test_get_store_settings_from_env():
    """Should read the database URL from the environment."""
    with patch.dict(os.environ, {DB_URL_ENV: "sqlite:////tmp/other.db"}, clear=True):
        settings = get_store_settings()

    assert settings.url == "sqlite:////tmp/other.db"


@pytest.mark.unit
def test_get_store_settings_default_is_project_sqlite():
    """Should fall back to the SQLite file under the project data directory."""
    with patch.dict(os.environ, {}, clear=True):
        settings = get_store_settings()

    assert settings.url == f"sqlite:///{DEFAULT_DB_PATH}"
    assert DEFAULT_DB_PATH.is_relative_to(PROJECT_ROOT)


@pytest.mark.unit
def test_empty_db_url_uses_default():
    with patch.dict(os.environ, {DB_URL_ENV: ""}, clear=True):
        assert get_store_settings().url == f"sqlite:///{DEFAULT_DB_PATH}"


# ==============================================================================
# get_traversal_settings() Tests
# ==============================================================================

@pytest.mark.unit
def test_get_traversal_settings_defaults():
    with patch.dict(os.environ, {}, clear=True):
        settings = get_traversal_settings()

    assert settings.batch_size == DEFAULT_BATCH_SIZE
    assert settings.max_bfs_depth == DEFAULT_MAX_BFS_DEPTH
    assert settings.max_bfs_recipients == DEFAULT_MAX_BFS_RECIPIENTS
    assert settings.max_path_depth == DEFAULT_MAX_PATH_DEPTH
    assert settings.slice_max_nodes == DEFAULT_SLICE_MAX_NODES
    assert settings.timeout_seconds is None


@pytest.mark.unit
def test_get_traversal_settings_overrides():
    env = {BATCH_SIZE_ENV: "250", MAX_PARALLEL_BATCHES_ENV: "1", TRAVERSAL_TIMEOUT_ENV: "2.5"}
    with patch.dict(os.environ, env, clear=True):
        settings = get_traversal_settings()

    assert settings.batch_size == 250
    assert settings.max_parallel_batches == 1
    assert settings.timeout_seconds == 2.5


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["abc", "1.5", "0", "-3"])
def test_invalid_integer_raises(raw):
    """Should raise RuntimeError for non-numeric or non-positive bounds."""
    with patch.dict(os.environ, {MAX_BFS_DEPTH_ENV: raw}, clear=True):
        with pytest.raises(RuntimeError) as excinfo:
            get_traversal_settings()

    assert MAX_BFS_DEPTH_ENV in str(excinfo.value)


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["soon", "0", "-1"])
def test_invalid_timeout_raises(raw):
    with patch.dict(os.environ, {TRAVERSAL_TIMEOUT_ENV: raw}, clear=True):
        with pytest.raises(RuntimeError, match=TRAVERSAL_TIMEOUT_ENV):
            get_traversal_settings()


@pytest.mark.unit
def test_settings_are_frozen():
    with patch.dict(os.environ, {}, clear=True):
        settings = get_traversal_settings()

    with pytest.raises(AttributeError):
        settings.batch_size = 5  # type: ignore[misc]


# ==============================================================================
# Property Tests
# ==============================================================================

@pytest.mark.unit
@given(value=st.integers(min_value=1, max_value=100_000))
def test_positive_batch_size_round_trips(value):
    """Any positive integer is accepted as-is."""
    with patch.dict(os.environ, {BATCH_SIZE_ENV: str(value)}, clear=True):
        assert get_traversal_settings().batch_size == value


@pytest.mark.unit
@given(value=st.integers(min_value=-100_000, max_value=0))
def test_non_positive_batch_size_always_rejected(value):
    with patch.dict(os.environ, {BATCH_SIZE_ENV: str(value)}, clear=True):
        with pytest.raises(RuntimeError, match="must be positive"):
            get_traversal_settings()
