"""Configuration helpers for the handshake graph engine."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_PATH = PROJECT_ROOT / ".env"

# Load environment variables early so downstream modules can rely on them.
load_dotenv(ENV_PATH, override=False)

DB_URL_ENV = "HANDSHAKE_DB_URL"
BATCH_SIZE_ENV = "HANDSHAKE_BATCH_SIZE"
MAX_PARALLEL_BATCHES_ENV = "HANDSHAKE_MAX_PARALLEL_BATCHES"
MAX_BFS_DEPTH_ENV = "HANDSHAKE_MAX_BFS_DEPTH"
MAX_BFS_RECIPIENTS_ENV = "HANDSHAKE_MAX_BFS_RECIPIENTS"
MAX_PATH_DEPTH_ENV = "HANDSHAKE_MAX_PATH_DEPTH"
SLICE_MAX_NODES_ENV = "HANDSHAKE_SLICE_MAX_NODES"
MAX_GROWTH_DAYS_ENV = "HANDSHAKE_MAX_GROWTH_DAYS"
TRAVERSAL_TIMEOUT_ENV = "HANDSHAKE_TRAVERSAL_TIMEOUT_SECONDS"

DEFAULT_DB_PATH = PROJECT_ROOT / "data" / "handshake.db"

# Product limits shared with the connection flow.
MAX_CONNECTIONS = 150
GRAPH_SLICE_DEPTH = 3
MAX_SLICE_DEPTH = 3

DEFAULT_BATCH_SIZE = 1000
DEFAULT_MAX_PARALLEL_BATCHES = 4
DEFAULT_MAX_BFS_DEPTH = 6
DEFAULT_MAX_BFS_RECIPIENTS = 10_000
DEFAULT_MAX_PATH_DEPTH = 20
DEFAULT_SLICE_MAX_NODES = 500
DEFAULT_MAX_GROWTH_DAYS = 365


@dataclass(frozen=True)
class GraphStoreSettings:
    """Connection settings for the relational store holding users and connections."""

    url: str


@dataclass(frozen=True)
class TraversalSettings:
    """Bounds and resource limits applied to every traversal call."""

    batch_size: int = DEFAULT_BATCH_SIZE
    max_parallel_batches: int = DEFAULT_MAX_PARALLEL_BATCHES
    max_bfs_depth: int = DEFAULT_MAX_BFS_DEPTH
    max_bfs_recipients: int = DEFAULT_MAX_BFS_RECIPIENTS
    max_path_depth: int = DEFAULT_MAX_PATH_DEPTH
    slice_max_nodes: int = DEFAULT_SLICE_MAX_NODES
    max_growth_days: int = DEFAULT_MAX_GROWTH_DAYS
    timeout_seconds: Optional[float] = None


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value


def _get_positive_int(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer; received '{raw}'.") from exc
    if value <= 0:
        raise RuntimeError(f"{name} must be positive; received {value}.")
    return value


def get_store_settings() -> GraphStoreSettings:
    """Resolve the database URL from environment with a local SQLite default."""

    url = _get_env(DB_URL_ENV, f"sqlite:///{DEFAULT_DB_PATH}")
    return GraphStoreSettings(url=url)


def get_traversal_settings() -> TraversalSettings:
    """Resolve traversal bounds from environment with sensible defaults."""

    raw_timeout = _get_env(TRAVERSAL_TIMEOUT_ENV)
    timeout: Optional[float] = None
    if raw_timeout is not None:
        try:
            timeout = float(raw_timeout)
        except ValueError as exc:
            raise RuntimeError(
                f"{TRAVERSAL_TIMEOUT_ENV} must be a number of seconds; received '{raw_timeout}'."
            ) from exc
        if timeout <= 0:
            raise RuntimeError(f"{TRAVERSAL_TIMEOUT_ENV} must be positive; received {timeout}.")

    return TraversalSettings(
        batch_size=_get_positive_int(BATCH_SIZE_ENV, DEFAULT_BATCH_SIZE),
        max_parallel_batches=_get_positive_int(MAX_PARALLEL_BATCHES_ENV, DEFAULT_MAX_PARALLEL_BATCHES),
        max_bfs_depth=_get_positive_int(MAX_BFS_DEPTH_ENV, DEFAULT_MAX_BFS_DEPTH),
        max_bfs_recipients=_get_positive_int(MAX_BFS_RECIPIENTS_ENV, DEFAULT_MAX_BFS_RECIPIENTS),
        max_path_depth=_get_positive_int(MAX_PATH_DEPTH_ENV, DEFAULT_MAX_PATH_DEPTH),
        slice_max_nodes=_get_positive_int(SLICE_MAX_NODES_ENV, DEFAULT_SLICE_MAX_NODES),
        max_growth_days=_get_positive_int(MAX_GROWTH_DAYS_ENV, DEFAULT_MAX_GROWTH_DAYS),
        timeout_seconds=timeout,
    )
