"""In-memory connection store double for traversal tests."""
from __future__ import annotations

import threading
import time
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from handshake_graph.graph.models import Connection

DEFAULT_CREATED_AT = datetime(2024, 1, 1, 12, 0, 0)


class MemoryConnectionStore:
    """Adjacency held in dicts; records every ``neighbors`` call it serves."""

    def __init__(
        self,
        edges: Iterable[Tuple[str, str]] = (),
        *,
        users: Iterable[str] = (),
        created_at: Optional[Dict[Tuple[str, str], datetime]] = None,
    ) -> None:
        self.users: Set[str] = set(users)
        self.connections: Dict[Tuple[str, str], Connection] = {}
        self.neighbor_calls: List[List[str]] = []
        self._lock = threading.Lock()
        stamps = created_at or {}
        for a, b in edges:
            low, high = (a, b) if a < b else (b, a)
            self.users.update((low, high))
            stamp = stamps.get((a, b)) or stamps.get((low, high)) or DEFAULT_CREATED_AT
            self.connections[(low, high)] = Connection(user_a_id=low, user_b_id=high, created_at=stamp)

    # Graph lookups -----------------------------------------------------
    def neighbors(self, user_ids: Sequence[str]) -> List[Connection]:
        ids = set(user_ids)
        with self._lock:
            self.neighbor_calls.append(sorted(ids))
        return [conn for conn in self.connections.values() if conn.user_a_id in ids or conn.user_b_id in ids]

    def edges_among(self, user_ids: Iterable[str], *, batch_size: int = 1000) -> List[Connection]:
        ids = set(user_ids)
        return [conn for conn in self.connections.values() if conn.user_a_id in ids and conn.user_b_id in ids]

    def existing_user_ids(self, user_ids: Iterable[str]) -> Set[str]:
        return {user_id for user_id in user_ids if user_id in self.users}

    def user_summaries(self, user_ids: Iterable[str]) -> List[dict]:
        return [
            {"id": user_id, "name": user_id.title(), "photo_url": None, "last_seen": None}
            for user_id in sorted(set(user_ids))
            if user_id in self.users
        ]

    def connection_counts(self, user_ids: Iterable[str]) -> Dict[str, int]:
        return {
            user_id: sum(1 for conn in self.connections.values() if conn.touches(user_id))
            for user_id in set(user_ids)
        }

    def connection_times(
        self, user_id: str, *, since: datetime, until: Optional[datetime] = None
    ) -> List[datetime]:
        return sorted(
            conn.created_at
            for conn in self.connections.values()
            if conn.touches(user_id)
            and conn.created_at >= since
            and (until is None or conn.created_at < until)
        )

    def count_connections_before(self, user_id: str, before: datetime) -> int:
        return sum(
            1 for conn in self.connections.values() if conn.touches(user_id) and conn.created_at < before
        )


class SlowMemoryStore(MemoryConnectionStore):
    """Sleeps inside every neighbor lookup so deadlines and cancels can land mid-traversal."""

    def __init__(self, edges: Iterable[Tuple[str, str]] = (), *, delay: float = 0.05, **kwargs) -> None:
        super().__init__(edges, **kwargs)
        self.delay = delay

    def neighbors(self, user_ids: Sequence[str]) -> List[Connection]:
        time.sleep(self.delay)
        return super().neighbors(user_ids)


class FailingMemoryStore(MemoryConnectionStore):
    """Raises ``error`` from neighbor lookups once ``fail_after`` calls have succeeded."""

    def __init__(self, edges: Iterable[Tuple[str, str]] = (), *, error: Exception, fail_after: int = 0, **kwargs) -> None:
        super().__init__(edges, **kwargs)
        self.error = error
        self.fail_after = fail_after

    def neighbors(self, user_ids: Sequence[str]) -> List[Connection]:
        if len(self.neighbor_calls) >= self.fail_after:
            with self._lock:
                self.neighbor_calls.append(sorted(user_ids))
            raise self.error
        return super().neighbors(user_ids)
