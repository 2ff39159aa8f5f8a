"""Batched frontier expansion over the connection store.

One BFS level costs ``ceil(len(frontier) / batch_size)`` store queries,
never one query per node. Chunks of a level may run on a shared worker pool;
their results are merged in chunk order so the output never depends on
thread scheduling.
"""
from __future__ import annotations

import contextvars
import logging
from concurrent.futures import FIRST_EXCEPTION, Executor, Future, wait
from typing import AbstractSet, Dict, List, Optional, Sequence

from handshake_graph.graph.cancel import CancelToken
from handshake_graph.graph.models import Connection, Link

logger = logging.getLogger(__name__)

# Upper bound on how long we block on workers before re-checking the cancel token.
_POLL_SECONDS = 0.05


def chunked(ids: Sequence[str], size: int) -> List[List[str]]:
    return [list(ids[i:i + size]) for i in range(0, len(ids), size)]


class FrontierExpander:
    """Expand a BFS frontier with batched neighbor lookups.

    Args:
        store: Anything exposing ``neighbors(ids) -> Iterable[Connection]``.
        batch_size: Maximum ids per store query.
        executor: Optional shared pool used to run the chunks of one level
            concurrently. Its ``max_workers`` caps in-flight queries.
        cancel: Token checked before each chunk and while waiting on workers.
    """

    def __init__(
        self,
        store,
        *,
        batch_size: int = 1000,
        executor: Optional[Executor] = None,
        cancel: Optional[CancelToken] = None,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self._store = store
        self._batch_size = batch_size
        self._executor = executor
        self._cancel = cancel or CancelToken()
        self.queries_issued = 0

    def expand(self, frontier: AbstractSet[str], visited: AbstractSet[str]) -> set[str]:
        """Distinct neighbors of ``frontier`` that are not in ``visited``."""
        return set(self.expand_with_parents(frontier, visited))

    def expand_with_parents(
        self, frontier: AbstractSet[str], visited: AbstractSet[str]
    ) -> Dict[str, Link]:
        """Map each newly discovered node to its lowest-id parent in ``frontier``.

        The returned dict iterates in ascending child id.
        """
        if not frontier:
            return {}
        discovered: Dict[str, Link] = {}
        for conn in self._lookup(sorted(frontier)):
            for parent in (conn.user_a_id, conn.user_b_id):
                if parent not in frontier:
                    continue
                child = conn.other(parent)
                if child in visited:
                    continue
                current = discovered.get(child)
                if current is None or parent < current.parent:
                    discovered[child] = Link(parent=parent, created_at=conn.created_at)
        return {child: discovered[child] for child in sorted(discovered)}

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _fetch(self, chunk: List[str]) -> List[Connection]:
        self._cancel.raise_if_cancelled()
        return list(self._store.neighbors(chunk))

    def _lookup(self, ordered_ids: List[str]) -> List[Connection]:
        chunks = chunked(ordered_ids, self._batch_size)
        self.queries_issued += len(chunks)
        logger.debug("Expanding %d id(s) in %d batch(es)", len(ordered_ids), len(chunks))

        if self._executor is None or len(chunks) == 1:
            merged: List[Connection] = []
            for chunk in chunks:
                merged.extend(self._fetch(chunk))
            self._cancel.raise_if_cancelled()
            return merged

        futures: List[Future] = []
        for chunk in chunks:
            # Carry the caller's context (call id) into the worker thread.
            ctx = contextvars.copy_context()
            futures.append(self._executor.submit(ctx.run, self._fetch, chunk))
        self._await(futures)

        merged = []
        for future in futures:
            merged.extend(future.result())
        return merged

    def _await(self, futures: List[Future]) -> None:
        pending = set(futures)
        try:
            while pending:
                self._cancel.raise_if_cancelled()
                timeout = _POLL_SECONDS
                remaining = self._cancel.remaining()
                if remaining is not None:
                    timeout = min(timeout, remaining)
                done, pending = wait(pending, timeout=timeout, return_when=FIRST_EXCEPTION)
                for future in done:
                    exc = future.exception()
                    if exc is not None:
                        raise exc
        except BaseException:
            for future in pending:
                future.cancel()
            raise
