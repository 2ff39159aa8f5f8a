"""Traversal engine facade used by the consuming features.

Every public operation validates its parameters before touching the store,
checks that the root exists, runs under a cancellation token and a fresh call
id, and turns database failures into ``StoreUnavailable``. No state survives
between calls except the bounded batch worker pool.
"""
from __future__ import annotations

import logging
import re
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from handshake_graph.call_context import new_call_id, reset_call_id, set_call_id
from handshake_graph.config import GRAPH_SLICE_DEPTH, MAX_SLICE_DEPTH, TraversalSettings, get_traversal_settings
from handshake_graph.errors import InvalidParameter, RootNotFound, StoreUnavailable
from handshake_graph.graph.aggregate import (
    bucket_by_day,
    day_start,
    depth_histogram,
    growth_series,
    utc_today,
    window_bounds,
)
from handshake_graph.graph.cancel import CancelToken
from handshake_graph.graph.frontier import FrontierExpander
from handshake_graph.graph.models import (
    DepthStats,
    GraphSlice,
    GrowthPoint,
    PathNotFound,
    PathOutcome,
    ReachabilityResult,
)
from handshake_graph.graph.reachability import scan_reachability
from handshake_graph.graph.shortest_path import find_shortest_path
from handshake_graph.graph.slicer import extract_slice

logger = logging.getLogger(__name__)

T = TypeVar("T")

_USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.:@\-]{1,128}$")

DEFAULT_GROWTH_DAYS = 30


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TraversalEngine:
    """Read-only traversal operations over a connection store.

    Args:
        store: Connection store adapter (see ``ConnectionStore``).
        settings: Bounds and pool size; resolved from the environment when omitted.
        clock: Returns the current time; growth windows end on its UTC day.
    """

    def __init__(
        self,
        store,
        settings: Optional[TraversalSettings] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self.settings = settings or get_traversal_settings()
        self._clock = clock
        self._executor: Optional[ThreadPoolExecutor] = None
        if self.settings.max_parallel_batches > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=self.settings.max_parallel_batches,
                thread_name_prefix="handshake-batch",
            )

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True, cancel_futures=True)
            self._executor = None

    def __enter__(self) -> "TraversalEngine":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    def reachability(
        self,
        root: str,
        max_depth: Optional[int] = None,
        max_total: Optional[int] = None,
        exclude: Iterable[str] = (),
        *,
        cancel: Optional[CancelToken] = None,
    ) -> ReachabilityResult:
        """Users within ``max_depth`` handshakes of ``root``, ordered by (depth, id)."""
        max_depth = self.settings.max_bfs_depth if max_depth is None else max_depth
        max_total = self.settings.max_bfs_recipients if max_total is None else max_total
        self._check_id(root, "root")
        self._check_range(max_depth, "max_depth", 1, self.settings.max_bfs_depth)
        self._check_range(max_total, "max_total", 1, self.settings.max_bfs_recipients)
        if isinstance(exclude, (str, bytes)):
            raise InvalidParameter(f"exclude must be a collection of user ids; received {exclude!r}")
        excluded = frozenset(exclude)
        for user_id in excluded:
            self._check_id(user_id, "exclude")

        def _op(expander: FrontierExpander) -> ReachabilityResult:
            self._require_users(root)
            return scan_reachability(
                expander, root, max_depth=max_depth, max_total=max_total, exclude=excluded
            )

        result = self._run("reachability", _op, cancel, root=root, max_depth=max_depth, excluded=len(excluded))
        if result.truncated:
            logger.info("reachability for %s truncated at %d user(s)", root, len(result.users))
        return result

    def shortest_path(
        self,
        source: str,
        target: str,
        max_depth: Optional[int] = None,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> PathOutcome:
        """Shortest handshake chain, or ``PathNotFound`` when none fits in ``max_depth``."""
        max_depth = self.settings.max_path_depth if max_depth is None else max_depth
        self._check_id(source, "source")
        self._check_id(target, "target")
        self._check_range(max_depth, "max_depth", 1, self.settings.max_path_depth)

        def _op(expander: FrontierExpander) -> PathOutcome:
            self._require_users(source, target)
            return find_shortest_path(expander, source, target, max_depth=max_depth)

        outcome = self._run("shortest_path", _op, cancel, root=source, target=target, max_depth=max_depth)
        if isinstance(outcome, PathNotFound):
            logger.info("no path %s -> %s within %d handshake(s)", source, target, max_depth)
        return outcome

    def slice(
        self,
        root: str,
        depth: int = GRAPH_SLICE_DEPTH,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> GraphSlice:
        """Induced subgraph of everyone within ``depth`` (1-3) handshakes."""
        self._check_id(root, "root")
        self._check_range(depth, "depth", 1, MAX_SLICE_DEPTH)

        def _op(expander: FrontierExpander) -> GraphSlice:
            self._require_users(root)
            return extract_slice(
                expander,
                self._store,
                root,
                depth=depth,
                max_nodes=self.settings.slice_max_nodes,
                batch_size=self.settings.batch_size,
            )

        return self._run("slice", _op, cancel, root=root, depth=depth)

    def stats_by_depth(self, root: str, *, cancel: Optional[CancelToken] = None) -> DepthStats:
        """Number of people reachable at each handshake distance."""
        self._check_id(root, "root")

        def _op(expander: FrontierExpander) -> DepthStats:
            self._require_users(root)
            scan = scan_reachability(
                expander,
                root,
                max_depth=self.settings.max_bfs_depth,
                max_total=self.settings.max_bfs_recipients,
            )
            return DepthStats(root=root, counts=depth_histogram(scan), truncated=scan.truncated)

        return self._run("stats_by_depth", _op, cancel, root=root)

    def growth_series(
        self,
        root: str,
        days: int = DEFAULT_GROWTH_DAYS,
        *,
        cancel: Optional[CancelToken] = None,
    ) -> List[GrowthPoint]:
        """Cumulative connection count of ``root`` for each of the last ``days`` UTC days."""
        self._check_id(root, "root")
        self._check_range(days, "days", 1, self.settings.max_growth_days)

        cancel = cancel or self._new_token()

        def _op(expander: FrontierExpander) -> List[GrowthPoint]:
            self._require_users(root)
            start, end = window_bounds(days, utc_today(self._clock()))
            since = day_start(start)
            baseline = self._store.count_connections_before(root, since)
            cancel.raise_if_cancelled()
            stamps = self._store.connection_times(root, since=since)
            return growth_series(bucket_by_day(stamps), baseline, start, end)

        return self._run("growth_series", _op, cancel, root=root, days=days)

    def network(self, root: str, *, cancel: Optional[CancelToken] = None) -> ReachabilityResult:
        """The whole connected component of ``root``, capped at ``max_bfs_recipients``."""
        self._check_id(root, "root")

        def _op(expander: FrontierExpander) -> ReachabilityResult:
            self._require_users(root)
            return scan_reachability(
                expander, root, max_depth=None, max_total=self.settings.max_bfs_recipients
            )

        return self._run("network", _op, cancel, root=root)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _new_token(self) -> CancelToken:
        return CancelToken(timeout_seconds=self.settings.timeout_seconds)

    @staticmethod
    def _check_id(user_id, name: str) -> None:
        if not isinstance(user_id, str) or not _USER_ID_PATTERN.match(user_id):
            raise InvalidParameter(f"{name} is not a valid user id: {user_id!r}")

    @staticmethod
    def _check_range(value, name: str, low: int, high: int) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidParameter(f"{name} must be an integer; received {value!r}")
        if not low <= value <= high:
            raise InvalidParameter(f"{name} must be between {low} and {high}; received {value}")

    def _require_users(self, *user_ids: str) -> None:
        existing = self._store.existing_user_ids(user_ids)
        for user_id in user_ids:
            if user_id not in existing:
                raise RootNotFound(user_id)

    def _run(
        self,
        op_name: str,
        fn: Callable[[FrontierExpander], T],
        cancel: Optional[CancelToken],
        **fields,
    ) -> T:
        token = set_call_id(new_call_id())
        cancel = cancel or self._new_token()
        expander = FrontierExpander(
            self._store,
            batch_size=self.settings.batch_size,
            executor=self._executor,
            cancel=cancel,
        )
        details = " ".join(f"{key}={value}" for key, value in fields.items())
        started = time.perf_counter()
        logger.info("%s start %s", op_name, details)
        try:
            cancel.raise_if_cancelled()
            result = fn(expander)
        except SQLAlchemyError as exc:
            logger.error("%s failed: store error: %s", op_name, exc)
            raise StoreUnavailable(f"{op_name} failed: connection store unavailable") from exc
        except Exception as exc:
            logger.warning("%s aborted: %s: %s", op_name, type(exc).__name__, exc)
            raise
        else:
            logger.info(
                "%s done in %.1fms (%d batch queries)",
                op_name,
                (time.perf_counter() - started) * 1000,
                expander.queries_issued,
            )
            return result
        finally:
            reset_call_id(token)
