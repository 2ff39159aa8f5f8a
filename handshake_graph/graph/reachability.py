"""Bounded, level-synchronous BFS from a single root."""
from __future__ import annotations

import itertools
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from handshake_graph.graph.frontier import FrontierExpander
from handshake_graph.graph.models import ReachabilityResult, ReachedUser

logger = logging.getLogger(__name__)


def _later(a: Optional[datetime], b: Optional[datetime]) -> Optional[datetime]:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)


def scan_reachability(
    expander: FrontierExpander,
    root: str,
    *,
    max_depth: Optional[int],
    max_total: int,
    exclude: Iterable[str] = (),
) -> ReachabilityResult:
    """Collect users reachable from ``root`` within ``max_depth`` handshakes.

    Each user is reported once, at the level where it was first discovered.
    Within a level users are accepted in ascending id order; when ``max_total``
    is reached mid-level the rest of the scan is dropped and the result is
    flagged ``truncated``. Excluded ids are treated as deleted vertices, so
    users reachable only through them are not reported either.

    ``max_depth=None`` walks the whole connected component.
    """
    visited: Set[str] = {root, *exclude}
    frontier: Set[str] = {root}
    paths: Dict[str, Tuple[str, ...]] = {root: (root,)}
    latest: Dict[str, Optional[datetime]] = {root: None}
    users: List[ReachedUser] = []
    truncated = False

    levels = itertools.count(1) if max_depth is None else range(1, max_depth + 1)
    for depth in levels:
        discovered = expander.expand_with_parents(frontier, visited)
        accepted: Set[str] = set()
        for child, link in discovered.items():
            if len(users) >= max_total:
                truncated = True
                break
            path = paths[link.parent] + (child,)
            link_at = _later(latest[link.parent], link.created_at)
            paths[child] = path
            latest[child] = link_at
            visited.add(child)
            accepted.add(child)
            users.append(ReachedUser(user_id=child, depth=depth, path=path, latest_link_at=link_at))

        logger.debug(
            "Level %d: discovered=%d accepted=%d total=%d", depth, len(discovered), len(accepted), len(users)
        )
        if truncated:
            break
        frontier = accepted
        if not frontier:
            break

    return ReachabilityResult(root=root, users=tuple(users), truncated=truncated)
