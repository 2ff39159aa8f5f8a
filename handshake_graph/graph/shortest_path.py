"""Bidirectional BFS for handshake chains between two users."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from handshake_graph.graph.frontier import FrontierExpander
from handshake_graph.graph.models import HandshakePath, PathNotFound, PathOutcome

logger = logging.getLogger(__name__)


def _chain(parents: Dict[str, Optional[str]], node: str) -> List[str]:
    """Walk parent pointers from ``node`` back to the side's root."""
    chain = [node]
    parent = parents[node]
    while parent is not None:
        chain.append(parent)
        parent = parents[parent]
    return chain


def find_shortest_path(
    expander: FrontierExpander,
    source: str,
    target: str,
    *,
    max_depth: int,
) -> PathOutcome:
    """Return the shortest chain ``source ... target`` or ``PathNotFound``.

    Both sides advance one whole level at a time; the smaller frontier goes
    first (source on ties). Because the visited sets are disjoint before each
    round, every node where they first meet lies on a shortest path, and the
    lowest-id one is chosen. Parents are the lowest-id discoverer, so the
    returned chain is stable across calls.
    """
    if source == target:
        return HandshakePath(hops=(source,))

    parents_s: Dict[str, Optional[str]] = {source: None}
    parents_t: Dict[str, Optional[str]] = {target: None}
    frontier_s: Set[str] = {source}
    frontier_t: Set[str] = {target}
    depth_s = depth_t = 0

    while depth_s + depth_t < max_depth:
        if len(frontier_s) <= len(frontier_t):
            discovered = expander.expand_with_parents(frontier_s, parents_s.keys())
            for child, link in discovered.items():
                parents_s[child] = link.parent
            frontier_s = set(discovered)
            depth_s += 1
            meeting = sorted(frontier_s & parents_t.keys())
        else:
            discovered = expander.expand_with_parents(frontier_t, parents_t.keys())
            for child, link in discovered.items():
                parents_t[child] = link.parent
            frontier_t = set(discovered)
            depth_t += 1
            meeting = sorted(frontier_t & parents_s.keys())

        if meeting:
            middle = meeting[0]
            hops = list(reversed(_chain(parents_s, middle))) + _chain(parents_t, middle)[1:]
            logger.debug(
                "Path %s -> %s met at %s (source depth %d, target depth %d)",
                source, target, middle, depth_s, depth_t,
            )
            return HandshakePath(hops=tuple(hops))

        if not frontier_s or not frontier_t:
            # One side's component is exhausted, the two users are disconnected.
            break

    return PathNotFound(source=source, target=target, max_depth=max_depth)
