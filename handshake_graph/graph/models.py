"""Data models shared by the traversal engine and its store adapter."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, Optional, Tuple, Union


@dataclass(frozen=True)
class Connection:
    """Undirected connection, stored once with ``user_a_id < user_b_id``."""

    user_a_id: str
    user_b_id: str
    created_at: Optional[datetime] = None

    def other(self, user_id: str) -> str:
        return self.user_b_id if user_id == self.user_a_id else self.user_a_id

    def touches(self, user_id: str) -> bool:
        return user_id == self.user_a_id or user_id == self.user_b_id


@dataclass(frozen=True)
class Link:
    """How a node was first discovered: its lowest-id parent and the edge timestamp."""

    parent: str
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class ReachedUser:
    """A user discovered by a reachability scan at its shortest distance."""

    user_id: str
    depth: int
    path: Tuple[str, ...] = ()  # root ... user_id
    latest_link_at: Optional[datetime] = None


@dataclass(frozen=True)
class ReachabilityResult:
    """Ordered scan output. ``truncated`` is set when ``max_total`` cut the scan."""

    root: str
    users: Tuple[ReachedUser, ...] = ()
    truncated: bool = False

    @property
    def user_ids(self) -> Tuple[str, ...]:
        return tuple(u.user_id for u in self.users)

    def pairs(self) -> Tuple[Tuple[str, int], ...]:
        return tuple((u.user_id, u.depth) for u in self.users)


@dataclass(frozen=True)
class HandshakePath:
    """Shortest connection chain ``source ... target``."""

    hops: Tuple[str, ...]

    @property
    def length(self) -> int:
        """Number of handshakes (edges) in the chain."""
        return len(self.hops) - 1


@dataclass(frozen=True)
class PathNotFound:
    """No chain exists within ``max_depth`` handshakes."""

    source: str
    target: str
    max_depth: int


PathOutcome = Union[HandshakePath, PathNotFound]


@dataclass(frozen=True)
class SliceNode:
    id: str
    depth: int


@dataclass(frozen=True)
class SliceEdge:
    from_id: str
    to_id: str


@dataclass(frozen=True)
class GraphSlice:
    """Induced subgraph around ``root`` for visualization."""

    root: str
    depth: int
    nodes: Tuple[SliceNode, ...] = ()
    edges: Tuple[SliceEdge, ...] = ()
    truncated: bool = False

    @property
    def node_ids(self) -> Tuple[str, ...]:
        return tuple(n.id for n in self.nodes)


@dataclass(frozen=True)
class DepthStats:
    """People reachable at each handshake distance."""

    root: str
    counts: Dict[int, int] = field(default_factory=dict)
    truncated: bool = False

    @property
    def total(self) -> int:
        return sum(self.counts.values())


@dataclass(frozen=True)
class GrowthPoint:
    day: date
    cumulative_count: int
