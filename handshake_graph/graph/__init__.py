"""Connection-graph traversal: reachability, handshake paths, slices and stats."""

from .cancel import CancelToken
from .engine import TraversalEngine
from .frontier import FrontierExpander
from .models import (
    Connection,
    DepthStats,
    GraphSlice,
    GrowthPoint,
    HandshakePath,
    PathNotFound,
    ReachabilityResult,
    ReachedUser,
    SliceEdge,
    SliceNode,
)

__all__ = [
    "CancelToken",
    "Connection",
    "DepthStats",
    "FrontierExpander",
    "GraphSlice",
    "GrowthPoint",
    "HandshakePath",
    "PathNotFound",
    "ReachabilityResult",
    "ReachedUser",
    "SliceEdge",
    "SliceNode",
    "TraversalEngine",
]
