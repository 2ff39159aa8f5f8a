"""JSON-ready payloads that join traversal output with user summaries.

The engine only returns ids; the features that display them fetch names,
photos and connection counts here, keyed off the id sets the engine returned.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from handshake_graph.graph.engine import TraversalEngine
from handshake_graph.graph.models import PathNotFound

logger = logging.getLogger(__name__)


def _serialize_datetime(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def handshake_path_view(
    engine: TraversalEngine,
    store,
    source: str,
    target: str,
    max_depth: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Hops of the handshake chain with display data; empty when there is no chain."""
    outcome = engine.shortest_path(source, target, max_depth)
    if isinstance(outcome, PathNotFound):
        return []

    hops = list(outcome.hops)
    summaries = {row["id"]: row for row in store.user_summaries(hops)}
    counts = store.connection_counts(hops)

    missing = [user_id for user_id in hops if user_id not in summaries]
    if missing:
        # Deleted between the traversal and the lookup; the chain is broken.
        logger.warning("Path %s -> %s lost hop(s) %s; reporting no path", source, target, ", ".join(missing))
        return []

    view = []
    for user_id in hops:
        summary = summaries[user_id]
        view.append(
            {
                "id": user_id,
                "name": summary.get("name"),
                "photo_url": summary.get("photo_url"),
                "connection_count": counts.get(user_id, 0),
            }
        )
    return view


def graph_slice_view(
    engine: TraversalEngine,
    store,
    root: str,
    depth: Optional[int] = None,
) -> Dict[str, Any]:
    """Visualization payload: nodes with display data and depth, plus all edges among them."""
    graph_slice = engine.slice(root) if depth is None else engine.slice(root, depth)
    node_ids = list(graph_slice.node_ids)
    summaries = {row["id"]: row for row in store.user_summaries(node_ids)}
    counts = store.connection_counts(node_ids)

    nodes = []
    for node in graph_slice.nodes:
        summary = summaries.get(node.id, {})
        nodes.append(
            {
                "id": node.id,
                "name": summary.get("name"),
                "photo_url": summary.get("photo_url"),
                "last_seen": _serialize_datetime(summary.get("last_seen")),
                "depth": node.depth,
                "connection_count": counts.get(node.id, 0),
            }
        )

    edges = [{"from": edge.from_id, "to": edge.to_id} for edge in graph_slice.edges]
    return {
        "nodes": nodes,
        "edges": edges,
        "meta": {
            "root": root,
            "depth": graph_slice.depth,
            "node_count": len(nodes),
            "edge_count": len(edges),
            "truncated": graph_slice.truncated,
        },
    }


def notification_recipients(
    engine: TraversalEngine,
    creator_id: str,
    max_recipients: Optional[int] = None,
    exclude: Iterable[str] = (),
) -> List[Dict[str, Any]]:
    """Who to notify about a creator's request, nearest first.

    ``exclude`` carries ignored users and users already notified; they are
    removed from the graph, so nobody is reached through them either.
    """
    limit = engine.settings.max_bfs_recipients
    if max_recipients is not None:
        limit = min(max_recipients, limit)
    result = engine.reachability(creator_id, max_total=limit, exclude=exclude)
    return [
        {
            "user_id": user.user_id,
            "depth": user.depth,
            "handshake_path": list(user.path),
        }
        for user in result.users
    ]
