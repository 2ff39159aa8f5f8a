"""Induced-subgraph extraction around a user for visualization."""
from __future__ import annotations

from typing import List

from handshake_graph.graph.frontier import FrontierExpander
from handshake_graph.graph.models import GraphSlice, SliceEdge, SliceNode
from handshake_graph.graph.reachability import scan_reachability


def extract_slice(
    expander: FrontierExpander,
    store,
    root: str,
    *,
    depth: int,
    max_nodes: int,
    batch_size: int = 1000,
) -> GraphSlice:
    """Nodes within ``depth`` handshakes of ``root`` and every edge among them.

    The edge list comes from a second store query over the node set rather
    than from the BFS tree, so links between two of the user's connections
    are included. Nodes are ordered by (depth, id) and edges by (from, to)
    with ``from < to``.
    """
    # The root occupies one of the max_nodes slots.
    scan = scan_reachability(expander, root, max_depth=depth, max_total=max(max_nodes - 1, 0))

    nodes: List[SliceNode] = [SliceNode(id=root, depth=0)]
    nodes.extend(SliceNode(id=u.user_id, depth=u.depth) for u in scan.users)
    nodes.sort(key=lambda n: (n.depth, n.id))

    node_ids = {n.id for n in nodes}
    edges = {
        SliceEdge(from_id=min(conn.user_a_id, conn.user_b_id), to_id=max(conn.user_a_id, conn.user_b_id))
        for conn in store.edges_among(node_ids, batch_size=batch_size)
    }

    return GraphSlice(
        root=root,
        depth=depth,
        nodes=tuple(nodes),
        edges=tuple(sorted(edges, key=lambda e: (e.from_id, e.to_id))),
        truncated=scan.truncated,
    )
