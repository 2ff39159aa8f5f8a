"""Unit tests for bidirectional shortest handshake paths."""
from __future__ import annotations

import networkx as nx
import pytest

from handshake_graph.graph.frontier import FrontierExpander
from handshake_graph.graph.models import HandshakePath, PathNotFound
from handshake_graph.graph.shortest_path import find_shortest_path
from tests.helpers.memory_store import MemoryConnectionStore

DIAMOND = [("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")]


def _path(edges, source, target, *, max_depth=20, batch_size=1000):
    expander = FrontierExpander(MemoryConnectionStore(edges), batch_size=batch_size)
    return find_shortest_path(expander, source, target, max_depth=max_depth)


@pytest.mark.unit
def test_diamond_prefers_lowest_id_middle():
    outcome = _path(DIAMOND, "A", "D")

    assert outcome == HandshakePath(hops=("A", "B", "D"))
    assert outcome.length == 2


@pytest.mark.unit
def test_diamond_reversed_direction():
    outcome = _path(DIAMOND, "D", "A")

    assert outcome == HandshakePath(hops=("D", "B", "A"))


@pytest.mark.unit
def test_direct_connection_is_one_handshake():
    outcome = _path([("amy", "bob")], "amy", "bob")

    assert outcome.hops == ("amy", "bob")
    assert outcome.length == 1


@pytest.mark.unit
def test_same_user_is_zero_handshakes_without_queries():
    store = MemoryConnectionStore([("amy", "bob")])

    outcome = find_shortest_path(FrontierExpander(store), "amy", "amy", max_depth=5)

    assert outcome == HandshakePath(hops=("amy",))
    assert outcome.length == 0
    assert store.neighbor_calls == []


@pytest.mark.unit
def test_disconnected_users_report_not_found():
    outcome = _path([("a", "b"), ("x", "y")], "a", "y")

    assert outcome == PathNotFound(source="a", target="y", max_depth=20)


@pytest.mark.unit
def test_disconnected_search_stops_early():
    store = MemoryConnectionStore([("a", "b"), ("x", "y")])

    find_shortest_path(FrontierExpander(store), "a", "y", max_depth=20)

    assert len(store.neighbor_calls) <= 3


@pytest.mark.unit
def test_max_depth_bounds_total_handshakes():
    chain = [("a", "b"), ("b", "c"), ("c", "d")]

    assert isinstance(_path(chain, "a", "d", max_depth=2), PathNotFound)
    assert _path(chain, "a", "d", max_depth=3).hops == ("a", "b", "c", "d")


@pytest.mark.unit
def test_smaller_frontier_is_expanded_first():
    # "hub" has many connections; the search should grow the target side instead.
    edges = [("hub", f"s{i:02d}") for i in range(20)] + [("s05", "m"), ("m", "t")]
    store = MemoryConnectionStore(edges)

    outcome = find_shortest_path(FrontierExpander(store), "hub", "t", max_depth=10)

    assert outcome.hops == ("hub", "s05", "m", "t")
    assert ["hub"] in store.neighbor_calls
    assert all(len(call) <= 2 for call in store.neighbor_calls)


@pytest.mark.unit
def test_path_is_stable_across_batch_sizes():
    graph = nx.connected_watts_strogatz_graph(50, 4, 0.3, seed=11)
    edges = [(f"v{a:02d}", f"v{b:02d}") for a, b in graph.edges()]

    outcomes = {_path(edges, "v00", "v25", batch_size=size) for size in (1, 3, 1000)}

    assert len(outcomes) == 1


@pytest.mark.unit
def test_length_matches_networkx():
    graph = nx.connected_watts_strogatz_graph(80, 4, 0.2, seed=5)
    relabeled = nx.relabel_nodes(graph, {n: f"v{n:02d}" for n in graph.nodes()})
    edges = list(relabeled.edges())

    for target in ("v10", "v40", "v79"):
        outcome = _path(edges, "v00", target, batch_size=4)
        assert outcome.length == nx.shortest_path_length(relabeled, "v00", target)
        assert outcome.hops[0] == "v00" and outcome.hops[-1] == target
        for a, b in zip(outcome.hops, outcome.hops[1:]):
            assert relabeled.has_edge(a, b)
