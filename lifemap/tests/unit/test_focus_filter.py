import random

import pytest

from lifemap.src.models.graph import Edge, Node
from lifemap.src.services.filter import compute_visibility
from lifemap.src.services.focus import FocusState, neighborhood


def _node(node_id: str, *tags: str) -> Node:
    return Node(id=node_id, tags=frozenset(tags))


def _edge(edge_id: str, source: str, target: str) -> Edge:
    return Edge(id=edge_id, source=source, target=target)


@pytest.fixture
def chain():
    """A -> B -> C plus an isolated D."""
    nodes = [_node("A", "#idea"), _node("B"), _node("C", "#todo"), _node("D", "#idea")]
    edges = [_edge("e1", "A", "B"), _edge("e2", "B", "C")]
    return nodes, edges


def test_neighborhood_is_one_hop_and_undirected(chain) -> None:
    _, edges = chain

    assert neighborhood("B", edges) == {"A", "B", "C"}
    assert neighborhood("A", edges) == {"A", "B"}
    assert neighborhood("D", edges) == {"D"}


def test_neighborhood_is_symmetric() -> None:
    rng = random.Random(7)
    ids = [str(i) for i in range(8)]
    edges = [_edge(f"e{i}", rng.choice(ids), rng.choice(ids)) for i in range(15)]

    for n in ids:
        assert n in neighborhood(n, edges)
        for m in neighborhood(n, edges):
            assert n in neighborhood(m, edges)


def test_focus_toggle_clears_on_second_toggle() -> None:
    focus = FocusState()

    assert focus.toggle("A") == "A"
    assert focus.toggle("B") == "B"
    assert focus.toggle("B") is None
    assert not focus.active


def test_everything_visible_without_filters(chain) -> None:
    nodes, edges = chain

    view = compute_visibility(nodes, edges)

    assert view.hidden_node_ids == frozenset()
    assert view.hidden_edge_ids == frozenset()
    assert [node.id for node in view.nodes] == ["A", "B", "C", "D"]


def test_focus_hides_nodes_outside_neighborhood(chain) -> None:
    nodes, edges = chain

    view = compute_visibility(nodes, edges, focused_node_id="A")

    assert view.hidden_node_ids == {"C", "D"}
    assert view.hidden_edge_ids == {"e2"}


def test_tag_filter_is_any_match(chain) -> None:
    nodes, edges = chain

    view = compute_visibility(nodes, edges, tag_filter={"#idea", "#todo"})

    assert view.hidden_node_ids == {"B"}
    assert view.hidden_edge_ids == {"e1", "e2"}


def test_focus_and_tag_filter_scenario() -> None:
    nodes = [_node("A", "#idea"), _node("B")]
    edges = [_edge("E", "A", "B")]

    focused = compute_visibility(nodes, edges, focused_node_id="A")
    assert focused.hidden_node_ids == frozenset()
    assert [edge.id for edge in focused.edges] == ["E"]

    filtered = compute_visibility(nodes, edges, focused_node_id="A", tag_filter={"#idea"})
    assert [node.id for node in filtered.nodes] == ["A"]
    assert filtered.hidden_node_ids == {"B"}
    assert filtered.hidden_edge_ids == {"E"}


def test_dangling_edges_are_hidden() -> None:
    nodes = [_node("A")]
    edges = [_edge("e1", "A", "ghost")]

    view = compute_visibility(nodes, edges)

    assert view.edges == ()
    assert view.hidden_edge_ids == {"e1"}


def test_visibility_is_idempotent_and_order_independent(chain) -> None:
    nodes, edges = chain
    first = compute_visibility(nodes, edges, "B", frozenset({"#todo", "#idea"}))
    again = compute_visibility(nodes, edges, "B", frozenset({"#idea", "#todo"}))
    reversed_input = compute_visibility(
        list(reversed(nodes)), list(reversed(edges)), "B", {"#todo", "#idea"}
    )

    assert first == again
    assert first.hidden_node_ids == reversed_input.hidden_node_ids
    assert first.hidden_edge_ids == reversed_input.hidden_edge_ids
