import pytest

from lifemap.src.models.graph import GraphState
from lifemap.src.services.graph_store import GraphStore, IdClock
from lifemap.src.services.tag_registry import TagRegistry


@pytest.fixture
def store() -> GraphStore:
    return GraphStore(GraphState(available_tags=("#idea", "#todo")), clock=IdClock(start=1))


@pytest.fixture
def registry(store: GraphStore) -> TagRegistry:
    return TagRegistry(store)


def test_add_tag_trims_and_appends(registry: TagRegistry) -> None:
    assert registry.add_tag("  #goal ") is True
    assert registry.tags == ("#idea", "#todo", "#goal")


@pytest.mark.parametrize("name", ["", "   ", "#idea", " #idea "])
def test_add_tag_rejects_blank_and_duplicates(registry: TagRegistry, name: str) -> None:
    assert registry.add_tag(name) is False
    assert registry.tags == ("#idea", "#todo")


def test_tag_match_is_case_sensitive(registry: TagRegistry) -> None:
    assert registry.add_tag("#Idea") is True


def test_delete_tag_cascades_to_nodes_and_filter(store: GraphStore, registry: TagRegistry) -> None:
    a = store.add_node()
    b = store.add_node()
    store.toggle_node_tag(a, "#idea")
    store.toggle_node_tag(b, "#idea")
    store.toggle_node_tag(b, "#todo")
    registry.toggle_filter("#idea")
    registry.toggle_filter("#todo")

    assert registry.delete_tag("#idea") is True

    assert registry.tags == ("#todo",)
    assert registry.usage_count("#idea") == 0
    assert store.state.node(a).tags == frozenset()
    assert store.state.node(b).tags == frozenset({"#todo"})
    assert registry.active_filter == frozenset({"#todo"})


def test_delete_tag_is_a_single_store_change(store: GraphStore, registry: TagRegistry) -> None:
    node_id = store.add_node()
    store.toggle_node_tag(node_id, "#idea")
    registry.toggle_filter("#idea")
    observed = []
    store.add_listener(
        lambda state: observed.append(
            (state.available_tags, state.node(node_id).tags, registry.active_filter)
        )
    )

    registry.delete_tag("#idea")

    assert observed == [(("#todo",), frozenset(), frozenset())]


def test_delete_unknown_tag_is_a_noop(store: GraphStore, registry: TagRegistry) -> None:
    revision = store.revision

    assert registry.delete_tag("#missing") is False
    assert store.revision == revision


def test_usage_count_tracks_nodes(store: GraphStore, registry: TagRegistry) -> None:
    for _ in range(3):
        store.toggle_node_tag(store.add_node(), "#todo")

    assert registry.usage_count("#todo") == 3
    assert registry.usage_count("#idea") == 0


def test_filter_only_accepts_registered_tags(registry: TagRegistry) -> None:
    assert registry.toggle_filter("#nope") is False
    assert registry.toggle_filter("#idea") is True
    assert registry.toggle_filter("#idea") is False
    assert registry.active_filter == frozenset()
