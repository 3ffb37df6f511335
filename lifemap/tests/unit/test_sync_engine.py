"""Sync engine behaviour against an in-memory document repository."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from lifemap.src.models.graph import Viewport
from lifemap.src.services.config import AppConfig
from lifemap.src.services.graph_store import GraphStore
from lifemap.src.services.repository import InMemoryDocumentRepository, RepositoryError
from lifemap.src.services.sync_engine import SyncEngine, SyncState

PLAN = "plan-1"
DEBOUNCE = 0.05
SETTLE = 0.2


class RecordingRepository(InMemoryDocumentRepository):
    """Keeps every partial document handed to write()."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.payloads: List[Dict[str, Any]] = []
        self.fail_writes = False

    async def write(self, document_id: str, partial: Dict[str, Any]) -> None:
        self.payloads.append(partial)
        if self.fail_writes:
            raise RepositoryError("backend unavailable")
        await super().write(document_id, partial)


class SilentRepository(InMemoryDocumentRepository):
    """Never delivers a snapshot."""

    def subscribe(self, document_id, on_snapshot):
        return lambda: None


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        db_path=tmp_path / "lifemap.db",
        save_debounce_seconds=DEBOUNCE,
        hydrate_timeout_seconds=0.5,
        default_tags=("#idea", "#todo"),
    )


def _doc(label: str = "A", **extra: Any) -> Dict[str, Any]:
    document = {
        "nodes": [
            {"id": "100", "type": "custom", "position": {"x": 0, "y": 0},
             "data": {"type": "default", "label": label}},
        ],
        "edges": [],
        "availableTags": ["#idea"],
    }
    document.update(extra)
    return document


def _label(store: GraphStore, node_id: str = "100") -> Optional[str]:
    node = store.state.node(node_id)
    return node.text if node is not None else None


async def _start(repository, config: AppConfig) -> tuple[GraphStore, SyncEngine]:
    store = GraphStore()
    engine = SyncEngine(store, repository, PLAN, config=config)
    await engine.start()
    return store, engine


@pytest.mark.asyncio
async def test_hydrates_from_first_snapshot(config: AppConfig) -> None:
    repository = RecordingRepository({PLAN: _doc(viewport={"x": 1, "y": 2, "zoom": 3})})

    store, engine = await _start(repository, config)

    assert engine.state is SyncState.IDLE
    assert _label(store) == "A"
    assert store.state.available_tags == ("#idea",)
    assert engine.viewport == Viewport(x=1, y=2, zoom=3)
    assert repository.payloads == []


@pytest.mark.asyncio
async def test_missing_record_hydrates_empty_graph(config: AppConfig) -> None:
    store, engine = await _start(RecordingRepository(), config)

    assert engine.hydrated
    assert store.state.nodes == ()
    assert store.state.available_tags == ("#idea", "#todo")


@pytest.mark.asyncio
async def test_hydrate_timeout_holds_writes(config: AppConfig) -> None:
    repository = SilentRepository({PLAN: _doc()})
    store, engine = await _start(repository, config)

    assert engine.hydrate_timed_out
    assert engine.state is SyncState.HYDRATING
    assert store.state.nodes == ()

    store.add_node("default", {"label": "offline"}, (0, 0))
    await asyncio.sleep(SETTLE)
    await engine.flush()

    assert repository.write_count == 0
    assert engine.status().hydrate_timed_out


@pytest.mark.asyncio
async def test_slow_first_snapshot_is_not_overwritten(config: AppConfig) -> None:
    repository = RecordingRepository({PLAN: _doc("stored")}, latency=0.3)
    store, engine = await _start(
        repository, config.model_copy(update={"hydrate_timeout_seconds": 0.1})
    )
    assert engine.hydrate_timed_out

    store.add_node("default", {"label": "new"}, (0, 0))
    await asyncio.sleep(0.4)

    assert engine.state is SyncState.IDLE
    assert [node.text for node in store.state.nodes] == ["stored"]
    assert repository.payloads == []

    store.set_node_text("100", "edited")
    await asyncio.sleep(DEBOUNCE + 0.5)

    labels = [n["data"]["label"] for n in repository.payloads[-1]["nodes"]]
    assert labels == ["edited"]


@pytest.mark.asyncio
async def test_added_node_is_written_after_debounce(config: AppConfig) -> None:
    repository = RecordingRepository()
    store, engine = await _start(repository, config)

    node_id = store.add_node("default", {"label": "New Node"}, (0, 0))

    assert engine.state is SyncState.DEBOUNCING
    assert engine.is_saving
    assert repository.payloads == []

    await asyncio.sleep(SETTLE)

    assert len(repository.payloads) == 1
    [written] = repository.payloads[0]["nodes"]
    assert written["id"] == node_id
    assert written["data"]["label"] == "New Node"
    assert repository.payloads[0]["edges"] == []
    assert engine.state is SyncState.IDLE
    assert not engine.is_saving
    assert engine.write_count == 1


@pytest.mark.asyncio
async def test_burst_of_edits_coalesces_into_one_write(config: AppConfig) -> None:
    repository = RecordingRepository({PLAN: _doc()})
    store, engine = await _start(repository, config)

    for i in range(5):
        store.set_node_text("100", f"draft {i}")
        await asyncio.sleep(DEBOUNCE / 5)

    await asyncio.sleep(SETTLE)

    assert len(repository.payloads) == 1
    assert repository.payloads[0]["nodes"][0]["data"]["label"] == "draft 4"


@pytest.mark.asyncio
async def test_snapshot_racing_a_local_edit_is_ignored(config: AppConfig) -> None:
    repository = RecordingRepository({PLAN: _doc("A")})
    store, engine = await _start(repository, config)

    store.set_node_text("100", "X")
    repository.push(PLAN, _doc("Y"))
    await asyncio.sleep(0)

    assert _label(store) == "X"
    assert engine.ignored_snapshots == 1

    await asyncio.sleep(SETTLE)

    # The echo of our own write is adopted and leaves the edit in place.
    assert _label(store) == "X"
    assert engine.state is SyncState.IDLE
    assert repository.payloads[-1]["nodes"][0]["data"]["label"] == "X"


@pytest.mark.asyncio
async def test_snapshot_during_write_is_ignored(config: AppConfig) -> None:
    repository = RecordingRepository({PLAN: _doc("A")})
    store, engine = await _start(repository, config)
    repository.latency = 0.2

    store.set_node_text("100", "X")
    await asyncio.sleep(DEBOUNCE + 0.05)
    assert engine.state is SyncState.WRITING

    repository.push(PLAN, _doc("Y"))
    await asyncio.sleep(0)
    assert _label(store) == "X"

    await asyncio.sleep(0.4)
    assert engine.state is SyncState.IDLE
    assert _label(store) == "X"


@pytest.mark.asyncio
async def test_remote_snapshot_adopted_when_clean(config: AppConfig) -> None:
    repository = RecordingRepository({PLAN: _doc("A")})
    store, engine = await _start(repository, config)

    repository.push(PLAN, _doc("remote", viewport={"x": 9, "y": 9, "zoom": 1}))
    await asyncio.sleep(0)

    assert _label(store) == "remote"
    assert engine.viewport == Viewport(x=9, y=9, zoom=1)
    assert repository.payloads == []


@pytest.mark.asyncio
async def test_edit_during_write_triggers_another_write(config: AppConfig) -> None:
    repository = RecordingRepository({PLAN: _doc("A")})
    store, engine = await _start(repository, config)
    repository.latency = 0.1

    store.set_node_text("100", "first")
    await asyncio.sleep(DEBOUNCE + 0.03)
    assert engine.writing
    store.set_node_text("100", "second")

    await asyncio.sleep(0.5)

    labels = [p["nodes"][0]["data"]["label"] for p in repository.payloads]
    assert labels == ["first", "second"]
    assert _label(store) == "second"
    assert engine.state is SyncState.IDLE


@pytest.mark.asyncio
async def test_failed_write_does_not_deadlock(config: AppConfig) -> None:
    repository = RecordingRepository({PLAN: _doc("A")})
    store, engine = await _start(repository, config)
    repository.fail_writes = True

    store.set_node_text("100", "X")
    await asyncio.sleep(SETTLE)

    assert len(repository.payloads) == 1
    assert engine.last_error == "backend unavailable"
    assert not engine.locally_dirty
    assert not engine.writing
    assert engine.is_saving
    assert _label(store) == "X"

    # No automatic retry; the next edit re-arms a write.
    await asyncio.sleep(SETTLE)
    assert len(repository.payloads) == 1

    repository.fail_writes = False
    store.set_node_text("100", "Z")
    await asyncio.sleep(SETTLE)

    assert len(repository.payloads) == 2
    assert engine.last_error is None
    assert not engine.is_saving
    assert repository.payloads[-1]["nodes"][0]["data"]["label"] == "Z"


@pytest.mark.asyncio
async def test_viewport_rides_along_with_the_debounced_write(config: AppConfig) -> None:
    repository = RecordingRepository({PLAN: _doc("A")})
    store, engine = await _start(repository, config)

    store.set_node_text("100", "X")
    engine.update_viewport(Viewport(x=3, y=4, zoom=1.5))
    await asyncio.sleep(SETTLE)

    assert len(repository.payloads) == 1
    assert repository.payloads[0]["viewport"] == {"x": 3.0, "y": 4.0, "zoom": 1.5}


@pytest.mark.asyncio
async def test_viewport_only_change_is_saved(config: AppConfig) -> None:
    repository = RecordingRepository({PLAN: _doc("A")})
    _, engine = await _start(repository, config)

    engine.update_viewport(Viewport(x=1, y=1, zoom=2))
    await asyncio.sleep(SETTLE)

    assert len(repository.payloads) == 1
    assert repository.payloads[0]["viewport"]["zoom"] == 2.0


@pytest.mark.asyncio
async def test_flush_and_close(config: AppConfig) -> None:
    repository = RecordingRepository({PLAN: _doc("A")})
    store, engine = await _start(repository, config)

    store.set_node_text("100", "closing")
    await engine.close()

    assert len(repository.payloads) == 1
    assert repository.subscriber_count(PLAN) == 0

    store.set_node_text("100", "after close")
    engine.update_viewport(Viewport(x=5, y=5, zoom=2))
    await asyncio.sleep(SETTLE)
    assert len(repository.payloads) == 1
    assert engine.state is SyncState.IDLE
