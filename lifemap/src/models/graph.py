"""Graph data models for the life map canvas."""

from __future__ import annotations

import logging
from typing import Annotated, Any, Dict, FrozenSet, Iterable, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

NodeKind = Literal["default", "checklist"]

DEFAULT_LABEL = "New Node"
DEFAULT_CHECKLIST_TITLE = "My To-do List"
DEFAULT_CHECKLIST_ITEM = "First item"

NODE_PALETTE: Tuple[str, ...] = (
    "#374151",
    "#b91c1c",
    "#0f766e",
    "#1d4ed8",
    "#581c87",
    "#b45309",
)

DEFAULT_COLORS: Dict[str, str] = {"default": "#374151", "checklist": "#3730a3"}
DEFAULT_SIZES: Dict[str, Tuple[float, float]] = {
    "default": (150, 50),
    "checklist": (250, 120),
}
MIN_SIZES: Dict[str, Tuple[float, float]] = {
    "default": (150, 50),
    "checklist": (150, 120),
}


class Position(BaseModel):
    """Canvas coordinates of a node."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0


class Viewport(BaseModel):
    """Pan/zoom transform of the canvas."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    zoom: float = Field(default=1.0, gt=0)


class ChecklistItem(BaseModel):
    """Single entry inside a checklist node."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    text: str = ""
    completed: bool = False


class DefaultContent(BaseModel):
    """Content of a plain text node."""

    model_config = ConfigDict(frozen=True)

    type: Literal["default"] = "default"
    label: str = ""


class ChecklistContent(BaseModel):
    """Content of a checklist node."""

    model_config = ConfigDict(frozen=True)

    type: Literal["checklist"] = "checklist"
    title: str = ""
    items: Tuple[ChecklistItem, ...] = ()


NodeContent = Annotated[Union[DefaultContent, ChecklistContent], Field(discriminator="type")]


class Node(BaseModel):
    """A node on the canvas. The content variant decides its kind."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    position: Position = Field(default_factory=Position)
    content: NodeContent = Field(default_factory=DefaultContent)
    color: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None
    tags: FrozenSet[str] = frozenset()
    selected: bool = False

    @property
    def type(self) -> str:
        return self.content.type

    @property
    def text(self) -> str:
        """Label for default nodes, title for checklist nodes."""
        if isinstance(self.content, ChecklistContent):
            return self.content.title
        return self.content.label

    @property
    def effective_color(self) -> str:
        return self.color or DEFAULT_COLORS[self.type]

    @property
    def effective_size(self) -> Tuple[float, float]:
        default_width, default_height = DEFAULT_SIZES[self.type]
        return (self.width or default_width, self.height or default_height)


class Edge(BaseModel):
    """Directed connection between two nodes."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    label: Optional[str] = None
    selected: bool = False


class GraphState(BaseModel):
    """Immutable snapshot of everything the graph store owns."""

    model_config = ConfigDict(frozen=True)

    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    available_tags: Tuple[str, ...] = ()

    def node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def edge(self, edge_id: str) -> Optional[Edge]:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        return None

    @property
    def node_ids(self) -> FrozenSet[str]:
        return frozenset(node.id for node in self.nodes)


class GraphDocument(BaseModel):
    """Persisted unit: the graph plus viewport and tag registry."""

    model_config = ConfigDict(populate_by_name=True)

    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    viewport: Optional[Viewport] = None
    available_tags: List[str] = Field(default_factory=list, alias="availableTags")

    @field_validator("available_tags")
    @classmethod
    def _dedupe_tags(cls, value: List[str]) -> List[str]:
        seen: List[str] = []
        for tag in value:
            if tag not in seen:
                seen.append(tag)
        return seen

    def to_state(self) -> GraphState:
        return GraphState(
            nodes=tuple(self.nodes),
            edges=tuple(self.edges),
            available_tags=tuple(self.available_tags),
        )


class VisibleGraph(BaseModel):
    """Derived view handed to the presentation layer."""

    model_config = ConfigDict(frozen=True)

    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    hidden_node_ids: FrozenSet[str] = frozenset()
    hidden_edge_ids: FrozenSet[str] = frozenset()


# ---------------------------------------------------------------------------
# Wire format
# ---------------------------------------------------------------------------


def node_to_wire(node: Node) -> Dict[str, Any]:
    """Serialize a node into the react-flow document shape."""
    data: Dict[str, Any] = {
        "type": node.type,
        "color": node.color,
        "width": node.width,
        "height": node.height,
        "tags": sorted(node.tags),
    }
    if isinstance(node.content, ChecklistContent):
        data["title"] = node.content.title
        data["items"] = [item.model_dump() for item in node.content.items]
    else:
        data["label"] = node.content.label
    return {
        "id": node.id,
        "type": "custom",
        "position": node.position.model_dump(),
        "selected": node.selected,
        "data": data,
    }


def edge_to_wire(edge: Edge) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": edge.id,
        "source": edge.source,
        "target": edge.target,
        "selected": edge.selected,
    }
    if edge.label is not None:
        payload["label"] = edge.label
    return payload


def document_to_wire(
    state: GraphState, viewport: Optional[Viewport] = None
) -> Dict[str, Any]:
    """Build the partial document written by the sync engine."""
    payload: Dict[str, Any] = {
        "nodes": [node_to_wire(node) for node in state.nodes],
        "edges": [edge_to_wire(edge) for edge in state.edges],
        "availableTags": list(state.available_tags),
    }
    if viewport is not None:
        payload["viewport"] = viewport.model_dump()
    return payload


def _dimension(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if value > 0 else None


def _coordinate(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return float(value)


def _string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _items_from_wire(raw_items: Any) -> Tuple[ChecklistItem, ...]:
    items: List[ChecklistItem] = []
    seen: set[str] = set()
    for raw in raw_items if isinstance(raw_items, list) else []:
        if not isinstance(raw, dict) or raw.get("id") in (None, ""):
            continue
        item_id = str(raw["id"])
        if item_id in seen:
            continue
        seen.add(item_id)
        items.append(
            ChecklistItem(
                id=item_id,
                text=str(raw.get("text") or ""),
                completed=bool(raw.get("completed", False)),
            )
        )
    return tuple(items)


def node_from_wire(raw: Dict[str, Any]) -> Node:
    """Parse a stored node, applying field-level defaults.

    Fields are read from ``data`` first and then from the top level, so both
    the react-flow shape and a flat record are accepted.
    """
    if raw.get("id") in (None, ""):
        raise ValueError("node is missing an id")
    data = raw.get("data") if isinstance(raw.get("data"), dict) else {}

    def field(key: str) -> Any:
        return data[key] if key in data else raw.get(key)

    kind = field("type")
    if kind == "checklist":
        content: Union[DefaultContent, ChecklistContent] = ChecklistContent(
            title=str(field("title") or ""),
            items=_items_from_wire(field("items")),
        )
    else:
        content = DefaultContent(label=str(field("label") or ""))

    position = raw.get("position") if isinstance(raw.get("position"), dict) else {}
    raw_tags = field("tags")
    tags = frozenset(t for t in raw_tags if isinstance(t, str)) if isinstance(raw_tags, list) else frozenset()

    return Node(
        id=str(raw["id"]),
        position=Position(x=_coordinate(position.get("x")), y=_coordinate(position.get("y"))),
        content=content,
        color=_string(field("color")),
        width=_dimension(field("width")),
        height=_dimension(field("height")),
        tags=tags,
        selected=bool(raw.get("selected", False)),
    )


def edge_from_wire(raw: Dict[str, Any]) -> Edge:
    for key in ("id", "source", "target"):
        if raw.get(key) in (None, ""):
            raise ValueError(f"edge is missing '{key}'")
    label = raw.get("label")
    return Edge(
        id=str(raw["id"]),
        source=str(raw["source"]),
        target=str(raw["target"]),
        label=label if isinstance(label, str) else None,
        selected=bool(raw.get("selected", False)),
    )


def _parse_entries(raw_entries: Any, parser, kind: str) -> Iterable[Any]:
    if not isinstance(raw_entries, list):
        return
    seen: set[str] = set()
    for raw in raw_entries:
        if not isinstance(raw, dict):
            logger.warning("Skipping malformed %s entry: %r", kind, raw)
            continue
        try:
            entry = parser(raw)
        except (ValueError, ValidationError) as exc:
            logger.warning("Skipping malformed %s entry: %s", kind, exc)
            continue
        if entry.id in seen:
            logger.warning("Skipping duplicate %s id %s", kind, entry.id)
            continue
        seen.add(entry.id)
        yield entry


def document_from_wire(
    raw: Optional[Dict[str, Any]], default_tags: Iterable[str] = ()
) -> GraphDocument:
    """Parse a stored snapshot without ever rejecting it as a whole."""
    raw = raw or {}
    viewport: Optional[Viewport] = None
    raw_viewport = raw.get("viewport")
    if isinstance(raw_viewport, dict):
        try:
            viewport = Viewport.model_validate(raw_viewport)
        except ValidationError as exc:
            logger.warning("Ignoring malformed viewport: %s", exc)

    raw_tags = raw.get("availableTags")
    if isinstance(raw_tags, list):
        tags = [tag for tag in raw_tags if isinstance(tag, str) and tag.strip()]
    else:
        tags = list(default_tags)

    return GraphDocument(
        nodes=list(_parse_entries(raw.get("nodes"), node_from_wire, "node")),
        edges=list(_parse_entries(raw.get("edges"), edge_from_wire, "edge")),
        viewport=viewport,
        available_tags=tags,
    )


__all__ = [
    "NodeKind",
    "NODE_PALETTE",
    "DEFAULT_COLORS",
    "DEFAULT_SIZES",
    "MIN_SIZES",
    "DEFAULT_LABEL",
    "DEFAULT_CHECKLIST_TITLE",
    "DEFAULT_CHECKLIST_ITEM",
    "Position",
    "Viewport",
    "ChecklistItem",
    "DefaultContent",
    "ChecklistContent",
    "Node",
    "Edge",
    "GraphState",
    "GraphDocument",
    "VisibleGraph",
    "node_to_wire",
    "edge_to_wire",
    "document_to_wire",
    "node_from_wire",
    "edge_from_wire",
    "document_from_wire",
]
