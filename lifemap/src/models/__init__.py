"""Pydantic models for data validation and serialization."""

from .graph import (
    ChecklistContent,
    ChecklistItem,
    DefaultContent,
    Edge,
    GraphDocument,
    GraphState,
    Node,
    Position,
    Viewport,
    VisibleGraph,
)
from .plan import DocumentPatch, GraphView, PlanCreate, PlanDocument, PlanSummary

__all__ = [
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
    "PlanSummary",
    "PlanCreate",
    "PlanDocument",
    "DocumentPatch",
    "GraphView",
]
