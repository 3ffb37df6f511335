"""Pydantic models for plans and their stored documents."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlanSummary(BaseModel):
    """Plan entry shown on the dashboard."""

    plan_id: str
    title: str
    created_at: datetime
    updated_at: datetime
    revision: int = Field(1, ge=1, description="Bumped on every document write")


class PlanCreate(BaseModel):
    """Request payload to create a plan."""

    title: str = Field(..., min_length=1, max_length=256)

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("Plan title must not be blank")
        return cleaned


class PlanDocument(BaseModel):
    """Stored graph document together with its revision."""

    plan_id: str
    revision: int = Field(..., ge=1)
    document: Dict[str, Any] = Field(default_factory=dict)


class DocumentPatch(BaseModel):
    """Merge-write payload: only the keys that are present get replaced."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "nodes": [
                    {
                        "id": "1718000000000",
                        "type": "custom",
                        "position": {"x": 0, "y": 0},
                        "data": {"type": "default", "label": "New Node", "tags": ["#idea"]},
                    }
                ],
                "edges": [],
                "viewport": {"x": 0, "y": 0, "zoom": 1},
            }
        },
    )

    title: Optional[str] = Field(None, min_length=1, max_length=256)
    nodes: Optional[List[Dict[str, Any]]] = None
    edges: Optional[List[Dict[str, Any]]] = None
    viewport: Optional[Dict[str, float]] = None
    available_tags: Optional[List[str]] = Field(None, alias="availableTags")

    def to_partial(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, by_alias=True)


class GraphView(BaseModel):
    """Visible part of a plan after focus and tag filtering."""

    plan_id: str
    focused_node_id: Optional[str] = None
    tag_filter: List[str] = Field(default_factory=list)
    nodes: List[Dict[str, Any]]
    edges: List[Dict[str, Any]]
    hidden_node_ids: List[str]
    hidden_edge_ids: List[str]
