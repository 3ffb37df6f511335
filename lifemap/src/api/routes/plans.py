"""HTTP API routes for plans and their graph documents."""

from __future__ import annotations

import logging
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, Response

from ...models.graph import document_from_wire, edge_to_wire, node_to_wire
from ...models.plan import DocumentPatch, GraphView, PlanCreate, PlanDocument, PlanSummary
from ...services.config import AppConfig, get_config
from ...services.filter import visible_graph
from ...services.plan_service import PlanNotFoundError, PlanService, get_plan_service

logger = logging.getLogger(__name__)

router = APIRouter()

Plans = Annotated[PlanService, Depends(get_plan_service)]
Config = Annotated[AppConfig, Depends(get_config)]


def get_user_id(config: Config) -> str:
    """Return the current user ID. Authentication is handled outside this API."""
    return config.local_user_id


UserId = Annotated[str, Depends(get_user_id)]


@router.get("/api/plans", response_model=List[PlanSummary])
async def list_plans(plans: Plans, user_id: UserId):
    """List plans, newest first."""
    return plans.list_plans(user_id)


@router.post("/api/plans", response_model=PlanSummary, status_code=201)
async def create_plan(create: PlanCreate, plans: Plans, user_id: UserId, config: Config):
    """Create a plan seeded with one node carrying its title."""
    return plans.create_plan(user_id, create.title, config.default_tags)


@router.get("/api/plans/{plan_id}", response_model=PlanSummary)
async def get_plan(plan_id: str, plans: Plans, user_id: UserId):
    return plans.get_plan(user_id, plan_id)


@router.delete("/api/plans/{plan_id}", status_code=204)
async def delete_plan(plan_id: str, plans: Plans, user_id: UserId):
    plans.delete_plan(user_id, plan_id)
    return Response(status_code=204)


@router.get("/api/plans/{plan_id}/document", response_model=PlanDocument)
async def read_document(plan_id: str, plans: Plans, user_id: UserId):
    """Return the stored graph document and its revision."""
    document = plans.read_document(user_id, plan_id)
    if document is None:
        raise PlanNotFoundError(plan_id)
    return document


@router.patch("/api/plans/{plan_id}/document", response_model=PlanDocument)
async def write_document(plan_id: str, patch: DocumentPatch, plans: Plans, user_id: UserId):
    """Merge-write the provided top-level fields of the document."""
    partial = patch.to_partial()
    logger.info(f"Writing fields {sorted(partial)} to plan {plan_id}")
    return plans.merge_document(user_id, plan_id, partial)


@router.get("/api/plans/{plan_id}/view", response_model=GraphView)
async def read_view(
    plan_id: str,
    plans: Plans,
    user_id: UserId,
    config: Config,
    focus: Optional[str] = Query(None, description="Node whose neighbourhood to show"),
    tags: List[str] = Query([], description="Show nodes carrying any of these tags"),
):
    """Visible nodes and edges after focus and tag filtering."""
    stored = plans.read_document(user_id, plan_id)
    if stored is None:
        raise PlanNotFoundError(plan_id)
    document = document_from_wire(stored.document, config.default_tags)
    state = document.to_state()
    focused = focus if focus is not None and state.node(focus) is not None else None
    view = visible_graph(state, focused, frozenset(tags))
    return GraphView(
        plan_id=plan_id,
        focused_node_id=focused,
        tag_filter=sorted(set(tags)),
        nodes=[node_to_wire(node) for node in view.nodes],
        edges=[edge_to_wire(edge) for edge in view.edges],
        hidden_node_ids=sorted(view.hidden_node_ids),
        hidden_edge_ids=sorted(view.hidden_edge_ids),
    )
