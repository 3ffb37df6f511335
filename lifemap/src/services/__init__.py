"""Service layer: graph engine, sync and document storage."""

from .config import AppConfig, get_config, reload_config
from .database import DatabaseService, init_database
from .filter import compute_visibility, visible_graph
from .focus import FocusState, neighborhood
from .graph_store import GraphStore, IdClock, clamp_geometry
from .http_repository import HttpDocumentRepository
from .plan_service import PlanNotFoundError, PlanService, get_plan_service
from .repository import (
    DocumentRepository,
    InMemoryDocumentRepository,
    RepositoryError,
    SqliteDocumentRepository,
)
from .session import MapSession
from .sync_engine import SaveStatus, SyncEngine, SyncState
from .tag_registry import TagRegistry

__all__ = [
    "AppConfig",
    "get_config",
    "reload_config",
    "DatabaseService",
    "init_database",
    "GraphStore",
    "IdClock",
    "clamp_geometry",
    "TagRegistry",
    "FocusState",
    "neighborhood",
    "compute_visibility",
    "visible_graph",
    "DocumentRepository",
    "InMemoryDocumentRepository",
    "SqliteDocumentRepository",
    "HttpDocumentRepository",
    "RepositoryError",
    "PlanService",
    "PlanNotFoundError",
    "get_plan_service",
    "SyncEngine",
    "SyncState",
    "SaveStatus",
    "MapSession",
]
