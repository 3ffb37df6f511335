"""Plan Service - CRUD operations for plans and their graph documents."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..models.graph import GraphState, document_to_wire
from ..models.plan import PlanDocument, PlanSummary
from .database import DatabaseService
from .graph_store import GraphStore

logger = logging.getLogger(__name__)

# Top-level document keys that live in their own column.
_COLUMN_FIELDS = {"title"}


class PlanNotFoundError(Exception):
    """Raised when a plan does not exist for the given user."""

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        self.message = f"Plan not found: {plan_id}"
        super().__init__(self.message)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def seed_document(title: str, default_tags: Iterable[str]) -> Dict[str, Any]:
    """Document for a fresh plan: one default node labelled with the title."""
    store = GraphStore(GraphState(available_tags=tuple(default_tags)))
    store.add_node("default", {"label": title}, (0, 0))
    return document_to_wire(store.state)


class PlanService:
    """Service for plan CRUD operations backed by SQLite."""

    def __init__(self, db_service: DatabaseService | None = None):
        """Initialize with database service."""
        self._db = db_service or DatabaseService()

    def _row_to_summary(self, row) -> PlanSummary:
        return PlanSummary(
            plan_id=row["plan_id"],
            title=row["title"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
            revision=row["revision"],
        )

    def list_plans(self, user_id: str) -> List[PlanSummary]:
        """List a user's plans, newest first."""
        conn = self._db.connect()
        try:
            rows = conn.execute(
                """
                SELECT plan_id, title, created_at, updated_at, revision
                FROM plans
                WHERE user_id = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (user_id,),
            ).fetchall()
            return [self._row_to_summary(row) for row in rows]
        finally:
            conn.close()

    def get_plan(self, user_id: str, plan_id: str) -> PlanSummary:
        conn = self._db.connect()
        try:
            row = conn.execute(
                """
                SELECT plan_id, title, created_at, updated_at, revision
                FROM plans WHERE user_id = ? AND plan_id = ?
                """,
                (user_id, plan_id),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise PlanNotFoundError(plan_id)
        return self._row_to_summary(row)

    def create_plan(
        self, user_id: str, title: str, default_tags: Iterable[str] = ()
    ) -> PlanSummary:
        """Create a plan seeded with a single node carrying its title."""
        cleaned = title.strip()
        if not cleaned:
            raise ValueError("Plan title must not be blank")

        plan_id = uuid.uuid4().hex
        now = _utcnow_iso()
        document = seed_document(cleaned, default_tags)

        conn = self._db.connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO plans (user_id, plan_id, title, created_at, updated_at, revision, document)
                    VALUES (?, ?, ?, ?, ?, 1, ?)
                    """,
                    (user_id, plan_id, cleaned, now, now, json.dumps(document)),
                )
        finally:
            conn.close()
        logger.info(f"Created plan {plan_id} for user {user_id}")
        return self.get_plan(user_id, plan_id)

    def delete_plan(self, user_id: str, plan_id: str) -> None:
        conn = self._db.connect()
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM plans WHERE user_id = ? AND plan_id = ?",
                    (user_id, plan_id),
                )
        finally:
            conn.close()
        if cursor.rowcount == 0:
            raise PlanNotFoundError(plan_id)
        logger.info(f"Deleted plan {plan_id} for user {user_id}")

    def read_document(self, user_id: str, plan_id: str) -> Optional[PlanDocument]:
        """Return the stored document, or None when the plan has no record."""
        conn = self._db.connect()
        try:
            row = conn.execute(
                "SELECT title, revision, document FROM plans WHERE user_id = ? AND plan_id = ?",
                (user_id, plan_id),
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            return None
        try:
            document = json.loads(row["document"] or "{}")
        except json.JSONDecodeError:
            logger.warning(f"Stored document for plan {plan_id} is not valid JSON")
            document = {}
        if not isinstance(document, dict):
            document = {}
        document["title"] = row["title"]
        return PlanDocument(plan_id=plan_id, revision=row["revision"], document=document)

    def merge_document(
        self, user_id: str, plan_id: str, partial: Dict[str, Any]
    ) -> PlanDocument:
        """Upsert the given top-level fields, leaving the others untouched."""
        now = _utcnow_iso()
        conn = self._db.connect()
        try:
            with conn:
                row = conn.execute(
                    "SELECT title, document FROM plans WHERE user_id = ? AND plan_id = ?",
                    (user_id, plan_id),
                ).fetchone()
                fields = {k: v for k, v in partial.items() if k not in _COLUMN_FIELDS}
                title = partial.get("title")

                if row is None:
                    conn.execute(
                        """
                        INSERT INTO plans (user_id, plan_id, title, created_at, updated_at, revision, document)
                        VALUES (?, ?, ?, ?, ?, 1, ?)
                        """,
                        (user_id, plan_id, title or "Untitled plan", now, now, json.dumps(fields)),
                    )
                else:
                    try:
                        current = json.loads(row["document"] or "{}")
                    except json.JSONDecodeError:
                        current = {}
                    if not isinstance(current, dict):
                        current = {}
                    current.update(fields)
                    conn.execute(
                        """
                        UPDATE plans
                        SET title = ?, document = ?, revision = revision + 1, updated_at = ?
                        WHERE user_id = ? AND plan_id = ?
                        """,
                        (title or row["title"], json.dumps(current), now, user_id, plan_id),
                    )
        finally:
            conn.close()
        logger.debug(f"Merged fields {sorted(partial)} into plan {plan_id}")
        document = self.read_document(user_id, plan_id)
        if document is None:
            raise PlanNotFoundError(plan_id)
        return document


_plan_service: PlanService | None = None


def get_plan_service() -> PlanService:
    """Get or create the plan service singleton."""
    global _plan_service
    if _plan_service is None:
        from .config import get_config

        _plan_service = PlanService(DatabaseService(get_config().db_path))
    return _plan_service


__all__ = ["PlanService", "PlanNotFoundError", "get_plan_service", "seed_document"]
