from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

from leaddesk.domain import rules
from leaddesk.domain.models import Actor, AuditLog
from leaddesk.domain.stages import EntityType
from leaddesk.services.access import require_admin
from leaddesk.services.utils import utc_now_iso
from leaddesk.store.sqlite import SqliteSession, SqliteStore


def record_deletion(
    session: SqliteSession,
    actor: Actor,
    *,
    entity_type: str,
    entity_id: str,
    entity_name: str,
    additional_info: dict[str, Any] | None = None,
) -> str:
    """Append one audit row; runs inside the caller's delete transaction."""
    rules.validate_enum(entity_type, [e.value for e in EntityType], "entity_type")
    audit_id = str(uuid4())
    session.execute(
        "INSERT INTO audit_logs (audit_id, entity_type, entity_id, entity_name, deleted_by, "
        "deleted_by_name, deleted_at, additional_info) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        (
            audit_id,
            entity_type,
            entity_id,
            entity_name,
            actor.user_id,
            actor.display_name,
            utc_now_iso(),
            json.dumps(additional_info) if additional_info is not None else None,
        ),
    )
    return audit_id


def list_audit_logs(store: SqliteStore, actor: Actor) -> list[AuditLog]:
    require_admin(actor, "view audit logs")
    rows = store.fetch_all("SELECT * FROM audit_logs ORDER BY deleted_at DESC, rowid DESC")
    return [AuditLog.from_row(row) for row in rows]
