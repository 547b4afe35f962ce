from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from leaddesk.domain.stages import Priority, TodoStatus
from leaddesk.services.utils import to_iso, utc_now_iso
from leaddesk.store.sqlite import SqliteSession


def schedule_callback(
    session: SqliteSession,
    agent_id: str | None,
    lead_id: str,
    company_name: str | None,
    callback_date: datetime | str | None,
) -> str | None:
    """Insert a high-priority callback todo for the agent; returns None when nothing was scheduled."""
    if not callback_date or not agent_id:
        return None
    now = utc_now_iso()
    todo_id = str(uuid4())
    session.execute(
        "INSERT INTO todos (todo_id, owner_id, title, description, completed, due_date, priority, "
        "status, linked_lead_id, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            todo_id,
            agent_id,
            f"Callback: {company_name or 'Lead'}",
            f"Scheduled callback for lead ID {lead_id}",
            0,
            to_iso(callback_date),
            Priority.HIGH.value,
            TodoStatus.PENDING.value,
            lead_id,
            now,
            now,
        ),
    )
    return todo_id
