from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import uuid4

from leaddesk.domain import rules
from leaddesk.domain.models import Actor, Todo
from leaddesk.domain.rules import NotFoundError, ValidationError
from leaddesk.domain.stages import Priority, TodoStatus
from leaddesk.services.utils import checked_iso, utc_now_iso
from leaddesk.store.sqlite import SqliteStore

UPDATABLE_FIELDS = frozenset(
    {"title", "description", "completed", "due_date", "priority", "status", "linked_lead_id"}
)


def create_todo(
    store: SqliteStore,
    actor: Actor,
    title: str,
    description: str | None = None,
    due_date: datetime | str | None = None,
    priority: str = Priority.MEDIUM.value,
    linked_lead_id: str | None = None,
) -> Todo:
    rules.require(title, "title")
    rules.validate_enum(priority, [p.value for p in Priority], "priority")
    due_date = checked_iso(due_date, "due_date")
    now = utc_now_iso()
    todo_id = str(uuid4())
    with store.session() as session:
        session.execute(
            "INSERT INTO todos (todo_id, owner_id, title, description, completed, due_date, "
            "priority, status, linked_lead_id, created_at, updated_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                todo_id,
                actor.user_id,
                title,
                description,
                0,
                due_date,
                priority,
                TodoStatus.PENDING.value,
                linked_lead_id,
                now,
                now,
            ),
        )
        return Todo.from_row(session.fetch_one("SELECT * FROM todos WHERE todo_id = ?", (todo_id,)))


def list_todos(store: SqliteStore, actor: Actor, include_completed: bool = True) -> list[Todo]:
    """The caller's own todos, open ones first then by due date."""
    query = "SELECT * FROM todos WHERE owner_id = ?"
    if not include_completed:
        query += " AND completed = 0"
    query += " ORDER BY completed, due_date IS NULL, due_date, created_at"
    return [Todo.from_row(row) for row in store.fetch_all(query, (actor.user_id,))]


def update_todo(store: SqliteStore, actor: Actor, todo_id: str, **changes: Any) -> Todo:
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown todo fields: {', '.join(sorted(unknown))}")
    values = dict(changes)
    if "title" in values:
        rules.require(values["title"], "title")
    rules.validate_enum(values.get("priority"), [p.value for p in Priority], "priority")
    rules.validate_enum(values.get("status"), [s.value for s in TodoStatus], "status")
    if "due_date" in values:
        values["due_date"] = checked_iso(values["due_date"], "due_date")

    # completed and status always move together
    if "completed" in values:
        done = bool(values["completed"])
        values["completed"] = int(done)
        values["status"] = TodoStatus.COMPLETED.value if done else TodoStatus.PENDING.value
    elif "status" in values:
        values["completed"] = int(values["status"] == TodoStatus.COMPLETED.value)

    with store.session() as session:
        _own_todo(session, actor, todo_id)
        if values:
            assignments = [f"{name} = ?" for name in values] + ["updated_at = ?"]
            session.execute(
                f"UPDATE todos SET {', '.join(assignments)} WHERE todo_id = ?",
                [*values.values(), utc_now_iso(), todo_id],
            )
        return Todo.from_row(session.fetch_one("SELECT * FROM todos WHERE todo_id = ?", (todo_id,)))


def complete_todo(store: SqliteStore, actor: Actor, todo_id: str) -> Todo:
    return update_todo(store, actor, todo_id, completed=True)


def delete_todo(store: SqliteStore, actor: Actor, todo_id: str) -> None:
    with store.session() as session:
        _own_todo(session, actor, todo_id)
        session.execute("DELETE FROM todos WHERE todo_id = ?", (todo_id,))


def _own_todo(session, actor: Actor, todo_id: str):
    row = session.fetch_one(
        "SELECT * FROM todos WHERE todo_id = ? AND owner_id = ?", (todo_id, actor.user_id)
    )
    if row is None:
        raise NotFoundError("Todo not found.")
    return row
