from __future__ import annotations

from uuid import uuid4

from leaddesk.domain import rules
from leaddesk.domain.models import Actor, Note
from leaddesk.services.access import visible_lead, visible_opportunity
from leaddesk.services.utils import utc_now_iso
from leaddesk.store.sqlite import SqliteSession, SqliteStore


def add_lead_note(store: SqliteStore, actor: Actor, lead_id: str, content: str) -> str:
    rules.require(content, "content")
    with store.session() as session:
        visible_lead(session, actor, lead_id)
        return insert_note(session, actor, content, lead_id=lead_id)


def add_opportunity_note(
    store: SqliteStore, actor: Actor, opportunity_id: str, content: str
) -> str:
    rules.require(content, "content")
    with store.session() as session:
        visible_opportunity(session, actor, opportunity_id)
        return insert_note(session, actor, content, opportunity_id=opportunity_id)


def list_lead_notes(store: SqliteStore, actor: Actor, lead_id: str) -> list[Note]:
    visible_lead(store, actor, lead_id)
    rows = store.fetch_all(
        "SELECT * FROM notes WHERE lead_id = ? ORDER BY created_at DESC, rowid DESC", (lead_id,)
    )
    return [Note.from_row(row) for row in rows]


def list_opportunity_notes(store: SqliteStore, actor: Actor, opportunity_id: str) -> list[Note]:
    """Notes on the opportunity plus those left on its originating lead."""
    opp = visible_opportunity(store, actor, opportunity_id)
    rows = store.fetch_all(
        "SELECT * FROM notes WHERE opportunity_id = ? "
        "OR (lead_id IS NOT NULL AND lead_id = ?) ORDER BY created_at DESC, rowid DESC",
        (opportunity_id, opp["lead_id"]),
    )
    return [Note.from_row(row) for row in rows]


def insert_note(
    session: SqliteSession,
    actor: Actor,
    content: str,
    lead_id: str | None = None,
    opportunity_id: str | None = None,
) -> str:
    now = utc_now_iso()
    note_id = str(uuid4())
    session.execute(
        "INSERT INTO notes (note_id, lead_id, opportunity_id, content, created_by, created_by_name, "
        "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
        (note_id, lead_id, opportunity_id, content, actor.user_id, actor.display_name, now, now),
    )
    return note_id
