from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from uuid import uuid4

from leaddesk.domain import rules
from leaddesk.domain.models import Actor, Lead
from leaddesk.domain.rules import ForbiddenError, NotFoundError, ValidationError
from leaddesk.domain.stages import EntityType, LeadStage, YesNo
from leaddesk.services import audit
from leaddesk.services.access import require_admin, scope_for, visible_lead
from leaddesk.services.events import EventLogger, emit
from leaddesk.services.utils import to_iso, utc_now_iso
from leaddesk.store.sqlite import SqliteSession, SqliteStore

IDENTITY_FIELDS = (
    "phone",
    "email",
    "provider",
    "processing_volume",
    "effective_rate",
    "data_source",
    "data_cohort",
)

YES_NO_FIELDS = (
    "data_verified",
    "phone_valid",
    "email_valid",
    "correct_decision_maker",
    "email_sent",
)

DATETIME_FIELDS = (
    "last_contact_date",
    "next_follow_up_date",
    "quote_date",
    "signed_date",
    "closed_date",
    "email_sent_date",
)

TEXT_FIELDS = (
    "company_name",
    "contact_name",
    *IDENTITY_FIELDS,
    "follow_up_time",
    "quoted_rate",
    "expected_residual",
    "actual_residual",
    "onboarding_status",
    "loss_reason",
)

UPDATABLE_FIELDS = frozenset((*TEXT_FIELDS, *YES_NO_FIELDS, *DATETIME_FIELDS, "stage"))


@dataclass
class BatchReport:
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    total: int = 0


def create_lead(
    store: SqliteStore,
    actor: Actor,
    company_name: str,
    contact_name: str,
    owner_id: str | None = None,
    logger: EventLogger | None = None,
    **fields: Any,
) -> str:
    owner_id = owner_id or actor.user_id
    if not actor.is_admin and owner_id != actor.user_id:
        raise ForbiddenError("Cannot create leads for other users.")
    with store.session() as session:
        lead_id = _insert_lead(session, company_name, contact_name, owner_id, fields)
    emit(
        logger,
        event_type="lead_created",
        entity_type=EntityType.LEAD.value,
        entity_id=lead_id,
        actor_id=actor.user_id,
    )
    return lead_id


def get_lead(store: SqliteStore, actor: Actor, lead_id: str) -> Lead:
    return Lead.from_row(visible_lead(store, actor, lead_id))


def list_leads(store: SqliteStore, actor: Actor, hide_converted: bool = True) -> list[Lead]:
    where, params = scope_for(actor)
    if hide_converted:
        where += " AND opportunity_id IS NULL"
    rows = store.fetch_all(
        f"SELECT * FROM leads WHERE {where} ORDER BY created_at DESC, rowid DESC", params
    )
    return [Lead.from_row(row) for row in rows]


def list_leads_by_stage(store: SqliteStore, actor: Actor, stage: str) -> list[Lead]:
    rules.validate_enum(stage, [s.value for s in LeadStage], "stage")
    where, params = scope_for(actor)
    rows = store.fetch_all(
        f"SELECT * FROM leads WHERE stage = ? AND {where} ORDER BY created_at DESC, rowid DESC",
        [stage, *params],
    )
    return [Lead.from_row(row) for row in rows]


def update_lead(
    store: SqliteStore,
    actor: Actor,
    lead_id: str,
    logger: EventLogger | None = None,
    **changes: Any,
) -> Lead:
    """Apply a manual edit. Any stage value is accepted here, including reversals."""
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown lead fields: {', '.join(sorted(unknown))}")
    if not changes:
        return get_lead(store, actor, lead_id)

    values = _normalize_fields(changes)
    if "company_name" in values:
        rules.require(values["company_name"], "company_name")
    if "contact_name" in values:
        rules.require(values["contact_name"], "contact_name")

    assignments = [f"{name} = ?" for name in values] + ["updated_at = ?"]
    params = [*values.values(), utc_now_iso(), lead_id]
    with store.session() as session:
        visible_lead(session, actor, lead_id)
        session.execute(f"UPDATE leads SET {', '.join(assignments)} WHERE lead_id = ?", params)
        row = session.fetch_one("SELECT * FROM leads WHERE lead_id = ?", (lead_id,))
    emit(
        logger,
        event_type="lead_updated",
        entity_type=EntityType.LEAD.value,
        entity_id=lead_id,
        actor_id=actor.user_id,
        details={"fields": sorted(values)},
    )
    return Lead.from_row(row)


def delete_lead(
    store: SqliteStore, actor: Actor, lead_id: str, logger: EventLogger | None = None
) -> None:
    """Delete a lead and audit it; linked rows keep existing with a null lead reference."""
    with store.session() as session:
        row = visible_lead(session, actor, lead_id)
        _delete_with_audit(session, actor, row)
    emit(
        logger,
        event_type="lead_deleted",
        entity_type=EntityType.LEAD.value,
        entity_id=lead_id,
        actor_id=actor.user_id,
    )


def bulk_import(
    store: SqliteStore,
    actor: Actor,
    rows: Iterable[Mapping[str, Any]],
    logger: EventLogger | None = None,
) -> BatchReport:
    """Create one lead per row for the acting user; bad rows are reported, not fatal."""
    report = BatchReport()
    for row in rows:
        report.total += 1
        data = dict(row)
        company_name = data.pop("company_name", None)
        contact_name = data.pop("contact_name", None)
        data.pop("owner_id", None)
        try:
            with store.session() as session:
                _insert_lead(session, company_name, contact_name, actor.user_id, data)
            report.success += 1
        except (ValidationError, sqlite3.Error) as exc:
            report.failed += 1
            report.errors.append(f"Failed to import {company_name or '<blank>'}: {exc}")
    emit(
        logger,
        event_type="leads_imported",
        entity_type=EntityType.LEAD.value,
        entity_id="*",
        actor_id=actor.user_id,
        details={"success": report.success, "failed": report.failed},
    )
    return report


def bulk_assign(
    store: SqliteStore,
    actor: Actor,
    lead_ids: Iterable[str],
    new_owner_id: str,
    logger: EventLogger | None = None,
) -> BatchReport:
    require_admin(actor, "bulk assign leads")
    if store.fetch_one("SELECT user_id FROM users WHERE user_id = ?", (new_owner_id,)) is None:
        raise NotFoundError("User not found.")
    report = BatchReport()
    now = utc_now_iso()
    for lead_id in lead_ids:
        report.total += 1
        try:
            with store.session() as session:
                visible_lead(session, actor, lead_id)
                session.execute(
                    "UPDATE leads SET owner_id = ?, updated_at = ? WHERE lead_id = ?",
                    (new_owner_id, now, lead_id),
                )
            report.success += 1
        except NotFoundError as exc:
            report.failed += 1
            report.errors.append(f"{lead_id}: {exc}")
    emit(
        logger,
        event_type="leads_assigned",
        entity_type=EntityType.LEAD.value,
        entity_id="*",
        actor_id=actor.user_id,
        details={"owner_id": new_owner_id, "assigned": report.success},
    )
    return report


def bulk_delete(
    store: SqliteStore,
    actor: Actor,
    lead_ids: Iterable[str],
    logger: EventLogger | None = None,
) -> BatchReport:
    report = BatchReport()
    for lead_id in lead_ids:
        report.total += 1
        try:
            with store.session() as session:
                row = visible_lead(session, actor, lead_id)
                _delete_with_audit(session, actor, row)
            report.success += 1
        except NotFoundError as exc:
            report.failed += 1
            report.errors.append(f"{lead_id}: {exc}")
    emit(
        logger,
        event_type="leads_deleted",
        entity_type=EntityType.LEAD.value,
        entity_id="*",
        actor_id=actor.user_id,
        details={"deleted": report.success},
    )
    return report


def _insert_lead(
    session: SqliteSession,
    company_name: str | None,
    contact_name: str | None,
    owner_id: str,
    fields: Mapping[str, Any],
) -> str:
    rules.require(company_name, "company_name")
    rules.require(contact_name, "contact_name")
    if not isinstance(company_name, str) or not isinstance(contact_name, str):
        raise ValidationError("company_name and contact_name must be text.")
    unknown = set(fields) - set(IDENTITY_FIELDS) - {"next_follow_up_date", "stage"}
    if unknown:
        raise ValidationError(f"Unknown lead fields: {', '.join(sorted(unknown))}")
    values = _normalize_fields({k: v for k, v in fields.items() if v is not None})
    if session.fetch_one("SELECT user_id FROM users WHERE user_id = ?", (owner_id,)) is None:
        raise ValidationError("owner_id must reference an existing user.")

    now = utc_now_iso()
    lead_id = str(uuid4())
    columns = ["lead_id", "company_name", "contact_name", "owner_id", *values, "created_at", "updated_at"]
    params = [lead_id, company_name.strip(), contact_name.strip(), owner_id, *values.values(), now, now]
    placeholders = ", ".join("?" for _ in columns)
    session.execute(
        f"INSERT INTO leads ({', '.join(columns)}) VALUES ({placeholders})",
        params,
    )
    return lead_id


def _normalize_fields(changes: Mapping[str, Any]) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for name, value in changes.items():
        if name == "stage":
            rules.require(value, "stage")
            rules.validate_enum(value, [s.value for s in LeadStage], "stage")
        elif name in YES_NO_FIELDS:
            rules.validate_enum(value, [y.value for y in YesNo], name)
        elif name in DATETIME_FIELDS and isinstance(value, (datetime, date, str)):
            try:
                value = to_iso(value)
            except ValueError as exc:
                raise ValidationError(f"{name} must be ISO 8601.") from exc
        values[name] = value
    return values


def _delete_with_audit(session: SqliteSession, actor: Actor, row) -> None:
    audit.record_deletion(
        session,
        actor,
        entity_type=EntityType.LEAD.value,
        entity_id=row["lead_id"],
        entity_name=row["company_name"],
        additional_info={
            "contact_name": row["contact_name"],
            "phone": row["phone"],
            "email": row["email"],
            "stage": row["stage"],
        },
    )
    session.execute("DELETE FROM leads WHERE lead_id = ?", (row["lead_id"],))
