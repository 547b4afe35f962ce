from __future__ import annotations

from datetime import date, datetime
from typing import Any

from leaddesk.domain import rules
from leaddesk.domain.models import Actor, Opportunity
from leaddesk.domain.rules import ValidationError
from leaddesk.domain.stages import (
    CLOSED_OPPORTUNITY_STAGES,
    LATE_OPPORTUNITY_STAGES,
    OPPORTUNITY_STAGE_LABELS,
    EntityType,
    OpportunityStage,
)
from leaddesk.services import audit
from leaddesk.services.access import scope_for, visible_opportunity
from leaddesk.services.events import EventLogger, emit
from leaddesk.services.notes import insert_note
from leaddesk.services.utils import to_iso, utc_now_iso
from leaddesk.store.sqlite import SqliteStore

UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "stage",
        "deal_value",
        "probability",
        "expected_close_date",
        "actual_close_date",
        "notes",
        "loss_reason",
    }
)
DATETIME_FIELDS = frozenset({"expected_close_date", "actual_close_date"})


def list_opportunities(store: SqliteStore, actor: Actor) -> list[Opportunity]:
    where, params = scope_for(actor)
    rows = store.fetch_all(
        f"SELECT * FROM opportunities WHERE {where} ORDER BY created_at DESC, rowid DESC", params
    )
    return [Opportunity.from_row(row) for row in rows]


def list_opportunities_by_stage(store: SqliteStore, actor: Actor, stage: str) -> list[Opportunity]:
    rules.validate_enum(stage, [s.value for s in OpportunityStage], "stage")
    where, params = scope_for(actor)
    rows = store.fetch_all(
        f"SELECT * FROM opportunities WHERE stage = ? AND {where} ORDER BY created_at DESC, rowid DESC",
        [stage, *params],
    )
    return [Opportunity.from_row(row) for row in rows]


def get_opportunity(store: SqliteStore, actor: Actor, opportunity_id: str) -> Opportunity:
    return Opportunity.from_row(visible_opportunity(store, actor, opportunity_id))


def update_opportunity(
    store: SqliteStore,
    actor: Actor,
    opportunity_id: str,
    logger: EventLogger | None = None,
    **changes: Any,
) -> Opportunity:
    """Edit an opportunity.

    A stage change stamps ``stage_entered_at``; entering proposal or
    negotiation also leaves a "Stage changed to ..." note for the activity
    trail. Closing fills ``actual_close_date`` when the caller gives none.
    """
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown opportunity fields: {', '.join(sorted(unknown))}")
    values = dict(changes)
    stage = values.get("stage")
    if "stage" in values:
        rules.require(stage, "stage")
        rules.validate_enum(stage, [s.value for s in OpportunityStage], "stage")
    if "name" in values:
        rules.require(values["name"], "name")
    if "probability" in values:
        rules.validate_probability(values["probability"])
    for name in DATETIME_FIELDS & set(values):
        if isinstance(values[name], (datetime, date, str)):
            try:
                values[name] = to_iso(values[name])
            except ValueError as exc:
                raise ValidationError(f"{name} must be ISO 8601.") from exc

    now = utc_now_iso()
    with store.session() as session:
        current = visible_opportunity(session, actor, opportunity_id)
        stage_changed = stage is not None and stage != current["stage"]
        if stage_changed:
            values["stage_entered_at"] = now
            if stage in {s.value for s in LATE_OPPORTUNITY_STAGES}:
                label = OPPORTUNITY_STAGE_LABELS[OpportunityStage(stage)]
                insert_note(
                    session, actor, f"Stage changed to {label}", opportunity_id=opportunity_id
                )
        if (
            stage in {s.value for s in CLOSED_OPPORTUNITY_STAGES}
            and not values.get("actual_close_date")
            and (stage_changed or not current["actual_close_date"])
        ):
            values["actual_close_date"] = now

        if values:
            assignments = [f"{name} = ?" for name in values] + ["updated_at = ?"]
            session.execute(
                f"UPDATE opportunities SET {', '.join(assignments)} WHERE opportunity_id = ?",
                [*values.values(), now, opportunity_id],
            )
        row = session.fetch_one(
            "SELECT * FROM opportunities WHERE opportunity_id = ?", (opportunity_id,)
        )

    emit(
        logger,
        event_type="opportunity_updated",
        entity_type=EntityType.OPPORTUNITY.value,
        entity_id=opportunity_id,
        actor_id=actor.user_id,
        details={"fields": sorted(values), "stage": row["stage"]},
    )
    return Opportunity.from_row(row)


def delete_opportunity(
    store: SqliteStore, actor: Actor, opportunity_id: str, logger: EventLogger | None = None
) -> None:
    with store.session() as session:
        row = visible_opportunity(session, actor, opportunity_id)
        audit.record_deletion(
            session,
            actor,
            entity_type=EntityType.OPPORTUNITY.value,
            entity_id=opportunity_id,
            entity_name=row["name"],
            additional_info={
                "company_name": row["company_name"],
                "stage": row["stage"],
                "deal_value": row["deal_value"],
            },
        )
        session.execute(
            "DELETE FROM opportunities WHERE opportunity_id = ?", (opportunity_id,)
        )
    emit(
        logger,
        event_type="opportunity_deleted",
        entity_type=EntityType.OPPORTUNITY.value,
        entity_id=opportunity_id,
        actor_id=actor.user_id,
    )
