from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from leaddesk.domain import rules
from leaddesk.domain.models import Actor
from leaddesk.domain.rules import ConflictError, ValidationError
from leaddesk.domain.stages import EntityType, OpportunityStage, YesNo
from leaddesk.services.access import visible_lead
from leaddesk.services.events import EventLogger, emit
from leaddesk.services.utils import to_iso, utc_now_iso
from leaddesk.store.sqlite import SqliteStore

DEFAULT_PROBABILITY = 50


def convert_lead(
    store: SqliteStore,
    actor: Actor,
    lead_id: str,
    name: str | None = None,
    deal_value: str | None = None,
    expected_close_date: datetime | str | None = None,
    notes: str | None = None,
    probability: int = DEFAULT_PROBABILITY,
    logger: EventLogger | None = None,
) -> str:
    """Create the opportunity for a lead and flag the lead as converted.

    The lead, its call logs and its notes stay where they are; the opportunity
    reaches them through its ``lead_id``. A lead converts at most once.
    """
    rules.validate_probability(probability)
    try:
        close_date = to_iso(expected_close_date)
    except ValueError as exc:
        raise ValidationError("expected_close_date must be ISO 8601.") from exc

    with store.session(immediate=True) as session:
        lead = visible_lead(session, actor, lead_id)
        if lead["converted_to_opportunity"] == YesNo.YES.value or lead["opportunity_id"]:
            raise ConflictError("Lead has already been converted to an opportunity.")

        now = utc_now_iso()
        opportunity_id = str(uuid4())
        session.execute(
            "INSERT INTO opportunities (opportunity_id, lead_id, name, company_name, contact_name, "
            "phone, email, stage, deal_value, probability, expected_close_date, owner_id, notes, "
            "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (
                opportunity_id,
                lead_id,
                name or f"{lead['company_name']} - Deal",
                lead["company_name"],
                lead["contact_name"],
                lead["phone"],
                lead["email"],
                OpportunityStage.QUALIFIED.value,
                deal_value,
                probability,
                close_date,
                lead["owner_id"],
                notes,
                now,
                now,
            ),
        )
        session.execute(
            "UPDATE leads SET converted_to_opportunity = ?, opportunity_id = ?, conversion_date = ?, "
            "updated_at = ? WHERE lead_id = ?",
            (YesNo.YES.value, opportunity_id, now, now, lead_id),
        )

    emit(
        logger,
        event_type="lead_converted",
        entity_type=EntityType.LEAD.value,
        entity_id=lead_id,
        actor_id=actor.user_id,
        details={"opportunity_id": opportunity_id},
    )
    return opportunity_id
