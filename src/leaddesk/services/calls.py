from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from leaddesk.domain import rules
from leaddesk.domain.models import Actor, CallLog
from leaddesk.domain.rules import ValidationError
from leaddesk.domain.stages import CallOutcome, EntityType, YesNo
from leaddesk.domain.transitions import StageTransition, apply_call_outcome
from leaddesk.services.access import visible_lead, visible_opportunity
from leaddesk.services.callbacks import schedule_callback
from leaddesk.services.events import EventLogger, emit
from leaddesk.services.utils import checked_iso, utc_now_iso
from leaddesk.store.sqlite import SqliteSession, SqliteStore


def log_call(
    store: SqliteStore,
    actor: Actor,
    lead_id: str,
    outcome: str,
    duration: int | None = None,
    notes: str | None = None,
    callback_requested: bool = False,
    callback_date: datetime | str | None = None,
    call_date: datetime | str | None = None,
    logger: EventLogger | None = None,
) -> str:
    """Record a call on a lead and run stage automation in one transaction.

    The call log insert, the lead update and the optional callback todo commit
    together or not at all.
    """
    _validate_call(outcome, duration)
    call_date = checked_iso(call_date, "call_date")
    callback_date = checked_iso(callback_date, "callback_date")

    now = utc_now_iso()
    call_id = str(uuid4())
    with store.session(immediate=True) as session:
        lead = visible_lead(session, actor, lead_id)
        _insert_call(
            session,
            call_id=call_id,
            lead_id=lead_id,
            opportunity_id=None,
            actor=actor,
            outcome=outcome,
            duration=duration,
            notes=notes,
            callback_requested=callback_requested,
            callback_date=callback_date,
            call_date=call_date,
            now=now,
        )
        transition = apply_call_outcome(lead["stage"], lead["dial_attempts"], outcome)
        _apply_transition(session, lead_id, transition, now)
        todo_id = None
        if callback_requested:
            todo_id = schedule_callback(
                session, actor.user_id, lead_id, lead["company_name"], callback_date
            )

    emit(
        logger,
        event_type="call_logged",
        entity_type=EntityType.LEAD.value,
        entity_id=lead_id,
        actor_id=actor.user_id,
        details={
            "call_id": call_id,
            "outcome": outcome,
            "stage_from": transition.previous_stage,
            "stage_to": transition.stage,
            "dial_attempts": transition.dial_attempts,
            "callback_todo_id": todo_id,
        },
    )
    return call_id


def log_opportunity_call(
    store: SqliteStore,
    actor: Actor,
    opportunity_id: str,
    outcome: str,
    duration: int | None = None,
    notes: str | None = None,
    call_date: datetime | str | None = None,
    logger: EventLogger | None = None,
) -> str:
    """Record a call against an opportunity. No lead automation runs."""
    _validate_call(outcome, duration)
    call_date = checked_iso(call_date, "call_date")
    now = utc_now_iso()
    call_id = str(uuid4())
    with store.session() as session:
        visible_opportunity(session, actor, opportunity_id)
        _insert_call(
            session,
            call_id=call_id,
            lead_id=None,
            opportunity_id=opportunity_id,
            actor=actor,
            outcome=outcome,
            duration=duration,
            notes=notes,
            callback_requested=False,
            callback_date=None,
            call_date=call_date,
            now=now,
        )
    emit(
        logger,
        event_type="call_logged",
        entity_type=EntityType.OPPORTUNITY.value,
        entity_id=opportunity_id,
        actor_id=actor.user_id,
        details={"call_id": call_id, "outcome": outcome},
    )
    return call_id


def list_calls_for_lead(store: SqliteStore, actor: Actor, lead_id: str) -> list[CallLog]:
    visible_lead(store, actor, lead_id)
    rows = store.fetch_all(
        "SELECT * FROM call_logs WHERE lead_id = ? ORDER BY call_date DESC, rowid DESC",
        (lead_id,),
    )
    return [CallLog.from_row(row) for row in rows]


def list_calls_for_opportunity(
    store: SqliteStore, actor: Actor, opportunity_id: str
) -> list[CallLog]:
    """Calls logged on the opportunity plus the history of its originating lead."""
    opp = visible_opportunity(store, actor, opportunity_id)
    rows = store.fetch_all(
        "SELECT * FROM call_logs WHERE opportunity_id = ? "
        "OR (lead_id IS NOT NULL AND lead_id = ?) ORDER BY call_date DESC, rowid DESC",
        (opportunity_id, opp["lead_id"]),
    )
    return [CallLog.from_row(row) for row in rows]


def _validate_call(outcome: str, duration: int | None) -> None:
    rules.require(outcome, "outcome")
    rules.validate_enum(outcome, [o.value for o in CallOutcome], "outcome")
    if duration is not None and (isinstance(duration, bool) or duration < 0):
        raise ValidationError("duration must be a non-negative number of seconds.")


def _insert_call(
    session: SqliteSession,
    *,
    call_id: str,
    lead_id: str | None,
    opportunity_id: str | None,
    actor: Actor,
    outcome: str,
    duration: int | None,
    notes: str | None,
    callback_requested: bool,
    callback_date: str | None,
    call_date: str | None,
    now: str,
) -> None:
    session.execute(
        "INSERT INTO call_logs (call_id, lead_id, opportunity_id, call_date, call_outcome, "
        "call_duration, notes, agent_id, callback_scheduled, callback_date, created_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (
            call_id,
            lead_id,
            opportunity_id,
            call_date or now,
            outcome,
            duration,
            notes,
            actor.user_id,
            YesNo.YES.value if callback_requested else YesNo.NO.value,
            callback_date,
            now,
        ),
    )


def _apply_transition(
    session: SqliteSession, lead_id: str, transition: StageTransition, now: str
) -> None:
    assignments = [
        "dial_attempts = dial_attempts + 1",
        "stage = ?",
        "last_contact_date = ?",
        "updated_at = ?",
    ]
    params: list[object] = [transition.stage, now, now]
    if transition.closes_lead:
        assignments.extend(["closed_date = ?", "loss_reason = ?"])
        params.extend([now, transition.loss_reason])
    params.append(lead_id)
    session.execute(f"UPDATE leads SET {', '.join(assignments)} WHERE lead_id = ?", params)
