"""Follow-up queues: what is due today and what has slipped.

Leads are driven by their ``next_follow_up_date``. Opportunities in proposal or
negotiation are driven by ``stage_entered_at``: they come due the day after
entering the stage and turn overdue once they have sat untouched for more
than two full days.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from leaddesk.domain.models import Actor
from leaddesk.domain.stages import (
    CLOSED_LEAD_STAGES,
    LATE_OPPORTUNITY_STAGES,
    EntityType,
)
from leaddesk.services.access import scope_for
from leaddesk.services.utils import day_bounds, utc_now
from leaddesk.store.sqlite import SqliteStore

OVERDUE_AFTER_DAYS = 2

_CLOSED = [s.value for s in CLOSED_LEAD_STAGES]
_LATE = [s.value for s in LATE_OPPORTUNITY_STAGES]


@dataclass(frozen=True)
class FollowUpItem:
    kind: str
    record_id: str
    name: str
    stage: str
    due_at: str | None


def follow_ups_due_today(
    store: SqliteStore, actor: Actor, now: datetime | None = None
) -> list[FollowUpItem]:
    today = _today(now)
    start, end = day_bounds(today)
    yesterday_start, yesterday_end = day_bounds(today - timedelta(days=1))

    where, params = scope_for(actor)
    leads = store.fetch_all(
        f"SELECT * FROM leads WHERE {where} AND stage NOT IN (?, ?) "
        "AND next_follow_up_date >= ? AND next_follow_up_date <= ? "
        "ORDER BY next_follow_up_date",
        [*params, *_CLOSED, start, end],
    )
    opportunities = store.fetch_all(
        f"SELECT * FROM opportunities WHERE {where} AND stage IN (?, ?) "
        "AND stage_entered_at >= ? AND stage_entered_at <= ? "
        "ORDER BY stage_entered_at",
        [*params, *_LATE, yesterday_start, yesterday_end],
    )
    return _lead_items(leads) + _opportunity_items(opportunities)


def overdue_follow_ups(
    store: SqliteStore, actor: Actor, now: datetime | None = None
) -> list[FollowUpItem]:
    today = _today(now)
    start, _ = day_bounds(today)
    cutoff, _ = day_bounds(today - timedelta(days=OVERDUE_AFTER_DAYS))

    where, params = scope_for(actor)
    leads = store.fetch_all(
        f"SELECT * FROM leads WHERE {where} AND stage NOT IN (?, ?) "
        "AND next_follow_up_date < ? ORDER BY next_follow_up_date",
        [*params, *_CLOSED, start],
    )
    opp_where, opp_params = scope_for(actor, owner_column="o.owner_id")
    opportunities = store.fetch_all(
        f"SELECT o.* FROM opportunities o WHERE {opp_where} AND o.stage IN (?, ?) "
        "AND o.stage_entered_at < ? "
        "AND NOT EXISTS ("
        "SELECT 1 FROM call_logs c WHERE (c.opportunity_id = o.opportunity_id "
        "OR (o.lead_id IS NOT NULL AND c.lead_id = o.lead_id)) "
        "AND c.created_at >= o.stage_entered_at"
        ") ORDER BY o.stage_entered_at",
        [*opp_params, *_LATE, cutoff],
    )
    return _lead_items(leads) + _opportunity_items(opportunities)


def _today(now: datetime | None):
    now = now or utc_now()
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(UTC).date()


def _lead_items(rows) -> list[FollowUpItem]:
    return [
        FollowUpItem(
            kind=EntityType.LEAD.value,
            record_id=row["lead_id"],
            name=row["company_name"],
            stage=row["stage"],
            due_at=row["next_follow_up_date"],
        )
        for row in rows
    ]


def _opportunity_items(rows) -> list[FollowUpItem]:
    return [
        FollowUpItem(
            kind=EntityType.OPPORTUNITY.value,
            record_id=row["opportunity_id"],
            name=row["name"],
            stage=row["stage"],
            due_at=row["stage_entered_at"],
        )
        for row in rows
    ]
