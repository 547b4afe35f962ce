"""Read-only pipeline statistics.

Each function takes its own snapshot of the store; figures from separate
calls are not guaranteed to agree with each other under concurrent writes.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime

from leaddesk.domain.models import Actor
from leaddesk.domain.stages import (
    CLOSED_OPPORTUNITY_STAGES,
    CallOutcome,
    LeadStage,
    OpportunityStage,
    Role,
    YesNo,
)
from leaddesk.services.access import require_admin, scope_for
from leaddesk.services.utils import to_iso
from leaddesk.store.sqlite import SqliteStore

QUOTED_OR_LATER = {LeadStage.QUOTED.value, LeadStage.NEGOTIATION.value, LeadStage.CLOSED_WON.value}
_OPEN_EXCLUDED = {s.value for s in CLOSED_OPPORTUNITY_STAGES}


@dataclass(frozen=True)
class Metrics:
    total_leads: int
    total_dials: int
    connect_rate: float
    dm_rate: float
    avg_calls_to_reach_dm: float
    avg_calls_to_closed_won: float
    statement_rate: float
    quote_rate: float
    close_rate: float
    end_to_end_conversion: float
    total_mrr: float
    avg_residual: float
    bad_data_percent: float
    total_opportunities: int
    lead_to_opportunity_rate: float
    opportunity_win_rate: float
    total_pipeline_value: float
    avg_deal_size: float
    forecasted_revenue: float


@dataclass(frozen=True)
class AgentMetrics:
    agent_id: str
    agent_name: str
    total_leads: int
    total_dials: int
    connect_percent: float
    statement_percent: float
    quote_percent: float
    close_percent: float
    wins: int


def metrics(
    store: SqliteStore,
    actor: Actor,
    start: datetime | str | None = None,
    end: datetime | str | None = None,
    agent_id: str | None = None,
) -> Metrics:
    """Headline funnel figures for the caller's scope.

    Admins may narrow to one agent with ``agent_id``; for anyone else the
    argument is ignored. ``start``/``end`` bound leads by creation time.
    """
    scoped = actor
    if actor.is_admin and agent_id:
        scoped = Actor(user_id=agent_id, role=Role.USER.value)

    leads = _leads(store, scoped, start, end)
    opportunities = _opportunities(store, scoped)
    calls = _calls_for(store, [lead["lead_id"] for lead in leads])

    total_leads = len(leads)
    total_dials = len(calls)
    dm_calls = [c for c in calls if c["call_outcome"] == CallOutcome.DM_REACHED.value]
    leads_with_dm = {c["lead_id"] for c in dm_calls}
    statements = sum(1 for c in calls if c["call_outcome"] == CallOutcome.STATEMENT_AGREED.value)
    quoted = sum(1 for lead in leads if lead["stage"] in QUOTED_OR_LATER)

    calls_per_lead = Counter(c["lead_id"] for c in calls)
    lead_ids = {lead["lead_id"] for lead in leads}
    won_opps = [o for o in opportunities if o["stage"] == OpportunityStage.CLOSED_WON.value]
    calls_to_won = sum(calls_per_lead[o["lead_id"]] for o in won_opps if o["lead_id"] in lead_ids)

    won_leads = [lead for lead in leads if lead["stage"] == LeadStage.CLOSED_WON.value]
    total_mrr = sum(_number(lead["actual_residual"]) for lead in won_leads)
    bad_data = sum(
        1
        for lead in leads
        if lead["phone_valid"] == YesNo.NO.value or lead["email_valid"] == YesNo.NO.value
    )
    converted = sum(
        1 for lead in leads if lead["converted_to_opportunity"] == YesNo.YES.value
    )

    open_opps = [o for o in opportunities if o["stage"] not in _OPEN_EXCLUDED]
    pipeline_value = sum(_number(o["deal_value"]) for o in open_opps)
    forecast = sum(_number(o["deal_value"]) * (o["probability"] or 0) / 100 for o in open_opps)
    total_opps = len(opportunities)
    win_rate = _percent(len(won_opps), total_opps)

    return Metrics(
        total_leads=total_leads,
        total_dials=total_dials,
        connect_rate=_percent(len(dm_calls), total_dials),
        dm_rate=_percent(len(leads_with_dm), total_leads),
        avg_calls_to_reach_dm=_ratio(len(dm_calls), len(leads_with_dm)),
        avg_calls_to_closed_won=_ratio(calls_to_won, len(won_opps)),
        statement_rate=_percent(statements, total_leads),
        quote_rate=_percent(quoted, total_leads),
        close_rate=win_rate,
        end_to_end_conversion=_percent(len(won_opps), total_leads),
        total_mrr=total_mrr,
        avg_residual=_ratio(total_mrr, len(won_leads)),
        bad_data_percent=_percent(bad_data, total_leads),
        total_opportunities=total_opps,
        lead_to_opportunity_rate=_percent(converted, total_leads),
        opportunity_win_rate=win_rate,
        total_pipeline_value=pipeline_value,
        avg_deal_size=_ratio(sum(_number(o["deal_value"]) for o in opportunities), total_opps),
        forecasted_revenue=forecast,
    )


def stage_distribution(store: SqliteStore, actor: Actor) -> dict[str, int]:
    where, params = scope_for(actor)
    rows = store.fetch_all(
        f"SELECT stage, COUNT(*) AS total FROM leads WHERE {where} GROUP BY stage ORDER BY stage",
        params,
    )
    return {row["stage"]: row["total"] for row in rows}


def opportunity_stage_distribution(store: SqliteStore, actor: Actor) -> dict[str, int]:
    where, params = scope_for(actor)
    rows = store.fetch_all(
        f"SELECT stage, COUNT(*) AS total FROM opportunities WHERE {where} "
        "GROUP BY stage ORDER BY stage",
        params,
    )
    return {row["stage"]: row["total"] for row in rows}


def agent_metrics(store: SqliteStore, actor: Actor) -> list[AgentMetrics]:
    require_admin(actor, "view agent metrics")
    results = []
    for user in store.fetch_all("SELECT * FROM users ORDER BY created_at, name"):
        agent = Actor(user_id=user["user_id"], role=Role.USER.value)
        leads = _leads(store, agent)
        calls = _calls_for(store, [lead["lead_id"] for lead in leads])
        total_leads = len(leads)
        total_dials = len(calls)
        dm_reached = sum(1 for c in calls if c["call_outcome"] == CallOutcome.DM_REACHED.value)
        statements = sum(
            1 for c in calls if c["call_outcome"] == CallOutcome.STATEMENT_AGREED.value
        )
        quoted = sum(1 for lead in leads if lead["stage"] in QUOTED_OR_LATER)
        wins = sum(1 for lead in leads if lead["stage"] == LeadStage.CLOSED_WON.value)
        results.append(
            AgentMetrics(
                agent_id=user["user_id"],
                agent_name=user["name"] or user["email"] or "Unknown",
                total_leads=total_leads,
                total_dials=total_dials,
                connect_percent=_percent(dm_reached, total_dials),
                statement_percent=_percent(statements, total_leads),
                quote_percent=_percent(quoted, total_leads),
                close_percent=_percent(wins, total_leads),
                wins=wins,
            )
        )
    return results


def loss_reason_breakdown(
    store: SqliteStore,
    actor: Actor,
    start: datetime | str | None = None,
    end: datetime | str | None = None,
) -> dict[str, int]:
    """Closed-lost opportunities in the caller's scope, counted by reason."""
    where, params = scope_for(actor)
    query = (
        "SELECT loss_reason, COUNT(*) AS total FROM opportunities "
        f"WHERE {where} AND stage = ? AND loss_reason IS NOT NULL"
    )
    params.append(OpportunityStage.CLOSED_LOST.value)
    if start is not None:
        query += " AND created_at >= ?"
        params.append(to_iso(start))
    if end is not None:
        query += " AND created_at <= ?"
        params.append(to_iso(end))
    query += " GROUP BY loss_reason ORDER BY total DESC, loss_reason"
    return {row["loss_reason"] or "Unknown": row["total"] for row in store.fetch_all(query, params)}


def _leads(store: SqliteStore, actor: Actor, start=None, end=None):
    where, params = scope_for(actor)
    query = f"SELECT * FROM leads WHERE {where}"
    if start is not None:
        query += " AND created_at >= ?"
        params.append(to_iso(start))
    if end is not None:
        query += " AND created_at <= ?"
        params.append(to_iso(end))
    return store.fetch_all(query, params)


def _opportunities(store: SqliteStore, actor: Actor):
    where, params = scope_for(actor)
    return store.fetch_all(f"SELECT * FROM opportunities WHERE {where}", params)


def _calls_for(store: SqliteStore, lead_ids: list[str]):
    if not lead_ids:
        return []
    placeholders = ", ".join("?" for _ in lead_ids)
    return store.fetch_all(
        f"SELECT * FROM call_logs WHERE lead_id IN ({placeholders})", lead_ids
    )


def _number(value: str | float | None) -> float:
    if value in (None, ""):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _percent(part: float, whole: float) -> float:
    return (part / whole) * 100 if whole else 0.0


def _ratio(part: float, whole: float) -> float:
    return part / whole if whole else 0.0
