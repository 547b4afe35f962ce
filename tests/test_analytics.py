from pathlib import Path

import pytest

from leaddesk.domain.rules import ForbiddenError
from leaddesk.services import analytics, calls, conversion, leads, opportunities, users
from leaddesk.store.sqlite import SqliteStore


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(tmp_path / "test.sqlite")
    schema_path = (
        Path(__file__).resolve().parents[1] / "resources" / "schema" / "canonical.yaml"
    )
    store.apply_schema(schema_path)
    return store


def test_metrics_for_one_agent(tmp_path: Path) -> None:
    store = _store(tmp_path)
    agent = users.upsert_user(store, "auth-agent", name="Sam", role="user").as_actor()
    engaged = leads.create_lead(store, agent, "Acme Dental", "Jo")
    cold = leads.create_lead(store, agent, "Birch Bakery", "Kim")
    calls.log_call(store, agent, engaged, "No Answer")
    calls.log_call(store, agent, engaged, "DM Reached")
    calls.log_call(store, agent, cold, "No Answer")
    calls.log_call(store, agent, cold, "No Answer")
    conversion.convert_lead(store, agent, engaged, deal_value="1000", probability=40)

    result = analytics.metrics(store, agent)

    assert result.total_leads == 2
    assert result.total_dials == 4
    assert result.connect_rate == pytest.approx(25.0)
    assert result.dm_rate == pytest.approx(50.0)
    assert result.lead_to_opportunity_rate == pytest.approx(50.0)
    assert result.total_opportunities == 1
    assert result.total_pipeline_value == pytest.approx(1000.0)
    assert result.forecasted_revenue == pytest.approx(400.0)
    assert result.avg_deal_size == pytest.approx(1000.0)
    assert result.opportunity_win_rate == 0.0


def test_metrics_on_empty_store(tmp_path: Path) -> None:
    store = _store(tmp_path)
    agent = users.upsert_user(store, "auth-agent", role="user").as_actor()
    result = analytics.metrics(store, agent)
    assert result.total_leads == 0
    assert result.connect_rate == 0.0
    assert result.avg_deal_size == 0.0


def test_admin_can_narrow_to_agent(tmp_path: Path) -> None:
    store = _store(tmp_path)
    admin = users.upsert_user(store, "auth-admin", role="admin").as_actor()
    agent = users.upsert_user(store, "auth-agent", role="user").as_actor()
    leads.create_lead(store, agent, "Acme Dental", "Jo")
    leads.create_lead(store, admin, "Birch Bakery", "Kim")

    assert analytics.metrics(store, admin).total_leads == 2
    assert analytics.metrics(store, admin, agent_id=agent.user_id).total_leads == 1
    assert analytics.metrics(store, agent, agent_id=admin.user_id).total_leads == 1


def test_stage_distributions(tmp_path: Path) -> None:
    store = _store(tmp_path)
    agent = users.upsert_user(store, "auth-agent", role="user").as_actor()
    first = leads.create_lead(store, agent, "Acme Dental", "Jo")
    leads.create_lead(store, agent, "Birch Bakery", "Kim")
    calls.log_call(store, agent, first, "Email Requested")
    conversion.convert_lead(store, agent, first)

    assert analytics.stage_distribution(store, agent) == {"email_sent": 1, "new": 1}
    assert analytics.opportunity_stage_distribution(store, agent) == {"qualified": 1}


def test_agent_metrics_admin_only(tmp_path: Path) -> None:
    store = _store(tmp_path)
    admin = users.upsert_user(store, "auth-admin", name="Ada", role="admin").as_actor()
    agent = users.upsert_user(store, "auth-agent", name="Sam", role="user").as_actor()
    lead_id = leads.create_lead(store, agent, "Acme Dental", "Jo")
    calls.log_call(store, agent, lead_id, "DM Reached")
    leads.update_lead(store, agent, lead_id, stage="closed_won")

    with pytest.raises(ForbiddenError):
        analytics.agent_metrics(store, agent)

    rows = {row.agent_name: row for row in analytics.agent_metrics(store, admin)}
    assert rows["Sam"].total_dials == 1
    assert rows["Sam"].wins == 1
    assert rows["Sam"].connect_percent == pytest.approx(100.0)
    assert rows["Ada"].total_leads == 0


def test_loss_reason_breakdown(tmp_path: Path) -> None:
    store = _store(tmp_path)
    agent = users.upsert_user(store, "auth-agent", role="user").as_actor()
    for company, reason in [("A", "Price"), ("B", "Price"), ("C", "Timing")]:
        lead_id = leads.create_lead(store, agent, company, "Jo")
        opportunity_id = conversion.convert_lead(store, agent, lead_id)
        opportunities.update_opportunity(
            store, agent, opportunity_id, stage="closed_lost", loss_reason=reason
        )

    assert analytics.loss_reason_breakdown(store, agent) == {"Price": 2, "Timing": 1}


def test_loss_reason_breakdown_follows_visibility(tmp_path: Path) -> None:
    store = _store(tmp_path)
    admin = users.upsert_user(store, "auth-admin", role="admin").as_actor()
    agent = users.upsert_user(store, "auth-agent", role="user").as_actor()
    other = users.upsert_user(store, "auth-other", role="user").as_actor()
    for owner, company, reason in [(agent, "A", "Price"), (other, "B", "Timing")]:
        lead_id = leads.create_lead(store, owner, company, "Jo")
        opportunity_id = conversion.convert_lead(store, owner, lead_id)
        opportunities.update_opportunity(
            store, owner, opportunity_id, stage="closed_lost", loss_reason=reason
        )

    assert analytics.loss_reason_breakdown(store, admin) == {"Price": 1, "Timing": 1}
    assert analytics.loss_reason_breakdown(store, agent) == {"Price": 1}
