from pathlib import Path

import pytest

from leaddesk.domain.models import Actor
from leaddesk.domain.rules import ConflictError, ValidationError
from leaddesk.services import calls, conversion, leads, notes, users
from leaddesk.store.sqlite import SqliteStore


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(tmp_path / "test.sqlite")
    schema_path = (
        Path(__file__).resolve().parents[1] / "resources" / "schema" / "canonical.yaml"
    )
    store.apply_schema(schema_path)
    return store


def _agent(store: SqliteStore) -> Actor:
    return users.upsert_user(store, "auth-agent", name="Sam Agent", role="user").as_actor()


def test_convert_creates_qualified_opportunity(tmp_path: Path) -> None:
    store = _store(tmp_path)
    agent = _agent(store)
    lead_id = leads.create_lead(
        store, agent, "Acme Dental", "Jo", phone="555-0100", email="jo@acme.test"
    )
    calls.log_call(store, agent, lead_id, "DM Reached")
    notes.add_lead_note(store, agent, lead_id, "Uses legacy terminal")

    opportunity_id = conversion.convert_lead(
        store, agent, lead_id, deal_value="12000", expected_close_date="2026-06-30"
    )

    opp = store.fetch_one(
        "SELECT * FROM opportunities WHERE opportunity_id = ?", (opportunity_id,)
    )
    assert opp["stage"] == "qualified"
    assert opp["name"] == "Acme Dental - Deal"
    assert opp["probability"] == 50
    assert opp["owner_id"] == agent.user_id
    assert opp["phone"] == "555-0100"
    assert opp["lead_id"] == lead_id
    assert opp["expected_close_date"] == "2026-06-30T00:00:00+00:00"

    lead = leads.get_lead(store, agent, lead_id)
    assert lead.converted_to_opportunity == "Yes"
    assert lead.opportunity_id == opportunity_id
    assert lead.conversion_date is not None
    assert lead.stage == "dm_engaged"

    assert len(calls.list_calls_for_lead(store, agent, lead_id)) == 1
    assert [n.content for n in notes.list_lead_notes(store, agent, lead_id)] == [
        "Uses legacy terminal"
    ]
    assert len(notes.list_opportunity_notes(store, agent, opportunity_id)) == 1


def test_lead_converts_only_once(tmp_path: Path) -> None:
    store = _store(tmp_path)
    agent = _agent(store)
    lead_id = leads.create_lead(store, agent, "Acme Dental", "Jo")
    conversion.convert_lead(store, agent, lead_id, name="Acme merchant services")

    with pytest.raises(ConflictError):
        conversion.convert_lead(store, agent, lead_id)

    rows = store.fetch_all("SELECT name FROM opportunities")
    assert [row["name"] for row in rows] == ["Acme merchant services"]


def test_converted_leads_hidden_by_default(tmp_path: Path) -> None:
    store = _store(tmp_path)
    agent = _agent(store)
    converted = leads.create_lead(store, agent, "Acme Dental", "Jo")
    open_lead = leads.create_lead(store, agent, "Birch Bakery", "Kim")
    conversion.convert_lead(store, agent, converted)

    assert [lead.lead_id for lead in leads.list_leads(store, agent)] == [open_lead]
    everything = leads.list_leads(store, agent, hide_converted=False)
    assert {lead.lead_id for lead in everything} == {converted, open_lead}


def test_probability_must_be_a_percentage(tmp_path: Path) -> None:
    store = _store(tmp_path)
    agent = _agent(store)
    lead_id = leads.create_lead(store, agent, "Acme Dental", "Jo")

    with pytest.raises(ValidationError):
        conversion.convert_lead(store, agent, lead_id, probability=150)
    assert store.fetch_all("SELECT * FROM opportunities") == []
