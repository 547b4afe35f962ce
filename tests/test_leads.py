import json
from pathlib import Path

import pytest

from leaddesk.domain.models import Actor
from leaddesk.domain.rules import ForbiddenError, NotFoundError, ValidationError
from leaddesk.services import audit, conversion, leads, users
from leaddesk.store.sqlite import SqliteStore


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(tmp_path / "test.sqlite")
    schema_path = (
        Path(__file__).resolve().parents[1] / "resources" / "schema" / "canonical.yaml"
    )
    store.apply_schema(schema_path)
    return store


def _people(store: SqliteStore) -> tuple[Actor, Actor, Actor]:
    admin = users.upsert_user(store, "auth-admin", name="Ada", role="admin").as_actor()
    agent = users.upsert_user(store, "auth-agent", name="Sam", role="user").as_actor()
    other = users.upsert_user(store, "auth-other", name="Lee", role="user").as_actor()
    return admin, agent, other


def test_create_and_get_lead(tmp_path: Path) -> None:
    store = _store(tmp_path)
    _, agent, _ = _people(store)
    lead_id = leads.create_lead(
        store,
        agent,
        "Acme Dental",
        "Jo",
        phone="555-0100",
        data_source="expo",
        next_follow_up_date="2026-04-01T10:00:00",
    )

    lead = leads.get_lead(store, agent, lead_id)
    assert lead.company_name == "Acme Dental"
    assert lead.owner_id == agent.user_id
    assert lead.stage == "new"
    assert lead.next_follow_up_date == "2026-04-01T10:00:00+00:00"


def test_create_lead_requires_names(tmp_path: Path) -> None:
    store = _store(tmp_path)
    _, agent, _ = _people(store)
    with pytest.raises(ValidationError):
        leads.create_lead(store, agent, "  ", "Jo")
    with pytest.raises(ValidationError):
        leads.create_lead(store, agent, "Acme", "Jo", favourite_colour="blue")


def test_only_admins_create_for_others(tmp_path: Path) -> None:
    store = _store(tmp_path)
    admin, agent, other = _people(store)

    with pytest.raises(ForbiddenError):
        leads.create_lead(store, agent, "Acme Dental", "Jo", owner_id=other.user_id)

    lead_id = leads.create_lead(store, admin, "Acme Dental", "Jo", owner_id=other.user_id)
    assert leads.get_lead(store, other, lead_id).owner_id == other.user_id


def test_visibility_is_owner_scoped(tmp_path: Path) -> None:
    store = _store(tmp_path)
    admin, agent, other = _people(store)
    lead_id = leads.create_lead(store, agent, "Acme Dental", "Jo")
    leads.create_lead(store, other, "Birch Bakery", "Kim")

    with pytest.raises(NotFoundError):
        leads.get_lead(store, other, lead_id)
    with pytest.raises(NotFoundError):
        leads.update_lead(store, other, lead_id, stage="quoted")

    assert [lead.company_name for lead in leads.list_leads(store, agent)] == ["Acme Dental"]
    assert len(leads.list_leads(store, admin)) == 2


def test_manual_stage_override_allows_reversal(tmp_path: Path) -> None:
    store = _store(tmp_path)
    _, agent, _ = _people(store)
    lead_id = leads.create_lead(store, agent, "Acme Dental", "Jo")

    leads.update_lead(store, agent, lead_id, stage="closed_lost")
    lead = leads.update_lead(store, agent, lead_id, stage="new", phone_valid="Yes")
    assert lead.stage == "new"
    assert lead.phone_valid == "Yes"
    assert [lead.lead_id for lead in leads.list_leads_by_stage(store, agent, "new")] == [lead_id]

    with pytest.raises(ValidationError):
        leads.update_lead(store, agent, lead_id, stage="warm")
    with pytest.raises(ValidationError):
        leads.update_lead(store, agent, lead_id, dial_attempts=0)


def test_bulk_import_reports_bad_rows(tmp_path: Path) -> None:
    store = _store(tmp_path)
    _, agent, _ = _people(store)

    report = leads.bulk_import(
        store,
        agent,
        [
            {"company_name": "Acme Dental", "contact_name": "Jo", "phone": "555-0100"},
            {"company_name": "", "contact_name": "Kim"},
            {"company_name": "Birch Bakery", "contact_name": "Lee"},
        ],
    )

    assert report.total == 3
    assert report.success == 2
    assert report.failed == 1
    assert report.errors[0].startswith("Failed to import <blank>")
    assert len(leads.list_leads(store, agent)) == 2


def test_bulk_import_reports_non_text_names(tmp_path: Path) -> None:
    store = _store(tmp_path)
    _, agent, _ = _people(store)

    report = leads.bulk_import(
        store,
        agent,
        [
            {"company_name": "Acme Dental", "contact_name": "Jo"},
            {"company_name": "Birch Bakery", "contact_name": 42},
            {"company_name": "Cedar Clinic", "contact_name": "Kim"},
        ],
    )

    assert (report.success, report.failed) == (2, 1)
    assert report.errors[0].startswith("Failed to import Birch Bakery")
    names = {lead.company_name for lead in leads.list_leads(store, agent)}
    assert names == {"Acme Dental", "Cedar Clinic"}


def test_bulk_assign_is_admin_only(tmp_path: Path) -> None:
    store = _store(tmp_path)
    admin, agent, other = _people(store)
    lead_id = leads.create_lead(store, agent, "Acme Dental", "Jo")

    with pytest.raises(ForbiddenError):
        leads.bulk_assign(store, agent, [lead_id], other.user_id)

    report = leads.bulk_assign(store, admin, [lead_id, "missing"], other.user_id)
    assert report.success == 1
    assert report.failed == 1
    assert leads.get_lead(store, other, lead_id).owner_id == other.user_id


def test_delete_lead_is_audited(tmp_path: Path) -> None:
    store = _store(tmp_path)
    admin, agent, _ = _people(store)
    lead_id = leads.create_lead(store, agent, "Acme Dental", "Jo", phone="555-0100")
    opportunity_id = conversion.convert_lead(store, agent, lead_id)

    leads.delete_lead(store, agent, lead_id)

    with pytest.raises(NotFoundError):
        leads.get_lead(store, agent, lead_id)
    opp = store.fetch_one(
        "SELECT lead_id FROM opportunities WHERE opportunity_id = ?", (opportunity_id,)
    )
    assert opp["lead_id"] is None

    entries = audit.list_audit_logs(store, admin)
    assert len(entries) == 1
    assert entries[0].entity_type == "lead"
    assert entries[0].entity_name == "Acme Dental"
    assert entries[0].deleted_by == agent.user_id
    assert json.loads(entries[0].additional_info)["phone"] == "555-0100"

    with pytest.raises(ForbiddenError):
        audit.list_audit_logs(store, agent)


def test_bulk_delete_audits_each_lead(tmp_path: Path) -> None:
    store = _store(tmp_path)
    admin, agent, _ = _people(store)
    first = leads.create_lead(store, agent, "Acme Dental", "Jo")
    second = leads.create_lead(store, agent, "Birch Bakery", "Kim")

    report = leads.bulk_delete(store, agent, [first, second, "missing"])

    assert (report.success, report.failed, report.total) == (2, 1, 3)
    assert len(audit.list_audit_logs(store, admin)) == 2
