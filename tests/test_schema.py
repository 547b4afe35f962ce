import sqlite3
from pathlib import Path

import pytest

from leaddesk.store.migrations import SchemaError, load_schema
from leaddesk.store.sqlite import SqliteStore

SCHEMA_PATH = Path(__file__).resolve().parents[1] / "resources" / "schema" / "canonical.yaml"


def test_apply_schema_creates_tables(tmp_path: Path) -> None:
    store = SqliteStore(tmp_path / "test.sqlite")
    store.apply_schema(SCHEMA_PATH)

    rows = store.fetch_all("SELECT name FROM sqlite_master WHERE type='table'")
    names = {row["name"] for row in rows}
    assert {
        "users",
        "leads",
        "opportunities",
        "call_logs",
        "notes",
        "todos",
        "audit_logs",
    } <= names


def test_apply_schema_is_idempotent(tmp_path: Path) -> None:
    store = SqliteStore(tmp_path / "test.sqlite")
    store.apply_schema(SCHEMA_PATH)
    store.apply_schema(SCHEMA_PATH)
    row = store.fetch_one("SELECT version FROM __schema_meta")
    assert row["version"] == 1


def test_enum_columns_reject_unknown_values(tmp_path: Path) -> None:
    store = SqliteStore(tmp_path / "test.sqlite")
    store.apply_schema(SCHEMA_PATH)
    store.execute(
        "INSERT INTO users (user_id, role, created_at, updated_at) VALUES (?, ?, ?, ?)",
        ("u-1", "user", "2026-01-01T00:00:00+00:00", "2026-01-01T00:00:00+00:00"),
    )
    with pytest.raises(sqlite3.IntegrityError):
        store.execute(
            "INSERT INTO leads (lead_id, company_name, contact_name, owner_id, stage, "
            "created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?)",
            ("l-1", "Acme", "Jo", "u-1", "warm", "2026-01-01T00:00:00+00:00", "2026-01-01T00:00:00+00:00"),
        )


def test_lead_defaults(tmp_path: Path) -> None:
    store = SqliteStore(tmp_path / "test.sqlite")
    store.apply_schema(SCHEMA_PATH)
    store.execute(
        "INSERT INTO users (user_id, created_at, updated_at) VALUES (?, ?, ?)",
        ("u-1", "2026-01-01T00:00:00+00:00", "2026-01-01T00:00:00+00:00"),
    )
    store.execute(
        "INSERT INTO leads (lead_id, company_name, contact_name, owner_id, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?)",
        ("l-1", "Acme", "Jo", "u-1", "2026-01-01T00:00:00+00:00", "2026-01-01T00:00:00+00:00"),
    )
    row = store.fetch_one("SELECT * FROM leads WHERE lead_id = 'l-1'")
    assert row["stage"] == "new"
    assert row["dial_attempts"] == 0
    assert row["converted_to_opportunity"] == "No"
    user = store.fetch_one("SELECT role FROM users WHERE user_id = 'u-1'")
    assert user["role"] == "user"


def test_unknown_enum_reference_is_rejected(tmp_path: Path) -> None:
    schema_path = tmp_path / "bad.yaml"
    schema_path.write_text(
        "version: 1\nenums: {}\ntables:\n  things:\n    primary_key: id\n    fields:\n"
        "      id: {type: uuid, required: true}\n      kind: {type: enum, enum: missing}\n",
        encoding="utf-8",
    )
    store = SqliteStore(tmp_path / "test.sqlite")
    with pytest.raises(SchemaError):
        store.apply_schema(schema_path)


def test_load_schema_reads_enums() -> None:
    schema = load_schema(SCHEMA_PATH)
    assert "Statement Agreed" in schema.enums["call_outcome"]
    assert schema.enums["yes_no"] == ["Yes", "No"]
