from pathlib import Path

import pytest
from openpyxl import load_workbook

from leaddesk.domain.rules import ForbiddenError
from leaddesk.services import exports, leads, users
from leaddesk.store.sqlite import SqliteStore


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(tmp_path / "test.sqlite")
    schema_path = (
        Path(__file__).resolve().parents[1] / "resources" / "schema" / "canonical.yaml"
    )
    store.apply_schema(schema_path)
    return store


def test_export_excel_has_sheet_per_table(tmp_path: Path) -> None:
    store = _store(tmp_path)
    admin = users.upsert_user(store, "auth-admin", role="admin").as_actor()
    leads.create_lead(store, admin, "Acme Dental", "Jo")
    out_path = tmp_path / "exports" / "crm.xlsx"

    exports.export_excel(store, admin, out_path)

    workbook = load_workbook(out_path)
    assert workbook.sheetnames == exports.TABLES
    sheet = workbook["leads"]
    headers = [cell.value for cell in sheet[1]]
    assert "company_name" in headers
    assert sheet.cell(row=2, column=headers.index("company_name") + 1).value == "Acme Dental"


def test_export_csv_tables(tmp_path: Path) -> None:
    store = _store(tmp_path)
    admin = users.upsert_user(store, "auth-admin", role="admin").as_actor()

    written = exports.export_csv_tables(store, admin, tmp_path / "snap")

    assert {path.name for path in written} == {f"{t}.csv" for t in exports.TABLES}
    todos_header = (tmp_path / "snap" / "todos.csv").read_text(encoding="utf-8").splitlines()[0]
    assert todos_header.startswith("todo_id,owner_id,title")


def test_exports_are_admin_only(tmp_path: Path) -> None:
    store = _store(tmp_path)
    agent = users.upsert_user(store, "auth-agent", role="user").as_actor()
    with pytest.raises(ForbiddenError):
        exports.export_excel(store, agent, tmp_path / "out.xlsx")
