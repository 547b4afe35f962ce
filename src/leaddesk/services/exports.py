from __future__ import annotations

import csv
from collections.abc import Iterable
from pathlib import Path

from openpyxl import Workbook

from leaddesk.domain.models import Actor
from leaddesk.services.access import require_admin
from leaddesk.store.sqlite import SqliteStore

TABLES = [
    "users",
    "leads",
    "opportunities",
    "call_logs",
    "notes",
    "todos",
    "audit_logs",
]


def export_excel(store: SqliteStore, actor: Actor, out_path: Path) -> list[str]:
    """Dump every table to one sheet each, unformatted."""
    require_admin(actor, "export data")
    out_path.parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    wb.remove(wb.active)

    for table in TABLES:
        ws = wb.create_sheet(title=table)
        _write_rows(ws.append, store.fetch_all(f"SELECT * FROM {table} ORDER BY rowid"))

    wb.save(out_path)
    return list(TABLES)


def export_csv_tables(store: SqliteStore, actor: Actor, out_dir: Path) -> list[Path]:
    require_admin(actor, "export data")
    out_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for table in TABLES:
        csv_path = out_dir / f"{table}.csv"
        with csv_path.open("w", newline="", encoding="utf-8") as handle:
            writer = csv.writer(handle)
            rows = store.fetch_all(f"SELECT * FROM {table} ORDER BY rowid")
            if not rows:
                writer.writerow(_columns(store, table))
            _write_rows(writer.writerow, rows)
        written.append(csv_path)
    return written


def _columns(store: SqliteStore, table: str) -> list[str]:
    return [row["name"] for row in store.fetch_all(f"PRAGMA table_info({table})")]


def _write_rows(append, rows: Iterable) -> None:
    rows = list(rows)
    if not rows:
        return
    headers = list(rows[0].keys())
    append(headers)
    for row in rows:
        append([row[h] for h in headers])
