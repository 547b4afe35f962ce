"""Visibility policy shared by every query.

Admins see every row; everyone else sees the rows they own. Rows outside the
caller's scope are reported exactly like missing rows.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from typing import Any, Protocol

from leaddesk.domain.models import Actor
from leaddesk.domain.rules import ForbiddenError, NotFoundError


class _Reader(Protocol):
    def fetch_one(self, query: str, params: Iterable[Any] | None = None): ...


def scope_for(actor: Actor, owner_column: str = "owner_id") -> tuple[str, list[Any]]:
    if actor.is_admin:
        return "1 = 1", []
    return f"{owner_column} = ?", [actor.user_id]


def require_admin(actor: Actor, action: str) -> None:
    if not actor.is_admin:
        raise ForbiddenError(f"Only admins can {action}.")


def visible_lead(reader: _Reader, actor: Actor, lead_id: str) -> sqlite3.Row:
    where, params = scope_for(actor)
    row = reader.fetch_one(
        f"SELECT * FROM leads WHERE lead_id = ? AND {where}", [lead_id, *params]
    )
    if row is None:
        raise NotFoundError("Lead not found or access denied.")
    return row


def visible_opportunity(reader: _Reader, actor: Actor, opportunity_id: str) -> sqlite3.Row:
    where, params = scope_for(actor)
    row = reader.fetch_one(
        f"SELECT * FROM opportunities WHERE opportunity_id = ? AND {where}",
        [opportunity_id, *params],
    )
    if row is None:
        raise NotFoundError("Opportunity not found or access denied.")
    return row
