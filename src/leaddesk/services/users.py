from __future__ import annotations

from uuid import uuid4

from leaddesk.domain import rules
from leaddesk.domain.models import Actor, User
from leaddesk.domain.rules import NotFoundError, ValidationError
from leaddesk.domain.stages import Role
from leaddesk.services.access import require_admin
from leaddesk.services.events import EventLogger, emit
from leaddesk.services.utils import utc_now_iso
from leaddesk.store.sqlite import SqliteStore


def upsert_user(
    store: SqliteStore,
    auth_id: str,
    name: str | None = None,
    email: str | None = None,
    role: str | None = None,
    owner_auth_id: str | None = None,
) -> User:
    """Create or refresh the local user linked to an identity-provider subject.

    The configured owner is always promoted to admin.
    """
    rules.require(auth_id, "auth_id")
    if role is None and owner_auth_id and auth_id == owner_auth_id:
        role = Role.ADMIN.value
    rules.validate_enum(role, [r.value for r in Role], "role")

    now = utc_now_iso()
    with store.session() as session:
        row = session.fetch_one("SELECT * FROM users WHERE auth_id = ?", (auth_id,))
        if row is None:
            user_id = str(uuid4())
            session.execute(
                "INSERT INTO users (user_id, auth_id, name, email, role, created_at, updated_at, "
                "last_signed_in) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (user_id, auth_id, name, email, role or Role.USER.value, now, now, now),
            )
        else:
            user_id = row["user_id"]
            session.execute(
                "UPDATE users SET name = COALESCE(?, name), email = COALESCE(?, email), "
                "role = COALESCE(?, role), last_signed_in = ?, updated_at = ? WHERE user_id = ?",
                (name, email, role, now, now, user_id),
            )
        return User.from_row(
            session.fetch_one("SELECT * FROM users WHERE user_id = ?", (user_id,))
        )


def get_user(store: SqliteStore, user_id: str) -> User:
    row = store.fetch_one("SELECT * FROM users WHERE user_id = ?", (user_id,))
    if row is None:
        raise NotFoundError("User not found.")
    return User.from_row(row)


def get_user_by_auth_id(store: SqliteStore, auth_id: str) -> User | None:
    row = store.fetch_one("SELECT * FROM users WHERE auth_id = ?", (auth_id,))
    return User.from_row(row) if row else None


def list_users(store: SqliteStore, actor: Actor) -> list[User]:
    require_admin(actor, "list users")
    rows = store.fetch_all("SELECT * FROM users ORDER BY created_at, name")
    return [User.from_row(row) for row in rows]


def update_role(
    store: SqliteStore,
    actor: Actor,
    user_id: str,
    role: str,
    logger: EventLogger | None = None,
) -> None:
    require_admin(actor, "update roles")
    rules.validate_enum(role, [r.value for r in Role], "role")
    if actor.user_id == user_id:
        raise ValidationError("Cannot change your own role.")
    updated = store.execute(
        "UPDATE users SET role = ?, updated_at = ? WHERE user_id = ?",
        (role, utc_now_iso(), user_id),
    )
    if not updated:
        raise NotFoundError("User not found.")
    emit(
        logger,
        event_type="role_changed",
        entity_type="user",
        entity_id=user_id,
        actor_id=actor.user_id,
        details={"role": role},
    )
