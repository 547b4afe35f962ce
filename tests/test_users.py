from pathlib import Path

import pytest

from leaddesk.domain.rules import ForbiddenError, NotFoundError, ValidationError
from leaddesk.services import users
from leaddesk.store.sqlite import SqliteStore


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(tmp_path / "test.sqlite")
    schema_path = (
        Path(__file__).resolve().parents[1] / "resources" / "schema" / "canonical.yaml"
    )
    store.apply_schema(schema_path)
    return store


def test_owner_is_promoted_to_admin(tmp_path: Path) -> None:
    store = _store(tmp_path)
    owner = users.upsert_user(store, "auth-owner", name="Olive", owner_auth_id="auth-owner")
    agent = users.upsert_user(store, "auth-agent", name="Sam", owner_auth_id="auth-owner")

    assert owner.role == "admin"
    assert agent.role == "user"


def test_upsert_refreshes_profile_and_keeps_role(tmp_path: Path) -> None:
    store = _store(tmp_path)
    first = users.upsert_user(store, "auth-agent", name="Sam", role="admin")
    second = users.upsert_user(store, "auth-agent", name="Samantha", email="sam@example.com")

    assert second.user_id == first.user_id
    assert second.name == "Samantha"
    assert second.role == "admin"
    assert users.get_user_by_auth_id(store, "auth-agent").email == "sam@example.com"
    assert users.get_user_by_auth_id(store, "auth-missing") is None


def test_update_role_rules(tmp_path: Path) -> None:
    store = _store(tmp_path)
    admin = users.upsert_user(store, "auth-admin", role="admin").as_actor()
    agent = users.upsert_user(store, "auth-agent", role="user").as_actor()

    with pytest.raises(ForbiddenError):
        users.update_role(store, agent, admin.user_id, "user")
    with pytest.raises(ValidationError):
        users.update_role(store, admin, admin.user_id, "user")
    with pytest.raises(NotFoundError):
        users.update_role(store, admin, "missing", "admin")

    users.update_role(store, admin, agent.user_id, "admin")
    assert users.get_user(store, agent.user_id).role == "admin"


def test_list_users_is_admin_only(tmp_path: Path) -> None:
    store = _store(tmp_path)
    admin = users.upsert_user(store, "auth-admin", role="admin").as_actor()
    agent = users.upsert_user(store, "auth-agent", role="user").as_actor()

    assert len(users.list_users(store, admin)) == 2
    with pytest.raises(ForbiddenError):
        users.list_users(store, agent)
