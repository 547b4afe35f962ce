from __future__ import annotations

from leaddesk.adapters.supabase.client import IdentityError, SupabaseClient
from leaddesk.domain.models import Actor
from leaddesk.services.events import EventLogger, emit
from leaddesk.services.users import get_user_by_auth_id, upsert_user
from leaddesk.store.sqlite import SqliteStore


def resolve_actor(
    store: SqliteStore,
    client: SupabaseClient,
    token: str,
    owner_auth_id: str | None = None,
    logger: EventLogger | None = None,
) -> Actor:
    """Turn a bearer token into the acting local user.

    The first sign-in of a verified subject provisions its local user row;
    later sign-ins refresh name, email and ``last_signed_in``.
    """
    identity = client.get_user(token)
    existing = get_user_by_auth_id(store, identity.auth_id)
    user = upsert_user(
        store,
        identity.auth_id,
        name=identity.name,
        email=identity.email,
        owner_auth_id=owner_auth_id,
    )
    if existing is None:
        emit(
            logger,
            event_type="user_provisioned",
            entity_type="user",
            entity_id=user.user_id,
            actor_id=user.user_id,
            details={"role": user.role},
        )
    return user.as_actor()


__all__ = ["IdentityError", "resolve_actor"]
