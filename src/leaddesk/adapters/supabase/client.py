from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import requests


@dataclass(frozen=True)
class IdentityUser:
    auth_id: str
    email: str | None
    name: str | None
    metadata: dict[str, Any] = field(default_factory=dict)


class IdentityError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SupabaseClient:
    """Verifies access tokens against Supabase Auth using the service-role key."""

    def __init__(self, url: str, service_key: str, session: requests.Session | None = None) -> None:
        self.url = url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({"apikey": service_key, "Content-Type": "application/json"})

    def get_user(self, token: str) -> IdentityUser:
        if not token:
            raise IdentityError("Missing access token.", status_code=401)
        data = self._request(
            "GET", "/auth/v1/user", headers={"Authorization": f"Bearer {token}"}
        )
        if not data.get("id"):
            raise IdentityError("Identity provider returned no user.", status_code=401)
        metadata = data.get("user_metadata") or {}
        return IdentityUser(
            auth_id=data["id"],
            email=data.get("email"),
            name=metadata.get("full_name") or metadata.get("name"),
            metadata=metadata,
        )

    def _request(self, method: str, path: str, headers: dict[str, str] | None = None):
        url = f"{self.url}{path}"
        try:
            response = self.session.request(method, url, headers=headers, timeout=30)
        except requests.RequestException as exc:
            raise IdentityError(f"Identity provider unreachable: {exc}") from exc
        if response.status_code >= 400:
            raise IdentityError(
                f"Supabase error {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        return response.json()
