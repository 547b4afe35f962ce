from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

WORKSPACES_DIR = Path("workspaces")
CURRENT_WORKSPACE_FILE = WORKSPACES_DIR / ".current"
WORKSPACE_FILENAME = "workspace.yaml"
SERVICE_KEY_ENV = "SUPABASE_SERVICE_ROLE_KEY"
SUPPORTED_PROVIDERS = ("supabase",)


@dataclass(frozen=True)
class StoreConfig:
    sqlite_path: Path


@dataclass(frozen=True)
class IdentityConfig:
    provider: str
    url: str
    owner_auth_id: str | None

    def service_key(self) -> str:
        key = os.getenv(SERVICE_KEY_ENV)
        if not key:
            raise WorkspaceError(f"{SERVICE_KEY_ENV} is not set.")
        return key


@dataclass(frozen=True)
class WorkspaceConfig:
    name: str
    store: StoreConfig
    identity: IdentityConfig | None
    path: Path


class WorkspaceError(RuntimeError):
    pass


def ensure_workspaces_dir() -> None:
    WORKSPACES_DIR.mkdir(parents=True, exist_ok=True)


def set_current_workspace(name: str) -> None:
    ensure_workspaces_dir()
    CURRENT_WORKSPACE_FILE.write_text(f"{name}\n", encoding="utf-8")


def get_current_workspace_name() -> str:
    if not CURRENT_WORKSPACE_FILE.exists():
        raise WorkspaceError("No active workspace. Run `leaddesk workspace use <name>`.")
    return CURRENT_WORKSPACE_FILE.read_text(encoding="utf-8").strip()


def workspace_path(name: str) -> Path:
    return WORKSPACES_DIR / name


def workspace_config_path(name: str) -> Path:
    return workspace_path(name) / WORKSPACE_FILENAME


def load_workspace(name: str | None = None) -> WorkspaceConfig:
    if name is None:
        name = get_current_workspace_name()
    config_path = workspace_config_path(name)
    if not config_path.exists():
        raise WorkspaceError(f"Workspace config not found: {config_path}")
    data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise WorkspaceError(f"Workspace config must be a mapping: {config_path}")
    store = _parse_store(data.get("store"), config_path)
    identity = _parse_identity(data.get("identity"))
    return WorkspaceConfig(name=name, store=store, identity=identity, path=config_path.parent)


def write_workspace_config(
    name: str, identity_url: str | None = None, owner_auth_id: str | None = None
) -> Path:
    ensure_workspaces_dir()
    ws_dir = workspace_path(name)
    ws_dir.mkdir(parents=True, exist_ok=True)
    config: dict[str, Any] = {
        "workspace": name,
        "store": {"sqlite_path": "./local.sqlite"},
    }
    if identity_url:
        config["identity"] = {
            "provider": "supabase",
            "url": identity_url,
            "owner_auth_id": owner_auth_id,
        }
    config_path = workspace_config_path(name)
    config_path.write_text(yaml.safe_dump(config, sort_keys=False), encoding="utf-8")
    return config_path


def _parse_store(store_data: Any, config_path: Path) -> StoreConfig:
    if not isinstance(store_data, dict):
        raise WorkspaceError("Invalid workspace store configuration.")
    sqlite_path_raw = store_data.get("sqlite_path")
    if not sqlite_path_raw:
        raise WorkspaceError("Workspace store.sqlite_path is required.")
    if not isinstance(sqlite_path_raw, str):
        raise WorkspaceError("Workspace store.sqlite_path must be a string.")
    return StoreConfig(sqlite_path=_resolve_sqlite_path(sqlite_path_raw, config_path))


def _resolve_sqlite_path(sqlite_path_raw: str, config_path: Path) -> Path:
    raw_path = Path(sqlite_path_raw)
    if raw_path.is_absolute():
        return raw_path
    # Relative paths are relative to the workspace directory.
    return (config_path.parent / raw_path).resolve()


def _parse_identity(identity_data: Any) -> IdentityConfig | None:
    if identity_data is None:
        return None
    if not isinstance(identity_data, dict):
        raise WorkspaceError("Invalid workspace identity configuration.")
    provider = identity_data.get("provider") or "supabase"
    if provider not in SUPPORTED_PROVIDERS:
        raise WorkspaceError(f"Unsupported identity provider: {provider}")
    url = identity_data.get("url")
    if not url or not isinstance(url, str):
        raise WorkspaceError("Workspace identity.url is required.")
    owner = identity_data.get("owner_auth_id")
    return IdentityConfig(provider=provider, url=url, owner_auth_id=owner or None)
