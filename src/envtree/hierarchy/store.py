"""SQLite-backed storage for the ecosystem/domain/app/workspace hierarchy.

Each public method opens its own connection, performs one independent read
or write and closes it again; no transaction spans multiple calls.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from envtree.config import CredentialConfig, CredentialSource
from envtree.hierarchy.models import (
    App,
    Domain,
    Ecosystem,
    Entity,
    HierarchyLevel,
    SelectionContext,
    Workspace,
)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS ecosystems (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        description TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS domains (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        ecosystem_id INTEGER NOT NULL REFERENCES ecosystems(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        description TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (ecosystem_id, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS apps (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        domain_id INTEGER NOT NULL REFERENCES domains(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        path TEXT NOT NULL,
        language TEXT,
        description TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (domain_id, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS workspaces (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        app_id INTEGER NOT NULL REFERENCES apps(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        image_name TEXT NOT NULL DEFAULT '',
        status TEXT NOT NULL DEFAULT 'stopped',
        container_id TEXT,
        description TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE (app_id, name)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_workspaces_name ON workspaces(name)",
    "CREATE INDEX IF NOT EXISTS idx_apps_name ON apps(name)",
    """
    CREATE TABLE IF NOT EXISTS scoped_overrides (
        scope_type TEXT NOT NULL CHECK (scope_type IN ('ecosystem', 'domain', 'app', 'workspace')),
        scope_id INTEGER NOT NULL,
        key TEXT NOT NULL,
        value TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (scope_type, scope_id, key)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS credentials (
        scope_type TEXT NOT NULL CHECK (scope_type IN ('ecosystem', 'domain', 'app', 'workspace')),
        scope_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        source TEXT NOT NULL CHECK (source IN ('value', 'env', 'keychain')),
        service TEXT,
        env_var TEXT,
        value TEXT,
        description TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        PRIMARY KEY (scope_type, scope_id, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS active_context (
        id INTEGER PRIMARY KEY CHECK (id = 1),
        ecosystem_id INTEGER,
        domain_id INTEGER,
        app_id INTEGER,
        workspace_id INTEGER,
        updated_at TEXT
    )
    """,
    "INSERT OR IGNORE INTO active_context (id) VALUES (1)",
)

_TABLES = {
    HierarchyLevel.ECOSYSTEM: "ecosystems",
    HierarchyLevel.DOMAIN: "domains",
    HierarchyLevel.APP: "apps",
    HierarchyLevel.WORKSPACE: "workspaces",
}

_PARENT_COLUMNS = {
    HierarchyLevel.DOMAIN: "ecosystem_id",
    HierarchyLevel.APP: "domain_id",
    HierarchyLevel.WORKSPACE: "app_id",
}


class StoreError(RuntimeError):
    """Raised when the hierarchy store cannot complete an operation."""


class DuplicateEntityError(StoreError):
    """Raised when a sibling with the same name already exists."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _scope_type(level: HierarchyLevel) -> str:
    if not level.is_entity_level:
        raise ValueError(f"{level.value} is not a hierarchy entity level")
    return level.value


def _row_to_entity(level: HierarchyLevel, row: sqlite3.Row) -> Entity:
    created_at = _parse_datetime(row["created_at"])
    updated_at = _parse_datetime(row["updated_at"])
    if level is HierarchyLevel.ECOSYSTEM:
        return Ecosystem(
            id=int(row["id"]),
            name=str(row["name"]),
            description=row["description"],
            created_at=created_at,
            updated_at=updated_at,
        )
    if level is HierarchyLevel.DOMAIN:
        return Domain(
            id=int(row["id"]),
            ecosystem_id=int(row["ecosystem_id"]),
            name=str(row["name"]),
            description=row["description"],
            created_at=created_at,
            updated_at=updated_at,
        )
    if level is HierarchyLevel.APP:
        return App(
            id=int(row["id"]),
            domain_id=int(row["domain_id"]),
            name=str(row["name"]),
            path=str(row["path"]),
            language=row["language"],
            description=row["description"],
            created_at=created_at,
            updated_at=updated_at,
        )
    return Workspace(
        id=int(row["id"]),
        app_id=int(row["app_id"]),
        name=str(row["name"]),
        image_name=str(row["image_name"] or ""),
        status=str(row["status"] or "stopped"),
        container_id=row["container_id"],
        description=row["description"],
        created_at=created_at,
        updated_at=updated_at,
    )


def _row_to_credential(row: sqlite3.Row) -> CredentialConfig:
    return CredentialConfig(
        source=CredentialSource(str(row["source"])),
        value=row["value"],
        env_var=row["env_var"],
        service=row["service"],
        description=row["description"],
    )


class HierarchyStore:
    """SQLite-backed hierarchy, override, credential and context store."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            raise StoreError(f"Cannot open hierarchy database {self.db_path}: {exc}") from exc
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            message = str(exc)
            if "UNIQUE" in message:
                raise DuplicateEntityError(message) from exc
            raise StoreError(message) from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreError(f"Hierarchy database error: {exc}") from exc
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._session() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)

    # ------------------------------------------------------------------
    # Entity creation
    # ------------------------------------------------------------------

    def create_ecosystem(self, name: str, description: str | None = None) -> Ecosystem:
        now = _now()
        with self._session() as conn:
            cursor = conn.execute(
                "INSERT INTO ecosystems(name, description, created_at, updated_at) VALUES(?, ?, ?, ?)",
                (name, description, now, now),
            )
            entity_id = int(cursor.lastrowid)
        return self._require(HierarchyLevel.ECOSYSTEM, entity_id)  # type: ignore[return-value]

    def create_domain(self, ecosystem_id: int, name: str, description: str | None = None) -> Domain:
        now = _now()
        with self._session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO domains(ecosystem_id, name, description, created_at, updated_at)
                VALUES(?, ?, ?, ?, ?)
                """,
                (ecosystem_id, name, description, now, now),
            )
            entity_id = int(cursor.lastrowid)
        return self._require(HierarchyLevel.DOMAIN, entity_id)  # type: ignore[return-value]

    def create_app(
        self,
        domain_id: int,
        name: str,
        path: str,
        *,
        language: str | None = None,
        description: str | None = None,
    ) -> App:
        now = _now()
        with self._session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO apps(domain_id, name, path, language, description, created_at, updated_at)
                VALUES(?, ?, ?, ?, ?, ?, ?)
                """,
                (domain_id, name, path, language, description, now, now),
            )
            entity_id = int(cursor.lastrowid)
        return self._require(HierarchyLevel.APP, entity_id)  # type: ignore[return-value]

    def create_workspace(
        self,
        app_id: int,
        name: str,
        *,
        image_name: str = "",
        status: str = "stopped",
        description: str | None = None,
    ) -> Workspace:
        now = _now()
        with self._session() as conn:
            cursor = conn.execute(
                """
                INSERT INTO workspaces(app_id, name, image_name, status, description, created_at, updated_at)
                VALUES(?, ?, ?, ?, ?, ?, ?)
                """,
                (app_id, name, image_name, status, description, now, now),
            )
            entity_id = int(cursor.lastrowid)
        return self._require(HierarchyLevel.WORKSPACE, entity_id)  # type: ignore[return-value]

    def _require(self, level: HierarchyLevel, entity_id: int) -> Entity:
        entity = self.get_entity(level, entity_id)
        if entity is None:
            raise StoreError(f"{level.value} {entity_id} vanished after insert")
        return entity

    # ------------------------------------------------------------------
    # Lookups by id
    # ------------------------------------------------------------------

    def get_entity(self, level: HierarchyLevel, entity_id: int) -> Entity | None:
        table = _TABLES.get(level)
        if table is None:
            raise ValueError(f"{level.value} is not a hierarchy entity level")
        with self._session() as conn:
            row = conn.execute(f"SELECT * FROM {table} WHERE id = ?", (entity_id,)).fetchone()
        return _row_to_entity(level, row) if row is not None else None

    def get_ecosystem(self, ecosystem_id: int) -> Ecosystem | None:
        return self.get_entity(HierarchyLevel.ECOSYSTEM, ecosystem_id)  # type: ignore[return-value]

    def get_domain(self, domain_id: int) -> Domain | None:
        return self.get_entity(HierarchyLevel.DOMAIN, domain_id)  # type: ignore[return-value]

    def get_app(self, app_id: int) -> App | None:
        return self.get_entity(HierarchyLevel.APP, app_id)  # type: ignore[return-value]

    def get_workspace(self, workspace_id: int) -> Workspace | None:
        return self.get_entity(HierarchyLevel.WORKSPACE, workspace_id)  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Lookups by name
    # ------------------------------------------------------------------

    def _find_child(self, level: HierarchyLevel, parent_id: int | None, name: str) -> Entity | None:
        table = _TABLES[level]
        with self._session() as conn:
            if level is HierarchyLevel.ECOSYSTEM:
                row = conn.execute(f"SELECT * FROM {table} WHERE name = ?", (name,)).fetchone()
            else:
                row = conn.execute(
                    f"SELECT * FROM {table} WHERE {_PARENT_COLUMNS[level]} = ? AND name = ?",
                    (parent_id, name),
                ).fetchone()
        return _row_to_entity(level, row) if row is not None else None

    def find_ecosystem_by_name(self, name: str) -> Ecosystem | None:
        return self._find_child(HierarchyLevel.ECOSYSTEM, None, name)  # type: ignore[return-value]

    def find_domain_by_name(self, ecosystem_id: int, name: str) -> Domain | None:
        return self._find_child(HierarchyLevel.DOMAIN, ecosystem_id, name)  # type: ignore[return-value]

    def find_app_by_name(self, domain_id: int, name: str) -> App | None:
        return self._find_child(HierarchyLevel.APP, domain_id, name)  # type: ignore[return-value]

    def find_apps_by_name(self, name: str) -> list[App]:
        """Find apps with ``name`` across every domain."""
        return self.list_entities(HierarchyLevel.APP, name=name)  # type: ignore[return-value]

    def find_workspace_by_name(self, app_id: int, name: str) -> Workspace | None:
        return self._find_child(HierarchyLevel.WORKSPACE, app_id, name)  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_entities(self, level: HierarchyLevel, *, name: str | None = None) -> list[Entity]:
        """List every entity at ``level``, optionally only those named ``name``."""
        table = _TABLES.get(level)
        if table is None:
            raise ValueError(f"{level.value} is not a hierarchy entity level")
        with self._session() as conn:
            if name is None:
                rows = conn.execute(f"SELECT * FROM {table} ORDER BY id ASC").fetchall()
            else:
                rows = conn.execute(
                    f"SELECT * FROM {table} WHERE name = ? ORDER BY id ASC", (name,)
                ).fetchall()
        return [_row_to_entity(level, row) for row in rows]

    def _list_children(self, level: HierarchyLevel, parent_id: int) -> list[Entity]:
        with self._session() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_TABLES[level]} WHERE {_PARENT_COLUMNS[level]} = ? ORDER BY name ASC",
                (parent_id,),
            ).fetchall()
        return [_row_to_entity(level, row) for row in rows]

    def list_ecosystems(self) -> list[Ecosystem]:
        with self._session() as conn:
            rows = conn.execute("SELECT * FROM ecosystems ORDER BY name ASC").fetchall()
        return [_row_to_entity(HierarchyLevel.ECOSYSTEM, row) for row in rows]  # type: ignore[misc]

    def list_domains(self, ecosystem_id: int) -> list[Domain]:
        return self._list_children(HierarchyLevel.DOMAIN, ecosystem_id)  # type: ignore[return-value]

    def list_apps(self, domain_id: int) -> list[App]:
        return self._list_children(HierarchyLevel.APP, domain_id)  # type: ignore[return-value]

    def list_workspaces(self, app_id: int) -> list[Workspace]:
        return self._list_children(HierarchyLevel.WORKSPACE, app_id)  # type: ignore[return-value]

    def list_all_workspaces(self, *, name: str | None = None) -> list[Workspace]:
        return self.list_entities(HierarchyLevel.WORKSPACE, name=name)  # type: ignore[return-value]

    # ------------------------------------------------------------------
    # Scoped overrides
    # ------------------------------------------------------------------

    def get_override(self, level: HierarchyLevel, entity_id: int, key: str) -> str | None:
        with self._session() as conn:
            row = conn.execute(
                "SELECT value FROM scoped_overrides WHERE scope_type = ? AND scope_id = ? AND key = ?",
                (_scope_type(level), entity_id, key),
            ).fetchone()
        return str(row["value"]) if row is not None else None

    def set_override(self, level: HierarchyLevel, entity_id: int, key: str, value: str) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO scoped_overrides(scope_type, scope_id, key, value, updated_at)
                VALUES(?, ?, ?, ?, ?)
                ON CONFLICT(scope_type, scope_id, key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (_scope_type(level), entity_id, key, value, _now()),
            )

    def clear_override(self, level: HierarchyLevel, entity_id: int, key: str) -> bool:
        with self._session() as conn:
            cursor = conn.execute(
                "DELETE FROM scoped_overrides WHERE scope_type = ? AND scope_id = ? AND key = ?",
                (_scope_type(level), entity_id, key),
            )
            return cursor.rowcount > 0

    def list_overrides(self, level: HierarchyLevel, entity_id: int) -> dict[str, str]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT key, value FROM scoped_overrides WHERE scope_type = ? AND scope_id = ? ORDER BY key ASC",
                (_scope_type(level), entity_id),
            ).fetchall()
        return {str(row["key"]): str(row["value"]) for row in rows}

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def get_credential(self, level: HierarchyLevel, entity_id: int, name: str) -> CredentialConfig | None:
        with self._session() as conn:
            row = conn.execute(
                "SELECT * FROM credentials WHERE scope_type = ? AND scope_id = ? AND name = ?",
                (_scope_type(level), entity_id, name),
            ).fetchone()
        return _row_to_credential(row) if row is not None else None

    def list_credentials(self, level: HierarchyLevel, entity_id: int) -> dict[str, CredentialConfig]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT * FROM credentials WHERE scope_type = ? AND scope_id = ? ORDER BY name ASC",
                (_scope_type(level), entity_id),
            ).fetchall()
        return {str(row["name"]): _row_to_credential(row) for row in rows}

    def set_credential(
        self,
        level: HierarchyLevel,
        entity_id: int,
        name: str,
        credential: CredentialConfig,
    ) -> None:
        now = _now()
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO credentials(scope_type, scope_id, name, source, service, env_var, value,
                                        description, created_at, updated_at)
                VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(scope_type, scope_id, name) DO UPDATE SET
                    source = excluded.source,
                    service = excluded.service,
                    env_var = excluded.env_var,
                    value = excluded.value,
                    description = excluded.description,
                    updated_at = excluded.updated_at
                """,
                (
                    _scope_type(level),
                    entity_id,
                    name,
                    credential.source.value,
                    credential.service,
                    credential.env_var,
                    credential.value,
                    credential.description,
                    now,
                    now,
                ),
            )

    def delete_credential(self, level: HierarchyLevel, entity_id: int, name: str) -> bool:
        with self._session() as conn:
            cursor = conn.execute(
                "DELETE FROM credentials WHERE scope_type = ? AND scope_id = ? AND name = ?",
                (_scope_type(level), entity_id, name),
            )
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Active selection
    # ------------------------------------------------------------------

    def get_active_selection(self) -> SelectionContext:
        with self._session() as conn:
            row = conn.execute(
                "SELECT ecosystem_id, domain_id, app_id, workspace_id FROM active_context WHERE id = 1"
            ).fetchone()
        if row is None:
            return SelectionContext()
        return SelectionContext(
            ecosystem_id=row["ecosystem_id"],
            domain_id=row["domain_id"],
            app_id=row["app_id"],
            workspace_id=row["workspace_id"],
        )

    def set_active_selection(
        self,
        ecosystem_id: int | None = None,
        domain_id: int | None = None,
        app_id: int | None = None,
        workspace_id: int | None = None,
    ) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO active_context(id, ecosystem_id, domain_id, app_id, workspace_id, updated_at)
                VALUES(1, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    ecosystem_id = excluded.ecosystem_id,
                    domain_id = excluded.domain_id,
                    app_id = excluded.app_id,
                    workspace_id = excluded.workspace_id,
                    updated_at = excluded.updated_at
                """,
                (ecosystem_id, domain_id, app_id, workspace_id, _now()),
            )

    def clear_active_selection(self) -> None:
        self.set_active_selection()
