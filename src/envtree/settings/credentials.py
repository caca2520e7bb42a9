"""Build credential resolution across the hierarchy.

Credentials cascade workspace -> app -> domain -> ecosystem -> global config.
After the walk, a process environment variable with the credential's name
replaces whatever the hierarchy produced, so operators can always force a
value without touching stored state. The environment pass is recorded as its
own ``environment`` trace step.
"""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from envtree.config import CredentialConfig, CredentialSource
from envtree.hierarchy.models import HierarchyLevel
from envtree.hierarchy.store import HierarchyStore, StoreError
from envtree.resolution.cascade import CascadeResolver, CascadeResult

logger = logging.getLogger(__name__)

_KEYCHAIN_ITEM_NOT_FOUND = 44


class CredentialError(RuntimeError):
    """Raised when a credential source cannot be read."""


def read_keychain(service: str) -> str:
    """Read a generic password from the macOS Keychain."""
    if sys.platform != "darwin":
        raise CredentialError(f"Keychain source '{service}' is only available on macOS")

    user = os.environ.get("USER", "")
    if not user:
        raise CredentialError("USER environment variable not set")

    try:
        result = subprocess.run(
            ["security", "find-generic-password", "-s", service, "-a", user, "-w"],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as exc:
        raise CredentialError(f"Keychain lookup failed for '{service}': {exc}") from exc

    if result.returncode == _KEYCHAIN_ITEM_NOT_FOUND:
        raise CredentialError(f"Credential '{service}' not found in Keychain")
    if result.returncode != 0:
        raise CredentialError(f"Keychain lookup failed for '{service}': {result.stderr.strip()}")
    return result.stdout.strip()


def resolve_credential_value(
    credential: CredentialConfig,
    environ: Mapping[str, str] | None = None,
    keychain_reader: Callable[[str], str] = read_keychain,
) -> str:
    """Turn a credential definition into its value ("" when unset)."""
    if credential.source is CredentialSource.VALUE:
        return credential.value or ""
    if credential.source is CredentialSource.ENV:
        if not credential.env_var:
            raise CredentialError("env source requires an env var name")
        env = os.environ if environ is None else environ
        return env.get(credential.env_var, "")
    if credential.source is CredentialSource.KEYCHAIN:
        if not credential.service:
            raise CredentialError("keychain source requires a service name")
        return keychain_reader(credential.service)
    raise CredentialError(f"Unknown credential source: {credential.source}")


@dataclass
class CredentialResolution:
    """Effective credential map for one hierarchy entity."""

    values: dict[str, str] = field(default_factory=dict)
    results: dict[str, CascadeResult] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    scope_errors: dict[str, str] = field(default_factory=dict)

    def sources(self) -> dict[str, HierarchyLevel]:
        return {
            name: result.source
            for name, result in self.results.items()
            if result.source is not None
        }

    def to_dict(self, *, reveal: bool = False) -> dict[str, Any]:
        return {
            "credentials": {
                name: result.to_dict(reveal=reveal) for name, result in sorted(self.results.items())
            },
            "errors": dict(sorted(self.errors.items())),
            "scope_errors": dict(sorted(self.scope_errors.items())),
        }


class CredentialResolver:
    """Cascade credential definitions with a final environment-variable pass."""

    def __init__(
        self,
        store: HierarchyStore,
        global_credentials: Mapping[str, CredentialConfig] | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        keychain_reader: Callable[[str], str] = read_keychain,
    ) -> None:
        self.store = store
        self.global_credentials = dict(global_credentials or {})
        self._environ = environ
        self._keychain_reader = keychain_reader
        self._walker = CascadeResolver(
            store,
            self._lookup,
            global_lookup=self._global_lookup,
            global_label="global config",
            final_override=self._environment_override,
            lookup_errors=(StoreError, CredentialError),
        )

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    def _read(self, credential: CredentialConfig) -> str:
        return resolve_credential_value(credential, self.environ, self._keychain_reader)

    def _lookup(self, level: HierarchyLevel, entity_id: int, name: str) -> str | None:
        credential = self.store.get_credential(level, entity_id, name)
        if credential is None:
            return None
        return self._read(credential) or None

    def _global_lookup(self, name: str) -> str | None:
        credential = self.global_credentials.get(name)
        if credential is None:
            return None
        return self._read(credential) or None

    def _environment_override(self, name: str) -> str | None:
        return self.environ.get(name) or None

    def resolve(self, level: HierarchyLevel, entity_id: int, name: str) -> CascadeResult:
        """Resolve a single credential by name."""
        return self._walker.resolve(level, entity_id, name)

    @staticmethod
    def _scope_failed(label: str, exc: StoreError, scope_errors: dict[str, str] | None) -> None:
        logger.warning("Cannot list credentials for %s: %s", label, exc)
        if scope_errors is not None:
            scope_errors[label] = str(exc)

    def credential_names(
        self,
        level: HierarchyLevel,
        entity_id: int,
        scope_errors: dict[str, str] | None = None,
    ) -> set[str]:
        """Collect every credential name defined on the chain or globally."""
        names = set(self.global_credentials)
        current: tuple[HierarchyLevel, int] | None = (level, entity_id)
        while current is not None:
            current_level, current_id = current
            label = f"{current_level.value} {current_id}"
            try:
                entity = self.store.get_entity(current_level, current_id)
            except StoreError as exc:
                self._scope_failed(label, exc, scope_errors)
                break
            if entity is None:
                break

            label = f"{current_level.value} '{entity.name}'"
            try:
                names.update(self.store.list_credentials(current_level, current_id))
            except StoreError as exc:
                # parent is still known, keep collecting above this level
                self._scope_failed(label, exc, scope_errors)

            if current_level is HierarchyLevel.ECOSYSTEM:
                current = None
            else:
                current = (current_level.parent, entity.parent_id)
        return names

    def resolve_all(self, level: HierarchyLevel, entity_id: int) -> CredentialResolution:
        """Resolve the merged credential map for an entity."""
        resolution = CredentialResolution()
        for name in sorted(self.credential_names(level, entity_id, resolution.scope_errors)):
            result = self.resolve(level, entity_id, name)
            resolution.results[name] = result
            if result.value is not None:
                resolution.values[name] = result.value
                continue
            failures = [
                f"[{step.level.value}] {step.error}" for step in result.trace.errors()
            ]
            if failures:
                resolution.errors[name] = "; ".join(failures)
        return resolution
