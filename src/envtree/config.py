"""Global envtree configuration in ~/.envtree/config.yaml.

The global config supplies the lowest level of every cascade: the default
theme, defaults for other scoped settings, and global build credentials.
"""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from ruamel.yaml import YAML

from envtree.home import global_config_path

DEFAULT_THEME = "coolnight-ocean"


class ConfigError(RuntimeError):
    """Raised when the global configuration is invalid."""


class CredentialSource(StrEnum):
    """Where a credential value is read from."""

    VALUE = "value"
    ENV = "env"
    KEYCHAIN = "keychain"


class CredentialConfig(BaseModel):
    """How to obtain a single credential value."""

    model_config = ConfigDict(populate_by_name=True)

    source: CredentialSource
    value: str | None = None
    env_var: str | None = Field(default=None, alias="env")
    service: str | None = None
    description: str | None = None

    def describe(self) -> str:
        """Short, secret-free description of the source."""
        if self.source is CredentialSource.ENV:
            return f"env:{self.env_var or '?'}"
        if self.source is CredentialSource.KEYCHAIN:
            return f"keychain:{self.service or '?'}"
        return "value"

    def to_dict(self) -> dict[str, str]:
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return {str(key): str(value) for key, value in payload.items()}


class GlobalConfig(BaseModel):
    """Top-level global configuration."""

    theme: str = DEFAULT_THEME
    defaults: dict[str, str] = Field(default_factory=dict)
    credentials: dict[str, CredentialConfig] = Field(default_factory=dict)
    database: str | None = None

    def global_setting(self, key: str) -> str | None:
        """Return the global fallback for a scoped setting key."""
        if key == "theme":
            return self.theme
        return self.defaults.get(key)


def load_global_config(config_path: Path | None = None) -> GlobalConfig:
    """Load the global config; a missing file yields defaults."""
    path = config_path or global_config_path()
    if not path.exists():
        return GlobalConfig()

    yaml = YAML(typ="safe")
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.load(handle) or {}
    except Exception as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")

    known = {key: payload[key] for key in GlobalConfig.model_fields if key in payload}
    if known.get("theme") in (None, ""):
        known.pop("theme", None)
    for section in ("defaults", "credentials"):
        if known.get(section) is None:
            known.pop(section, None)

    try:
        return GlobalConfig.model_validate(known)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in {path}: {exc}") from exc


def save_global_config(config: GlobalConfig, config_path: Path | None = None) -> None:
    """Persist the global config, preserving unrelated top-level sections."""
    path = config_path or global_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    yaml = YAML()
    yaml.preserve_quotes = True

    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.load(handle) or {}
    else:
        payload = {}

    if not isinstance(payload, dict):
        payload = {}

    payload["theme"] = config.theme
    payload["defaults"] = dict(config.defaults)
    payload["credentials"] = {
        name: credential.to_dict() for name, credential in sorted(config.credentials.items())
    }
    payload["database"] = config.database

    with path.open("w", encoding="utf-8") as handle:
        yaml.dump(payload, handle)
