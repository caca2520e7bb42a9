"""Scoped settings resolved through the hierarchy cascade."""

from envtree.settings.credentials import (
    CredentialError,
    CredentialResolution,
    CredentialResolver,
    resolve_credential_value,
)
from envtree.settings.theme import THEME_KEY, ThemeResolver

__all__ = [
    "THEME_KEY",
    "CredentialError",
    "CredentialResolution",
    "CredentialResolver",
    "ThemeResolver",
    "resolve_credential_value",
]
