"""Tests for home discovery and the global config file."""

from __future__ import annotations

from pathlib import Path

import pytest

from envtree import home
from envtree.config import (
    DEFAULT_THEME,
    ConfigError,
    CredentialConfig,
    CredentialSource,
    GlobalConfig,
    load_global_config,
    save_global_config,
)


class TestHome:
    def test_env_var_overrides_home(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("ENVTREE_HOME", str(tmp_path / "custom"))
        assert home.get_envtree_home() == tmp_path / "custom"
        assert home.default_database_path() == tmp_path / "custom" / "envtree.db"
        assert home.global_config_path() == tmp_path / "custom" / "config.yaml"

    def test_posix_default(self, tmp_path, monkeypatch) -> None:
        monkeypatch.delenv("ENVTREE_HOME", raising=False)
        monkeypatch.setattr(home, "_is_windows", lambda: False)
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: tmp_path))
        assert home.get_envtree_home() == tmp_path / ".envtree"

    def test_windows_uses_platformdirs(self, monkeypatch) -> None:
        monkeypatch.delenv("ENVTREE_HOME", raising=False)
        monkeypatch.setattr(home, "_is_windows", lambda: True)
        monkeypatch.setattr("platformdirs.user_data_dir", lambda appname: f"C:/Users/dev/AppData/Local/{appname}")
        assert home.get_envtree_home() == Path("C:/Users/dev/AppData/Local/envtree")


def test_missing_file_yields_defaults(tmp_path) -> None:
    config = load_global_config(tmp_path / "config.yaml")
    assert config.theme == DEFAULT_THEME
    assert config.defaults == {}
    assert config.credentials == {}
    assert config.database is None


def test_load_full_config(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "theme: tokyo-night\n"
        "defaults:\n"
        "  shell: zsh\n"
        "credentials:\n"
        "  GITHUB_PAT: {source: keychain, service: envtree-github-pat}\n"
        "  NPM_TOKEN: {source: env, env: MY_NPM_TOKEN}\n"
        "  API_KEY:\n"
        "    source: value\n"
        "    value: plain\n"
        "    description: Test key\n",
        encoding="utf-8",
    )

    config = load_global_config(path)

    assert config.theme == "tokyo-night"
    assert config.global_setting("theme") == "tokyo-night"
    assert config.global_setting("shell") == "zsh"
    assert config.global_setting("missing") is None
    assert config.credentials["GITHUB_PAT"].source is CredentialSource.KEYCHAIN
    assert config.credentials["NPM_TOKEN"].env_var == "MY_NPM_TOKEN"
    assert config.credentials["NPM_TOKEN"].describe() == "env:MY_NPM_TOKEN"
    assert config.credentials["API_KEY"].description == "Test key"


def test_empty_sections_fall_back_to_defaults(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("theme:\ndefaults:\ncredentials:\n", encoding="utf-8")

    config = load_global_config(path)

    assert config.theme == DEFAULT_THEME
    assert config.credentials == {}


@pytest.mark.parametrize(
    "content",
    [
        "- just\n- a list\n",
        "theme: [unclosed\n",
        "credentials:\n  BAD: {source: carrier-pigeon}\n",
    ],
)
def test_invalid_config_raises(tmp_path, content) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_global_config(path)


def test_save_preserves_unrelated_sections(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("# user notes\nextras:\n  editor: vim\ntheme: old\n", encoding="utf-8")

    config = load_global_config(path)
    config.theme = "dark"
    config.credentials["NPM_TOKEN"] = CredentialConfig(source=CredentialSource.ENV, env_var="MY_NPM")
    save_global_config(config, path)

    text = path.read_text(encoding="utf-8")
    assert "editor: vim" in text
    assert "env: MY_NPM" in text
    reloaded = load_global_config(path)
    assert reloaded.theme == "dark"
    assert reloaded.credentials["NPM_TOKEN"].env_var == "MY_NPM"


def test_save_creates_parent_directory(tmp_path) -> None:
    path = tmp_path / "nested" / "config.yaml"
    save_global_config(GlobalConfig(defaults={"shell": "fish"}), path)
    assert load_global_config(path).defaults == {"shell": "fish"}
