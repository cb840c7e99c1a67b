"""Tests for env + YAML configuration and the CLI config chain."""

from __future__ import annotations

import argparse
import os
from pathlib import Path

import pytest
import yaml

from termy.app import build_config, resolve_once
from termy.engine.config import DEFAULT_LOG_FILE, TermyConfig
from termy.engine.yaml_config import find_config_file, load_yaml_config
from termy.shared.models.platform import Platform


@pytest.fixture
def clean_env(monkeypatch):
    """Remove any TERMY_* variables from the test environment."""
    for key in list(os.environ):
        if key.startswith("TERMY_"):
            monkeypatch.delenv(key)
    return monkeypatch


def _write_yaml(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data))
    return path


def _cli_args(**overrides) -> argparse.Namespace:
    values = dict(
        config=None, vault=None, active_document=None, platform=None,
        shell=None, init_timeout=None, log_level=None, log_file=None,
        resolve=None,
    )
    values.update(overrides)
    return argparse.Namespace(**values)


def test_defaults(clean_env) -> None:
    config = TermyConfig.from_env()
    assert config.vault_path is None
    assert config.app_link_scheme == "obsidian"
    assert config.init_timeout_seconds == 8.0
    assert config.resolved_platform is Platform.current()
    assert config.resolved_log_file == DEFAULT_LOG_FILE


def test_env_overrides(clean_env, tmp_path) -> None:
    clean_env.setenv("TERMY_VAULT", str(tmp_path))
    clean_env.setenv("TERMY_PLATFORM", "windows")
    clean_env.setenv("TERMY_INIT_TIMEOUT", "2.5")
    clean_env.setenv("TERMY_APP_SCHEME", "notes")
    clean_env.setenv("TERMY_LOG_FILE", str(tmp_path / "t.log"))

    config = TermyConfig.from_env()
    assert config.vault_path == str(tmp_path)
    assert config.resolved_platform is Platform.WINDOWS
    assert config.init_timeout_seconds == 2.5
    assert config.app_link_scheme == "notes"
    assert config.resolved_log_file == tmp_path / "t.log"


def test_platform_parse() -> None:
    assert Platform.parse("win32") is Platform.WINDOWS
    assert Platform.parse(" Darwin ") is Platform.POSIX
    assert Platform.parse(None) is Platform.current()
    assert Platform.WINDOWS.case_insensitive
    assert not Platform.POSIX.case_insensitive
    with pytest.raises(ValueError, match="Unknown platform"):
        Platform.parse("beos")


def test_find_config_file_prefers_dot_dir(tmp_path) -> None:
    assert find_config_file(tmp_path) is None
    plain = _write_yaml(tmp_path / "termy.yaml", {})
    assert find_config_file(tmp_path) == plain
    dotted = _write_yaml(tmp_path / ".termy" / "termy.yaml", {})
    assert find_config_file(tmp_path) == dotted


def test_yaml_overrides_base(tmp_path) -> None:
    path = _write_yaml(tmp_path / ".termy" / "termy.yaml", {
        "terminal": {
            "shell": "/bin/bash",
            "shell_args": ["-i"],
            "cwd": "work",
            "init_timeout_seconds": 3,
        },
        "vault": {
            "path": "notes",
            "active_document": "Daily/today.md",
            "platform": "posix",
        },
        "logging": {"level": "debug"},
    })
    base = TermyConfig(app_link_scheme="notes", log_file="/tmp/base.log")

    config = load_yaml_config(path, base=base)
    # Relative paths resolve against the folder holding .termy/
    assert config.vault_path == str(tmp_path / "notes")
    assert config.cwd == str(tmp_path / "work")
    assert config.shell == "/bin/bash"
    assert config.shell_args == ["-i"]
    assert config.init_timeout_seconds == 3.0
    assert config.active_document == "Daily/today.md"
    assert config.platform == "posix"
    assert config.log_level == "DEBUG"
    # Untouched keys keep the base value
    assert config.app_link_scheme == "notes"
    assert config.log_file == "/tmp/base.log"


def test_empty_yaml_keeps_base(tmp_path) -> None:
    path = tmp_path / "termy.yaml"
    path.write_text("")
    base = TermyConfig(vault_path="/v", init_timeout_seconds=1.5)
    assert load_yaml_config(path, base=base) == base


def test_yaml_errors(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_yaml_config(tmp_path / "missing.yaml")

    bad_platform = _write_yaml(tmp_path / "a.yaml", {"vault": {"platform": "beos"}})
    with pytest.raises(ValueError):
        load_yaml_config(bad_platform)

    bad_args = _write_yaml(tmp_path / "b.yaml", {"terminal": {"shell_args": "-i"}})
    with pytest.raises(ValueError, match="shell_args"):
        load_yaml_config(bad_args)

    not_mapping = tmp_path / "c.yaml"
    not_mapping.write_text("- just\n- a list\n")
    with pytest.raises(ValueError, match="mapping"):
        load_yaml_config(not_mapping)

    broken = tmp_path / "d.yaml"
    broken.write_text("vault: [unclosed\n")
    with pytest.raises(yaml.YAMLError):
        load_yaml_config(broken)


def test_build_config_precedence(clean_env, tmp_path) -> None:
    clean_env.chdir(tmp_path)
    clean_env.setenv("TERMY_SHELL", "/bin/zsh")
    clean_env.setenv("TERMY_INIT_TIMEOUT", "4")
    _write_yaml(tmp_path / "termy.yaml", {
        "terminal": {"init_timeout_seconds": 6},
        "vault": {"path": "yaml-vault"},
    })

    config = build_config(_cli_args(vault="/cli/vault", platform="windows"))
    assert config.shell == "/bin/zsh"
    assert config.init_timeout_seconds == 6.0
    assert config.vault_path == "/cli/vault"
    assert config.resolved_platform is Platform.WINDOWS


@pytest.mark.asyncio
async def test_resolve_once_formats_paths(tmp_path) -> None:
    (tmp_path / "Plan.md").write_text("x")
    config = TermyConfig(vault_path=str(tmp_path), platform="posix")
    output = await resolve_once(config, "[[Plan]]\nfile:///etc/hosts")
    assert output == f'"{tmp_path.resolve()}/Plan.md" "/etc/hosts"'
    assert await resolve_once(config, "nothing useful") == ""
