"""YAML configuration loader.

Loads a single YAML file layered over the TERMY_* env configuration.
When no YAML file exists, env vars and defaults apply unchanged.

Example YAML:
    terminal:
      shell: /bin/bash
      shell_args: ["-i"]
      cwd: ~/projects
      init_timeout_seconds: 8

    vault:
      path: ~/Notes            # relative paths are relative to this file
      active_document: Daily/2026-10-18.md
      app_link_scheme: obsidian
      platform: posix          # windows | posix, omit for auto

    logging:
      level: DEBUG
      file: ~/.termy/logs/termy.log
"""
from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import yaml

from termy.shared.models.platform import Platform

from .config import TermyConfig

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".termy"
CONFIG_FILE_NAME = "termy.yaml"


def find_config_file(cwd: Path) -> Path | None:
    """Auto-discover .termy/termy.yaml (preferred) or termy.yaml in cwd."""
    for candidate in (cwd / CONFIG_DIR_NAME / CONFIG_FILE_NAME, cwd / CONFIG_FILE_NAME):
        if candidate.is_file():
            logger.info("find_config_file: using %s", candidate)
            return candidate
    logger.debug("find_config_file: no config under %s", cwd)
    return None


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        logger.warning("Ignoring YAML section '%s': expected a mapping", name)
        return {}
    return value


def _resolve_relative(value: str | None, base_dir: Path) -> str | None:
    if not value:
        return None
    path = Path(str(value)).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return str(path)


def load_yaml_config(path: str | Path, base: TermyConfig | None = None) -> TermyConfig:
    """Load a YAML config file over base (defaults when omitted).

    Missing keys keep the base value. Invalid values raise ValueError
    so a broken config is reported instead of silently ignored.
    """
    path = Path(path)
    base = base or TermyConfig()
    logger.info("load_yaml_config: loading %s (exists=%s)", path, path.exists())
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error("load_yaml_config: config file not found at %s", path.absolute())
        raise
    except yaml.YAMLError as exc:
        logger.error("load_yaml_config: YAML parse error in %s: %s", path, exc)
        raise

    if not isinstance(raw, dict):
        raise ValueError(f"{path}: top level must be a mapping")

    top_sections = sorted(raw.keys())
    logger.info(
        "Parsed YAML config %s — sections: %s",
        path.name, ", ".join(top_sections) if top_sections else "(empty)",
    )

    base_dir = path.parent
    if base_dir.name == CONFIG_DIR_NAME:
        base_dir = base_dir.parent

    terminal = _section(raw, "terminal")
    vault = _section(raw, "vault")
    logging_raw = _section(raw, "logging")

    platform = vault.get("platform", base.platform)
    if platform:
        # Validate early; keep the string form in the config
        Platform.parse(str(platform))

    shell_args = terminal.get("shell_args", base.shell_args)
    if not isinstance(shell_args, list):
        raise ValueError(f"{path}: terminal.shell_args must be a list")

    config = dataclasses.replace(
        base,
        vault_path=_resolve_relative(vault.get("path"), base_dir) or base.vault_path,
        active_document=str(vault.get("active_document", base.active_document) or ""),
        app_link_scheme=str(vault.get("app_link_scheme", base.app_link_scheme)),
        platform=str(platform) if platform else None,
        init_timeout_seconds=float(terminal.get(
            "init_timeout_seconds", base.init_timeout_seconds
        )),
        shell=terminal.get("shell", base.shell),
        shell_args=[str(arg) for arg in shell_args],
        cwd=_resolve_relative(terminal.get("cwd"), base_dir) or base.cwd,
        log_level=str(logging_raw.get("level", base.log_level)).upper(),
        log_file=logging_raw.get("file", base.log_file),
    )
    logger.debug("load_yaml_config: effective config %s", config)
    return config
