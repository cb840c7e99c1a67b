"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via TERMY_* env vars,
then a YAML file (see yaml_config.py), then command-line flags.
"""
from __future__ import annotations

import logging
import os
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

from termy.shared.models.platform import Platform

logger = logging.getLogger(__name__)


# Optional callback for user-visible notices ("toasts").
# Signature: def callback(message: str) -> None
NoticeCallback = Callable[[str], None]

# Optional async callback fired when a surface tears itself down.
DetachCallback = Callable[[], Awaitable[None]]

DEFAULT_LOG_FILE = Path.home() / ".termy" / "logs" / "termy.log"


@dataclass
class TermyConfig:
    """Terminal panel configuration."""

    # Vault root used for wiki links and app links. None disables
    # vault-relative resolution.
    vault_path: str | None = None
    # Vault-relative path of the "active" document; link targets are
    # resolved relative to its folder first.
    active_document: str = ""
    # "windows", "posix", or None to follow the running interpreter.
    platform: str | None = None
    # Scheme of internal app links (<scheme>://open?file=...).
    app_link_scheme: str = "obsidian"

    # Seconds a writer waits for the session before giving up.
    # Set to 0 (or a negative value) to wait without limit.
    init_timeout_seconds: float = 8.0

    # Shell for the reference terminal service. None = $SHELL / %COMSPEC%.
    shell: str | None = None
    shell_args: list[str] = field(default_factory=list)
    cwd: str | None = None

    # Logging
    log_level: str = "INFO"
    log_file: str | None = None

    @property
    def resolved_platform(self) -> Platform:
        return Platform.parse(self.platform)

    @property
    def resolved_log_file(self) -> Path:
        return Path(self.log_file).expanduser() if self.log_file else DEFAULT_LOG_FILE

    @classmethod
    def from_env(cls) -> TermyConfig:
        """Load configuration from TERMY_* environment variables."""
        termy_vars = {
            k: v for k, v in os.environ.items() if k.startswith("TERMY_")
        }
        if termy_vars:
            logger.info(
                "TermyConfig.from_env: TERMY_* env overrides: %s",
                ", ".join(f"{k}={v}" for k, v in sorted(termy_vars.items())),
            )
        else:
            logger.debug("TermyConfig.from_env: no TERMY_* env vars set, using defaults")

        config = cls(
            vault_path=os.getenv("TERMY_VAULT") or None,
            active_document=os.getenv("TERMY_ACTIVE_DOCUMENT", cls.active_document),
            platform=os.getenv("TERMY_PLATFORM") or None,
            app_link_scheme=os.getenv("TERMY_APP_SCHEME", cls.app_link_scheme),
            init_timeout_seconds=float(os.getenv(
                "TERMY_INIT_TIMEOUT", str(cls.init_timeout_seconds)
            )),
            shell=os.getenv("TERMY_SHELL") or None,
            cwd=os.getenv("TERMY_CWD") or None,
            log_level=os.getenv("TERMY_LOG_LEVEL", cls.log_level),
            log_file=os.getenv("TERMY_LOG_FILE") or None,
        )
        logger.debug(
            "TermyConfig.from_env: vault=%s platform=%s scheme=%s timeout=%.1fs",
            config.vault_path, config.platform or "auto",
            config.app_link_scheme, config.init_timeout_seconds,
        )
        return config
