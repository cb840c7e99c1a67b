"""Termy — main application entry point."""

from __future__ import annotations

import asyncio
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from termy.engine.config import TermyConfig
from termy.engine.yaml_config import find_config_file, load_yaml_config
from termy.shared.models.drop import DropPayload, URI_LIST
from termy.shared.models.platform import Platform
from termy.shared.path_resolver import PathResolver, format_for_injection
from termy.shared.vault import VaultIndex

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(config: TermyConfig, *, to_stderr: bool) -> Path:
    """Send logs to a rotating file, plus stderr outside the TUI."""
    log_path = config.resolved_log_file
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(getattr(logging, config.log_level.upper(), logging.INFO))
    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = RotatingFileHandler(
        log_path, maxBytes=2 * 1024 * 1024, backupCount=3, encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if to_stderr:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)

    return log_path


def build_config(args) -> TermyConfig:
    """Env vars, then YAML, then command-line flags."""
    config = TermyConfig.from_env()

    config_path = args.config
    if config_path is None:
        found = find_config_file(Path.cwd())
        config_path = str(found) if found else None
    if config_path:
        config = load_yaml_config(config_path, base=config)

    if args.vault:
        config.vault_path = args.vault
    if args.active_document:
        config.active_document = args.active_document
    if args.platform:
        config.platform = args.platform
    if args.shell:
        config.shell = args.shell
    if args.init_timeout is not None:
        config.init_timeout_seconds = args.init_timeout
    if args.log_level:
        config.log_level = args.log_level
    if args.log_file:
        config.log_file = args.log_file
    return config


async def resolve_once(config: TermyConfig, text: str, mime_type: str = URI_LIST) -> str:
    """Resolve text the way a drop would be, without a session."""
    vault = None
    if config.vault_path:
        vault = VaultIndex(
            Path(config.vault_path).expanduser(),
            active_document=config.active_document,
        )
    resolver = PathResolver(
        vault,
        config.resolved_platform,
        app_link_scheme=config.app_link_scheme,
    )
    paths = await resolver.resolve(DropPayload.from_text(text, mime_type))
    return format_for_injection(paths)


def main(argv: list[str] | None = None) -> None:
    import argparse

    parser = argparse.ArgumentParser(
        prog="termy",
        description="Terminal panel that turns dropped files and links into shell paths.",
    )
    parser.add_argument(
        "--config",
        help="YAML config file (default: .termy/termy.yaml or termy.yaml in cwd)",
    )
    parser.add_argument(
        "--vault",
        help="Vault root used to resolve [[wiki links]] and app links",
    )
    parser.add_argument(
        "--active-document",
        help="Vault-relative path link targets are resolved against",
    )
    parser.add_argument(
        "--platform",
        choices=[p.value for p in Platform],
        help="Path conventions to emit (default: this machine)",
    )
    parser.add_argument(
        "--shell",
        help="Shell to run in the terminal panel",
    )
    parser.add_argument(
        "--init-timeout",
        type=float,
        help="Seconds to wait for the session before dropping input",
    )
    parser.add_argument(
        "--resolve",
        metavar="TEXT",
        help="Resolve TEXT ('-' for stdin) as a drop payload, print the quoted paths and exit",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    parser.add_argument(
        "--log-file",
        help="Log file path (default: ~/.termy/logs/termy.log)",
    )
    args = parser.parse_args(argv)

    config = build_config(args)
    one_shot = args.resolve is not None
    log_path = _configure_logging(config, to_stderr=one_shot)
    logger.info(
        "Termy starting: vault=%s platform=%s log=%s",
        config.vault_path, config.resolved_platform.value, log_path,
    )

    if one_shot:
        text = sys.stdin.read() if args.resolve == "-" else args.resolve
        output = asyncio.run(resolve_once(config, text))
        if not output:
            logger.warning("No usable path in input")
            sys.exit(1)
        print(output)
        return

    from termy.tui.app import TermyApp

    TermyApp(config).run()


if __name__ == "__main__":
    main()
