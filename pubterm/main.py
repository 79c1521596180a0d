"""Entrypoint: the TUI by default, or one of the subcommands."""
from __future__ import annotations

import argparse
import logging
import sys

from . import __version__
from .cli import add_subcommands, run_subcommand
from .config import load_config, load_ui_config
from .configure import Configurator, add_subcommand as add_configure
from .errors import PubError
from .log import setup_logging

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pubterm", description="Terminal client for the Public.com trading API")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("ui", help="Open the interactive terminal UI (default)")
    add_configure(subparsers)
    add_subcommands(subparsers)
    return parser


def _run_ui() -> None:
    from .ui import PubApp

    config = load_config()
    ui_config = load_ui_config()
    log.info("starting against %s", config.api_base_url)
    PubApp(config, ui_config).run()


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    log_path = setup_logging()
    log.info("pubterm %s (log: %s)", args.command or "ui", log_path)
    try:
        if args.command in (None, "ui"):
            _run_ui()
        elif args.command == "configure":
            Configurator().run(args)
        else:
            run_subcommand(args, load_config())
    except PubError as exc:
        log.error("%s failed: %s", args.command or "ui", exc)
        print(f"pubterm: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
