"""CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import List, Optional

from .autostart import is_autostart_enabled, remove_autostart, setup_autostart
from .capture import strategy_for_platform
from .config import DEFAULT_SETTINGS_PATH, load_settings, save_settings
from .logging_utils import setup_logging
from .server import CompanionServer, serve
from .service import CompanionService
from .session_io import render_archive

__version__ = "0.1.0"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="moment-companion")
    parser.add_argument(
        "--version", action="store_true", help="Print the version and exit."
    )
    parser.add_argument(
        "--settings", default=DEFAULT_SETTINGS_PATH, help="Service settings (YAML)."
    )
    parser.add_argument("--port", type=int, help="Override the listening port.")
    parser.add_argument("--debug", action="store_true", help="Verbose logging.")
    parser.add_argument(
        "--autostart",
        action="store_true",
        help="Register the companion to start at login.",
    )
    parser.add_argument(
        "--remove-autostart",
        action="store_true",
        help="Remove the login registration and exit.",
    )
    parser.add_argument(
        "--write-settings",
        action="store_true",
        help="Write the effective settings to the settings file and exit.",
    )
    parser.add_argument(
        "--render-archive",
        metavar="DIR",
        help="Rebuild archive.html from archive.json in DIR and exit.",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.version:
        print(f"moment-companion {__version__}")
        return 0
    if args.render_archive:
        print(render_archive(args.render_archive))
        return 0

    settings = load_settings(args.settings)
    if args.port:
        settings.port = args.port
    if args.write_settings:
        save_settings(args.settings, settings)
        print(args.settings)
        return 0

    debug = args.debug or settings.debug_logging
    logger, log_path = setup_logging(
        settings.log_dir, level=logging.DEBUG if debug else logging.INFO
    )
    logger.debug("Logging to %s", log_path)

    if args.remove_autostart:
        remove_autostart()
        return 0
    if args.autostart and not is_autostart_enabled():
        setup_autostart()

    service = CompanionService(settings.config_path, strategy_for_platform())
    server = CompanionServer(service, settings)
    try:
        asyncio.run(serve(server))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
