"""Login auto-start registration (macOS LaunchAgent, Windows Startup folder)."""

from __future__ import annotations

import logging
import os
import plistlib
import sys
from typing import List, Optional

logger = logging.getLogger("moment_companion")

LABEL = "space.gtools.moment.companion"


def plist_path() -> str:
    return os.path.join(
        os.path.expanduser("~"), "Library", "LaunchAgents", f"{LABEL}.plist"
    )


def startup_script_path() -> str:
    appdata = os.environ.get("APPDATA") or os.path.join(
        os.path.expanduser("~"), "AppData", "Roaming"
    )
    return os.path.join(
        appdata,
        "Microsoft",
        "Windows",
        "Start Menu",
        "Programs",
        "Startup",
        "Moment Companion.vbs",
    )


def _autostart_path(platform: str) -> Optional[str]:
    if platform == "darwin":
        return plist_path()
    if platform.startswith("win"):
        return startup_script_path()
    return None


def launch_command() -> List[str]:
    # Frozen builds are started directly; otherwise run the module.
    if getattr(sys, "frozen", False):
        return [sys.executable]
    return [sys.executable, "-m", "moment_companion.cli"]


def is_autostart_enabled(platform: Optional[str] = None) -> bool:
    path = _autostart_path(platform or sys.platform)
    return bool(path) and os.path.isfile(path)


def render_launch_agent(command: List[str]) -> bytes:
    log_path = os.path.join(os.path.expanduser("~"), ".moment-companion.log")
    return plistlib.dumps(
        {
            "Label": LABEL,
            "ProgramArguments": command,
            "RunAtLoad": True,
            "KeepAlive": False,
            "StandardOutPath": log_path,
            "StandardErrorPath": log_path,
        }
    )


def render_startup_script(command: List[str]) -> str:
    quoted = " ".join(f'""{part}""' for part in command)
    return (
        'Set WshShell = CreateObject("WScript.Shell")\r\n'
        f'WshShell.Run "{quoted}", 0, False'
    )


def setup_autostart(
    platform: Optional[str] = None, command: Optional[List[str]] = None
) -> Optional[str]:
    platform = platform or sys.platform
    command = command or launch_command()
    path = _autostart_path(platform)
    if path is None:
        logger.info("Auto-start is not supported on %s", platform)
        return None

    os.makedirs(os.path.dirname(path), exist_ok=True)
    if platform == "darwin":
        with open(path, "wb") as handle:
            handle.write(render_launch_agent(command))
        logger.info("Auto-start configured (macOS LaunchAgent)")
    else:
        with open(path, "w", encoding="utf-8", newline="") as handle:
            handle.write(render_startup_script(command))
        logger.info("Auto-start configured (Windows Startup)")
    return path


def remove_autostart(platform: Optional[str] = None) -> bool:
    path = _autostart_path(platform or sys.platform)
    if path is None:
        return False
    try:
        os.unlink(path)
    except FileNotFoundError:
        return False
    logger.info("Auto-start removed: %s", path)
    return True
