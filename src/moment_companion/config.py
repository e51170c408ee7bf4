"""Configuration handling."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from .paths import is_valid_save_dir, normalize_save_dir

logger = logging.getLogger("moment_companion")

CAPTURE_MODES = ("window", "screen", "video")
MARGIN_EDGES = ("top", "bottom", "left", "right")

DEFAULT_CONFIG_PATH = os.path.join(os.path.expanduser("~"), ".moment-config.json")
DEFAULT_SETTINGS_DIR = os.path.join(os.path.expanduser("~"), ".moment-companion")
DEFAULT_SETTINGS_PATH = os.path.join(DEFAULT_SETTINGS_DIR, "settings.yml")


class ConfigError(ValueError):
    """Raised when a config update is rejected."""


@dataclass
class VideoMargins:
    top: int = 50
    bottom: int = 50
    left: int = 10
    right: int = 10


@dataclass
class Config:
    save_dir: str = field(
        default_factory=lambda: os.path.join(os.path.expanduser("~"), "Moment")
    )
    capture_mode: str = "window"
    video_margins: VideoMargins = field(default_factory=VideoMargins)
    allowed_reactions: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "saveDir": self.save_dir,
            "captureMode": self.capture_mode,
            "videoMargins": {
                "top": self.video_margins.top,
                "bottom": self.video_margins.bottom,
                "left": self.video_margins.left,
                "right": self.video_margins.right,
            },
        }
        if self.allowed_reactions is not None:
            data["allowedReactions"] = list(self.allowed_reactions)
        return data


@dataclass
class CompanionSettings:
    host: str = "127.0.0.1"
    port: int = 54321
    idle_timeout_seconds: float = 60.0
    allowed_origins: List[str] = field(
        default_factory=lambda: [
            "https://moment.gtools.space",
            "http://localhost:3000",
            "https://localhost:3000",
        ]
    )
    allowed_origin_suffixes: List[str] = field(
        default_factory=lambda: [".trycloudflare.com"]
    )
    config_path: str = DEFAULT_CONFIG_PATH
    log_dir: str = os.path.join(DEFAULT_SETTINGS_DIR, "logs")
    debug_logging: bool = False


def _merge_margins(current: VideoMargins, update: Any) -> VideoMargins:
    if not isinstance(update, dict):
        return current
    values = {edge: getattr(current, edge) for edge in MARGIN_EDGES}
    for edge in MARGIN_EDGES:
        value = update.get(edge)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            values[edge] = int(value)
    return VideoMargins(**values)


def _reactions(value: Any) -> Optional[List[str]]:
    if value is None:
        return None
    if not isinstance(value, list):
        raise ConfigError("allowedReactions must be a list")
    return [str(item) for item in value]


def config_from_dict(data: Dict[str, Any], home: Optional[str] = None) -> Config:
    config = Config()
    save_dir = data.get("saveDir")
    if isinstance(save_dir, str) and save_dir:
        if is_valid_save_dir(save_dir, home=home):
            config.save_dir = normalize_save_dir(save_dir)
        else:
            logger.warning("Ignoring saveDir outside home directory: %s", save_dir)
    if data.get("captureMode") in CAPTURE_MODES:
        config.capture_mode = data["captureMode"]
    config.video_margins = _merge_margins(config.video_margins, data.get("videoMargins"))
    try:
        config.allowed_reactions = _reactions(data.get("allowedReactions"))
    except ConfigError:
        config.allowed_reactions = None
    return config


def load_config(
    path: str = DEFAULT_CONFIG_PATH, home: Optional[str] = None
) -> Config:
    """Load the user config, falling back to defaults on a missing or bad file.

    A ``saveDir`` that does not resolve under ``home`` is replaced by the default.
    """
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        logger.debug("Using default config (%s): %s", path, exc)
        return Config()
    if not isinstance(data, dict):
        return Config()
    return config_from_dict(data, home=home)


def save_config(path: str, config: Config) -> None:
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w", encoding="utf-8") as handle:
        json.dump(config.to_dict(), handle, indent=2)
    os.chmod(path, 0o600)


def apply_config_update(
    config: Config, update: Dict[str, Any], home: Optional[str] = None
) -> Config:
    """Validate an update-config payload and merge it into a new Config.

    A rejected ``saveDir`` raises ConfigError before anything is merged.
    Unknown capture modes are ignored.
    """
    save_dir = config.save_dir
    if update.get("saveDir"):
        if not is_valid_save_dir(update["saveDir"], home=home):
            raise ConfigError("Save directory must be within home directory")
        save_dir = normalize_save_dir(update["saveDir"])

    capture_mode = config.capture_mode
    if update.get("captureMode") in CAPTURE_MODES:
        capture_mode = update["captureMode"]

    allowed_reactions = config.allowed_reactions
    if "allowedReactions" in update:
        allowed_reactions = _reactions(update["allowedReactions"])

    return Config(
        save_dir=save_dir,
        capture_mode=capture_mode,
        video_margins=_merge_margins(config.video_margins, update.get("videoMargins")),
        allowed_reactions=allowed_reactions,
    )


def load_settings(path: str = DEFAULT_SETTINGS_PATH) -> CompanionSettings:
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.debug("Using default settings (%s): %s", path, exc)
        return CompanionSettings()
    if not isinstance(data, dict):
        return CompanionSettings()

    defaults = CompanionSettings()
    return CompanionSettings(
        host=str(data.get("host", defaults.host)),
        port=int(data.get("port", defaults.port)),
        idle_timeout_seconds=float(
            data.get("idle_timeout_seconds", defaults.idle_timeout_seconds)
        ),
        allowed_origins=list(data.get("allowed_origins", defaults.allowed_origins)),
        allowed_origin_suffixes=list(
            data.get("allowed_origin_suffixes", defaults.allowed_origin_suffixes)
        ),
        config_path=os.path.expanduser(data.get("config_path", defaults.config_path)),
        log_dir=os.path.expanduser(data.get("log_dir", defaults.log_dir)),
        debug_logging=bool(data.get("debug_logging", defaults.debug_logging)),
    )


def save_settings(path: str, settings: CompanionSettings) -> None:
    data = {
        "host": settings.host,
        "port": settings.port,
        "idle_timeout_seconds": settings.idle_timeout_seconds,
        "allowed_origins": list(settings.allowed_origins),
        "allowed_origin_suffixes": list(settings.allowed_origin_suffixes),
        "config_path": settings.config_path,
        "log_dir": settings.log_dir,
        "debug_logging": settings.debug_logging,
    }
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)
