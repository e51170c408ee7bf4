"""Command handling for the companion.

``CompanionService`` owns the mutable state (config and active archive) and
turns typed commands into reply messages. It knows nothing about the
transport; the server feeds it commands and delivers its replies.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Dict, Optional
from urllib.parse import quote

from .archive import ArchiveEngine
from .capture import CaptureStrategy, take_screenshot
from .config import (
    Config,
    ConfigError,
    apply_config_update,
    load_config,
    save_config,
)
from .paths import is_path_within, resolve_client_path
from .protocol import (
    ArchiveEventCommand,
    CaptureCommand,
    CommandError,
    DeleteScreenshotCommand,
    StartArchiveCommand,
    config_message,
)
from .session_io import save_sidecar
from .storage import ensure_dir, sanitize, screenshot_basename

logger = logging.getLogger("moment_companion")

IMAGE_URL_PREFIX = "/companion-api/image?path="


class CompanionService:
    def __init__(
        self,
        config_path: str,
        strategy: CaptureStrategy,
        config: Optional[Config] = None,
        home: Optional[str] = None,
    ):
        self.config_path = config_path
        if config is None:
            config = load_config(config_path, home=home)
        self.config = config
        self.strategy = strategy
        self.home = home
        self.archive = ArchiveEngine()
        self._archive_lock = asyncio.Lock()

    def config_payload(self) -> Dict[str, Any]:
        return config_message(self.config.to_dict())

    def image_url(self, path: str) -> str:
        save_dir = self.config.save_dir.rstrip(os.sep)
        relative = path
        if path.startswith(save_dir + os.sep):
            relative = path[len(save_dir) + 1 :]
        return IMAGE_URL_PREFIX + quote(relative, safe="-_.!~*'()")

    async def capture(self, cmd: CaptureCommand) -> Dict[str, Any]:
        basename = screenshot_basename(cmd.timestamp, cmd.trigger)
        filename = f"{basename}.png"
        async with self._archive_lock:
            session = self.archive.active
            if session is not None:
                ensure_dir(session.images_dir)
                png_path = os.path.join(session.images_dir, filename)
                await self._take(png_path)
                self.archive.add_screenshot(
                    filename, cmd.timestamp, cmd.trigger, cmd.participant_count
                )
            else:
                directory = os.path.join(self.config.save_dir, sanitize(cmd.meeting_topic))
                ensure_dir(directory)
                png_path = os.path.join(directory, filename)
                await self._take(png_path)
                save_sidecar(
                    os.path.join(directory, f"{basename}.json"),
                    {
                        "timestamp": cmd.timestamp,
                        "trigger": cmd.trigger,
                        "participants": list(cmd.participants),
                        "participantCount": cmd.participant_count,
                        "meetingTopic": cmd.meeting_topic,
                        "captureMode": self.config.capture_mode,
                    },
                )
        logger.info("Captured: %s", png_path)
        return {
            "type": "captured",
            "timestamp": cmd.timestamp,
            "path": png_path,
            "imageUrl": self.image_url(png_path),
        }

    async def _take(self, path: str) -> None:
        await take_screenshot(
            path,
            self.config.capture_mode,
            self.config.video_margins,
            self.strategy,
        )

    def update_config(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        try:
            updated = apply_config_update(self.config, fields, home=self.home)
        except ConfigError as exc:
            raise CommandError(str(exc)) from exc
        self.config = updated
        save_config(self.config_path, self.config)
        logger.info(
            "Config updated: mode=%s, dir=%s",
            self.config.capture_mode,
            self.config.save_dir,
        )
        return self.config_payload()

    async def start_archive(self, cmd: StartArchiveCommand) -> Dict[str, Any]:
        async with self._archive_lock:
            directory = self.archive.start(
                self.config.save_dir,
                cmd.meeting_topic,
                cmd.meeting_id,
                cmd.meeting_uuid,
                cmd.start_time,
            )
        return {"type": "archive-started", "path": directory}

    async def archive_event(self, cmd: ArchiveEventCommand) -> Dict[str, Any]:
        async with self._archive_lock:
            recorded = self.archive.add_event(cmd.event)
        return {
            "type": "archive-event-recorded",
            "eventType": cmd.event.type,
            "active": recorded,
        }

    async def end_archive(self) -> Dict[str, Any]:
        async with self._archive_lock:
            directory = self.archive.end()
        return {"type": "archive-ended", "path": directory}

    async def delete_screenshot(self, cmd: DeleteScreenshotCommand) -> Dict[str, Any]:
        target = resolve_client_path(self.config.save_dir, cmd.path)
        if target is None:
            raise CommandError("Path outside save directory")
        async with self._archive_lock:
            try:
                os.unlink(target)
            except OSError as exc:
                logger.warning("Delete failed for %s: %s", target, exc)
                raise CommandError("Failed to delete file") from exc
            session = self.archive.active
            if session is not None and is_path_within(target, session.directory):
                self.archive.remove_screenshot(os.path.basename(target))
        logger.info("Deleted: %s", target)
        return {"type": "deleted", "path": cmd.path}

    async def shutdown(self) -> None:
        async with self._archive_lock:
            self.archive.end()
