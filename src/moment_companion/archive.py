"""Meeting archive lifecycle."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .models import (
    ArchiveData,
    ArchiveEvent,
    MeetingInfo,
    ScreenshotEvent,
    ScreenshotRecord,
)
from .session_io import save_archive
from .storage import (
    ARCHIVE_JSON,
    IMAGES_DIRNAME,
    archive_dirname,
    ensure_dir,
    utc_now_iso,
)

logger = logging.getLogger("moment_companion")


def _unused_dir(directory: str) -> str:
    # Earlier archives of the same meeting and day keep their own folder.
    candidate = directory
    suffix = 2
    while os.path.exists(os.path.join(candidate, ARCHIVE_JSON)):
        candidate = f"{directory}-{suffix}"
        suffix += 1
    return candidate


@dataclass
class ArchiveSession:
    directory: str
    data: ArchiveData

    @property
    def images_dir(self) -> str:
        return os.path.join(self.directory, IMAGES_DIRNAME)


class ArchiveEngine:
    """Owns the single active archive, if any.

    Every mutation rewrites ``archive.json`` and ``archive.html`` in full, so
    the files on disk always describe a consistent snapshot. Write errors are
    not caught here.
    """

    def __init__(self) -> None:
        self.active: Optional[ArchiveSession] = None

    @property
    def is_active(self) -> bool:
        return self.active is not None

    def start(
        self,
        save_dir: str,
        topic: str,
        meeting_id: str,
        meeting_uuid: str,
        start_time: str,
    ) -> str:
        if self.active is not None:
            logger.warning(
                "Archive already active (%s), ending it first", self.active.directory
            )
            self.end()

        directory = _unused_dir(
            os.path.join(save_dir, archive_dirname(topic, start_time))
        )
        ensure_dir(os.path.join(directory, IMAGES_DIRNAME))
        data = ArchiveData(
            meeting=MeetingInfo(
                topic=topic,
                id=meeting_id,
                uuid=meeting_uuid,
                start_time=start_time,
            )
        )
        self.active = ArchiveSession(directory=directory, data=data)
        self.persist()
        logger.info("Archive started: %s", directory)
        return directory

    def persist(self) -> None:
        if self.active is None:
            return
        save_archive(self.active.directory, self.active.data)

    def add_event(self, event: ArchiveEvent) -> bool:
        if self.active is None:
            return False
        self.active.data.events.append(event)
        self.persist()
        return True

    def add_screenshot(
        self, filename: str, timestamp: str, trigger: str, participant_count: int
    ) -> None:
        if self.active is None:
            return
        self.active.data.screenshots.append(
            ScreenshotRecord(
                filename=filename,
                timestamp=timestamp,
                trigger=trigger,
                participant_count=participant_count,
            )
        )
        self.active.data.events.append(
            ScreenshotEvent(
                timestamp=timestamp,
                trigger=trigger,
                filename=filename,
                participant_count=participant_count,
            )
        )
        self.persist()

    def remove_screenshot(self, filename: str) -> bool:
        if self.active is None:
            return False
        data = self.active.data
        data.screenshots = [s for s in data.screenshots if s.filename != filename]
        data.events = [
            ev
            for ev in data.events
            if not (isinstance(ev, ScreenshotEvent) and ev.filename == filename)
        ]
        self.persist()
        return True

    def end(self, end_time: Optional[str] = None) -> Optional[str]:
        if self.active is None:
            return None
        session = self.active
        session.data.meeting.end_time = end_time or utc_now_iso()
        self.persist()
        self.active = None
        logger.info("Archive ended: %s", session.directory)
        return session.directory
