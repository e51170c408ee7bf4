import json
import os

import pytest

from moment_companion.config import load_config
from moment_companion.models import ParticipantJoinEvent
from moment_companion.protocol import (
    ArchiveEventCommand,
    CaptureCommand,
    CommandError,
    DeleteScreenshotCommand,
    StartArchiveCommand,
)
from moment_companion.session_io import load_archive
from moment_companion.storage import screenshot_basename

STAMP = "2024-03-15T10:05:00.000Z"


def _capture(topic="Weekly Sync"):
    return CaptureCommand(
        trigger="reaction",
        timestamp=STAMP,
        participant_count=2,
        meeting_topic=topic,
        participants=["Alice", "Bob"],
    )


async def test_capture_without_archive_writes_png_and_sidecar(service, save_dir):
    reply = await service.capture(_capture("Weekly Sync!"))

    basename = screenshot_basename(STAMP, "reaction")
    directory = os.path.join(save_dir, "Weekly-Sync")
    assert reply["type"] == "captured"
    assert reply["path"] == os.path.join(directory, f"{basename}.png")
    assert reply["imageUrl"].startswith("/companion-api/image?path=Weekly-Sync")
    assert os.path.isfile(reply["path"])

    with open(os.path.join(directory, f"{basename}.json"), "r", encoding="utf-8") as handle:
        sidecar = json.load(handle)
    assert sidecar == {
        "timestamp": STAMP,
        "trigger": "reaction",
        "participants": ["Alice", "Bob"],
        "participantCount": 2,
        "meetingTopic": "Weekly Sync!",
        "captureMode": "screen",
    }


async def test_capture_during_archive_goes_to_images(service):
    started = await service.start_archive(
        StartArchiveCommand(meeting_topic="Standup", start_time=STAMP)
    )
    directory = started["path"]

    reply = await service.capture(_capture())

    filename = f"{screenshot_basename(STAMP, 'reaction')}.png"
    assert reply["path"] == os.path.join(directory, "images", filename)
    assert not os.path.exists(reply["path"][:-4] + ".json")
    data = load_archive(directory)
    assert [shot.filename for shot in data.screenshots] == [filename]
    assert data.events[-1].type == "screenshot"


async def test_archive_event_reply_reports_activity(service):
    event = ParticipantJoinEvent(timestamp=STAMP, name="Alice", uuid="a", role="host")

    idle = await service.archive_event(ArchiveEventCommand(event=event))
    assert idle == {
        "type": "archive-event-recorded",
        "eventType": "participant-join",
        "active": False,
    }

    await service.start_archive(StartArchiveCommand(meeting_topic="Standup", start_time=STAMP))
    active = await service.archive_event(ArchiveEventCommand(event=event))
    assert active["active"] is True


async def test_end_archive_without_active_returns_null_path(service):
    assert await service.end_archive() == {"type": "archive-ended", "path": None}


async def test_delete_screenshot_removes_file_and_archive_entry(service, save_dir):
    started = await service.start_archive(
        StartArchiveCommand(meeting_topic="Standup", start_time=STAMP)
    )
    captured = await service.capture(_capture())
    rel = os.path.relpath(captured["path"], save_dir)

    reply = await service.delete_screenshot(DeleteScreenshotCommand(path=rel))

    assert reply == {"type": "deleted", "path": rel}
    assert not os.path.exists(captured["path"])
    data = load_archive(started["path"])
    assert data.screenshots == []
    assert all(ev.type != "screenshot" for ev in data.events)


async def test_delete_screenshot_rejects_escape(service, tmp_path):
    outside = tmp_path / "secret.png"
    outside.write_bytes(b"x")
    with pytest.raises(CommandError, match="Path outside save directory"):
        await service.delete_screenshot(DeleteScreenshotCommand(path="../secret.png"))
    assert outside.exists()


async def test_delete_missing_file_reports_failure(service):
    with pytest.raises(CommandError, match="Failed to delete file"):
        await service.delete_screenshot(DeleteScreenshotCommand(path="nope.png"))


def test_update_config_persists(service, tmp_path):
    reply = service.update_config({"captureMode": "video", "videoMargins": {"top": 80}})

    assert reply["type"] == "config"
    assert reply["captureMode"] == "video"
    assert reply["videoMargins"]["top"] == 80
    assert reply["videoMargins"]["bottom"] == 50
    saved = load_config(str(tmp_path / "config.json"))
    assert saved.capture_mode == "video"


def test_update_config_rejects_save_dir_outside_home(service, tmp_path):
    before = service.config
    with pytest.raises(CommandError, match="within home directory"):
        service.update_config({"saveDir": "/definitely/not/home"})
    assert service.config is before
    assert not (tmp_path / "config.json").exists()


async def test_shutdown_ends_active_archive(service):
    started = await service.start_archive(
        StartArchiveCommand(meeting_topic="Standup", start_time=STAMP)
    )
    await service.shutdown()
    assert not service.archive.is_active
    assert load_archive(started["path"]).meeting.end_time is not None
