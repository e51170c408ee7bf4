import json
import os

from moment_companion.archive import ArchiveEngine
from moment_companion.models import (
    ParticipantJoinEvent,
    ReactionEvent,
    ScreenshotEvent,
)
from moment_companion.session_io import load_archive
from moment_companion.storage import archive_dirname

START = "2024-03-15T10:00:00.000Z"


def _read(directory):
    with open(os.path.join(directory, "archive.json"), "r", encoding="utf-8") as handle:
        return json.load(handle)


def test_start_creates_directory_and_files(tmp_path):
    engine = ArchiveEngine()
    directory = engine.start(str(tmp_path), "Team Sync!", "42", "u-1", START)

    assert directory == os.path.join(str(tmp_path), archive_dirname("Team Sync!", START))
    assert os.path.isdir(os.path.join(directory, "images"))
    assert os.path.isfile(os.path.join(directory, "archive.html"))
    data = _read(directory)
    assert data["meeting"] == {
        "topic": "Team Sync!",
        "id": "42",
        "uuid": "u-1",
        "startTime": START,
        "endTime": None,
    }
    assert data["events"] == []
    assert data["screenshots"] == []
    assert engine.is_active


def test_events_and_screenshots_persist_in_order(tmp_path):
    engine = ArchiveEngine()
    directory = engine.start(str(tmp_path), "Standup", "1", "u", START)
    engine.add_event(
        ParticipantJoinEvent(timestamp=START, name="Alice", uuid="a", role="host")
    )
    engine.add_screenshot("shot.png", "2024-03-15T10:01:00.000Z", "peak", 3)
    engine.add_event(
        ReactionEvent(
            timestamp="2024-03-15T10:02:00.000Z",
            name="Bob",
            uuid="b",
            emoji="👍",
            unicode="U+1F44D",
        )
    )

    data = _read(directory)
    assert [ev["type"] for ev in data["events"]] == [
        "participant-join",
        "screenshot",
        "reaction",
    ]
    assert data["events"][1]["participantCount"] == 3
    assert data["screenshots"] == [
        {
            "filename": "shot.png",
            "timestamp": "2024-03-15T10:01:00.000Z",
            "trigger": "peak",
            "participantCount": 3,
        }
    ]
    with open(os.path.join(directory, "archive.html"), "r", encoding="utf-8") as handle:
        assert "Alice" in handle.read()


def test_add_event_without_archive_is_ignored():
    engine = ArchiveEngine()
    recorded = engine.add_event(
        ParticipantJoinEvent(timestamp=START, name="Alice", uuid="a", role="host")
    )
    assert recorded is False
    assert engine.end() is None


def test_remove_screenshot_only_drops_matching_filename(tmp_path):
    engine = ArchiveEngine()
    directory = engine.start(str(tmp_path), "Standup", "1", "u", START)
    engine.add_screenshot("a.png", START, "manual", 1)
    engine.add_screenshot("b.png", START, "manual", 1)

    assert engine.remove_screenshot("a.png")

    data = load_archive(directory)
    assert [shot.filename for shot in data.screenshots] == ["b.png"]
    shots = [ev for ev in data.events if isinstance(ev, ScreenshotEvent)]
    assert [ev.filename for ev in shots] == ["b.png"]


def test_end_sets_end_time_and_clears_active(tmp_path):
    engine = ArchiveEngine()
    directory = engine.start(str(tmp_path), "Standup", "1", "u", START)

    assert engine.end("2024-03-15T11:00:00.000Z") == directory
    assert not engine.is_active
    assert _read(directory)["meeting"]["endTime"] == "2024-03-15T11:00:00.000Z"


def test_end_without_time_uses_current_utc(tmp_path):
    engine = ArchiveEngine()
    directory = engine.start(str(tmp_path), "Standup", "1", "u", START)
    engine.end()
    end_time = _read(directory)["meeting"]["endTime"]
    assert end_time.endswith("Z")
    assert end_time > START


def test_start_while_active_ends_previous(tmp_path):
    engine = ArchiveEngine()
    first = engine.start(str(tmp_path), "First", "1", "u", START)
    second = engine.start(str(tmp_path), "Second", "2", "v", START)

    assert first != second
    assert _read(first)["meeting"]["endTime"] is not None
    assert _read(second)["meeting"]["endTime"] is None
    assert engine.active.directory == second


def test_restart_same_meeting_keeps_finished_archive(tmp_path):
    engine = ArchiveEngine()
    first = engine.start(str(tmp_path), "Standup", "1", "u", START)
    engine.add_event(
        ParticipantJoinEvent(timestamp=START, name="Alice", uuid="a", role="host")
    )
    second = engine.start(str(tmp_path), "Standup", "1", "u", "2024-03-15T11:00:00.000Z")

    assert second == first + "-2"
    finished = _read(first)
    assert finished["meeting"]["startTime"] == START
    assert finished["meeting"]["endTime"] is not None
    assert [ev["name"] for ev in finished["events"]] == ["Alice"]
    assert _read(second)["events"] == []

    engine.end()
    third = engine.start(str(tmp_path), "Standup", "1", "u", START)
    assert third == first + "-3"
