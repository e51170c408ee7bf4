"""Control channel commands.

Inbound messages are JSON objects with a ``type`` field. ``parse_command``
validates the fields each command needs and returns a typed command, or
raises CommandError carrying the message to send back to the client.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .models import TRIGGERS, ArchiveEvent, EventError, event_from_dict
from .storage import parse_iso


class CommandError(ValueError):
    """Raised when an inbound message is malformed or out of policy."""


@dataclass(frozen=True)
class CaptureCommand:
    trigger: str
    timestamp: str
    participant_count: int
    meeting_topic: str
    participants: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class UpdateConfigCommand:
    fields: Dict[str, Any]


@dataclass(frozen=True)
class GetConfigCommand:
    pass


@dataclass(frozen=True)
class StartArchiveCommand:
    meeting_topic: str
    start_time: str
    meeting_id: str = ""
    meeting_uuid: str = ""


@dataclass(frozen=True)
class ArchiveEventCommand:
    event: ArchiveEvent


@dataclass(frozen=True)
class EndArchiveCommand:
    pass


@dataclass(frozen=True)
class DeleteScreenshotCommand:
    path: str


Command = Union[
    CaptureCommand,
    UpdateConfigCommand,
    GetConfigCommand,
    StartArchiveCommand,
    ArchiveEventCommand,
    EndArchiveCommand,
    DeleteScreenshotCommand,
]

CONFIG_FIELDS = ("saveDir", "captureMode", "videoMargins", "allowedReactions")


def _is_timestamp(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        parse_iso(value)
    except ValueError:
        return False
    return True


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_capture(msg: Dict[str, Any]) -> CaptureCommand:
    if (
        msg.get("trigger") not in TRIGGERS
        or not _is_timestamp(msg.get("timestamp"))
        or not isinstance(msg.get("meetingTopic"), str)
        or not _is_number(msg.get("participantCount"))
    ):
        raise CommandError("Invalid capture command")
    participants = msg.get("participants") or []
    if not isinstance(participants, list):
        raise CommandError("Invalid capture command")
    return CaptureCommand(
        trigger=msg["trigger"],
        timestamp=msg["timestamp"],
        participant_count=int(msg["participantCount"]),
        meeting_topic=msg["meetingTopic"],
        participants=[str(name) for name in participants],
    )


def _parse_start_archive(msg: Dict[str, Any]) -> StartArchiveCommand:
    if not isinstance(msg.get("meetingTopic"), str) or not _is_timestamp(
        msg.get("startTime")
    ):
        raise CommandError("Invalid start-archive command")
    return StartArchiveCommand(
        meeting_topic=msg["meetingTopic"],
        start_time=msg["startTime"],
        meeting_id=str(msg.get("meetingId") or ""),
        meeting_uuid=str(msg.get("meetingUUID") or ""),
    )


def _parse_archive_event(msg: Dict[str, Any]) -> ArchiveEventCommand:
    try:
        return ArchiveEventCommand(event=event_from_dict(msg.get("event")))
    except EventError as exc:
        raise CommandError(f"Invalid archive event: {exc}") from exc


def _parse_delete(msg: Dict[str, Any]) -> DeleteScreenshotCommand:
    path = msg.get("path")
    if not isinstance(path, str) or not path:
        raise CommandError("Path outside save directory")
    return DeleteScreenshotCommand(path=path)


def parse_command(raw: Union[str, bytes, Dict[str, Any]]) -> Command:
    if isinstance(raw, dict):
        msg: Optional[Any] = raw
    else:
        try:
            msg = json.loads(raw)
        except ValueError as exc:
            raise CommandError("Invalid JSON") from exc
    if not isinstance(msg, dict):
        raise CommandError("Message must be a JSON object")

    kind = msg.get("type")
    if kind == "capture":
        return _parse_capture(msg)
    if kind == "update-config":
        return UpdateConfigCommand(
            fields={key: msg[key] for key in CONFIG_FIELDS if key in msg}
        )
    if kind == "get-config":
        return GetConfigCommand()
    if kind == "start-archive":
        return _parse_start_archive(msg)
    if kind == "archive-event":
        return _parse_archive_event(msg)
    if kind == "end-archive":
        return EndArchiveCommand()
    if kind == "delete-screenshot":
        return _parse_delete(msg)
    raise CommandError(f"Unknown command: {kind}")


def config_message(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "config", **config_dict}


def error_message(message: str) -> Dict[str, Any]:
    return {"type": "error", "message": message}
