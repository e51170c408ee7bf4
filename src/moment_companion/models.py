"""Data models for Moment archives."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

TRIGGERS = ("reaction", "peak", "manual")


class EventError(ValueError):
    """Raised when an archive event payload is malformed."""


def _text(data: Dict[str, Any], key: str, default: Optional[str] = None) -> str:
    value = data.get(key, default)
    if value is None:
        raise EventError(f"Missing field: {key}")
    if not isinstance(value, str):
        raise EventError(f"Field {key} must be a string")
    return value


def _count(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EventError(f"Field {key} must be a number")
    return int(value)


@dataclass
class Speaker:
    name: str
    uuid: str


@dataclass
class ParticipantJoinEvent:
    timestamp: str
    name: str
    uuid: str
    role: str
    type: str = field(default="participant-join", init=False)


@dataclass
class ParticipantLeaveEvent:
    timestamp: str
    name: str
    uuid: str
    type: str = field(default="participant-leave", init=False)


@dataclass
class ReactionEvent:
    timestamp: str
    name: str
    uuid: str
    emoji: str
    unicode: str
    type: str = field(default="reaction", init=False)


@dataclass
class FeedbackEvent:
    timestamp: str
    name: str
    uuid: str
    feedback: str
    type: str = field(default="feedback", init=False)


@dataclass
class SpeakerChangeEvent:
    timestamp: str
    speakers: List[Speaker]
    type: str = field(default="speaker-change", init=False)


@dataclass
class ScreenshotEvent:
    timestamp: str
    trigger: str
    filename: str
    participant_count: int
    type: str = field(default="screenshot", init=False)


ArchiveEvent = Union[
    ParticipantJoinEvent,
    ParticipantLeaveEvent,
    ReactionEvent,
    FeedbackEvent,
    SpeakerChangeEvent,
    ScreenshotEvent,
]


def event_from_dict(data: Any) -> ArchiveEvent:
    if not isinstance(data, dict):
        raise EventError("Event must be an object")
    kind = data.get("type")
    timestamp = _text(data, "timestamp")
    if kind == "participant-join":
        return ParticipantJoinEvent(
            timestamp=timestamp,
            name=_text(data, "name", ""),
            uuid=_text(data, "uuid", ""),
            role=_text(data, "role", ""),
        )
    if kind == "participant-leave":
        return ParticipantLeaveEvent(
            timestamp=timestamp,
            name=_text(data, "name", ""),
            uuid=_text(data, "uuid", ""),
        )
    if kind == "reaction":
        return ReactionEvent(
            timestamp=timestamp,
            name=_text(data, "name", ""),
            uuid=_text(data, "uuid", ""),
            emoji=_text(data, "emoji", ""),
            unicode=_text(data, "unicode", ""),
        )
    if kind == "feedback":
        return FeedbackEvent(
            timestamp=timestamp,
            name=_text(data, "name", ""),
            uuid=_text(data, "uuid", ""),
            feedback=_text(data, "feedback", ""),
        )
    if kind == "speaker-change":
        raw = data.get("speakers", [])
        if not isinstance(raw, list):
            raise EventError("Field speakers must be a list")
        speakers = []
        for item in raw:
            if not isinstance(item, dict):
                raise EventError("Speaker entries must be objects")
            speakers.append(
                Speaker(name=_text(item, "name", ""), uuid=_text(item, "uuid", ""))
            )
        return SpeakerChangeEvent(timestamp=timestamp, speakers=speakers)
    if kind == "screenshot":
        return ScreenshotEvent(
            timestamp=timestamp,
            trigger=_text(data, "trigger"),
            filename=_text(data, "filename"),
            participant_count=_count(data, "participantCount"),
        )
    raise EventError(f"Unknown event type: {kind}")


def event_to_dict(event: ArchiveEvent) -> Dict[str, Any]:
    if isinstance(event, ParticipantJoinEvent):
        return {
            "type": event.type,
            "timestamp": event.timestamp,
            "name": event.name,
            "uuid": event.uuid,
            "role": event.role,
        }
    if isinstance(event, ParticipantLeaveEvent):
        return {
            "type": event.type,
            "timestamp": event.timestamp,
            "name": event.name,
            "uuid": event.uuid,
        }
    if isinstance(event, ReactionEvent):
        return {
            "type": event.type,
            "timestamp": event.timestamp,
            "name": event.name,
            "uuid": event.uuid,
            "emoji": event.emoji,
            "unicode": event.unicode,
        }
    if isinstance(event, FeedbackEvent):
        return {
            "type": event.type,
            "timestamp": event.timestamp,
            "name": event.name,
            "uuid": event.uuid,
            "feedback": event.feedback,
        }
    if isinstance(event, SpeakerChangeEvent):
        return {
            "type": event.type,
            "timestamp": event.timestamp,
            "speakers": [{"name": s.name, "uuid": s.uuid} for s in event.speakers],
        }
    return {
        "type": event.type,
        "timestamp": event.timestamp,
        "trigger": event.trigger,
        "filename": event.filename,
        "participantCount": event.participant_count,
    }


@dataclass
class ScreenshotRecord:
    filename: str
    timestamp: str
    trigger: str
    participant_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "timestamp": self.timestamp,
            "trigger": self.trigger,
            "participantCount": self.participant_count,
        }


@dataclass
class MeetingInfo:
    topic: str
    id: str
    uuid: str
    start_time: str
    end_time: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "id": self.id,
            "uuid": self.uuid,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }


@dataclass
class ArchiveData:
    meeting: MeetingInfo
    events: List[ArchiveEvent] = field(default_factory=list)
    screenshots: List[ScreenshotRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "meeting": self.meeting.to_dict(),
            "events": [event_to_dict(ev) for ev in self.events],
            "screenshots": [shot.to_dict() for shot in self.screenshots],
        }


def archive_from_dict(data: Dict[str, Any]) -> ArchiveData:
    meeting = data.get("meeting") or {}
    return ArchiveData(
        meeting=MeetingInfo(
            topic=meeting.get("topic", ""),
            id=meeting.get("id", ""),
            uuid=meeting.get("uuid", ""),
            start_time=meeting.get("startTime", ""),
            end_time=meeting.get("endTime"),
        ),
        events=[event_from_dict(ev) for ev in data.get("events", [])],
        screenshots=[
            ScreenshotRecord(
                filename=shot.get("filename", ""),
                timestamp=shot.get("timestamp", ""),
                trigger=shot.get("trigger", ""),
                participant_count=int(shot.get("participantCount", 0)),
            )
            for shot in data.get("screenshots", [])
        ],
    )
