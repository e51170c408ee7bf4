import pytest

from moment_companion.models import (
    ArchiveData,
    EventError,
    MeetingInfo,
    ReactionEvent,
    ScreenshotEvent,
    ScreenshotRecord,
    archive_from_dict,
    event_from_dict,
    event_to_dict,
)


def test_event_type_is_fixed_by_class():
    event = ReactionEvent(
        timestamp="2024-03-15T10:00:00Z", name="", uuid="", emoji="🎉", unicode=""
    )
    assert event.type == "reaction"
    assert event_to_dict(event)["type"] == "reaction"


def test_optional_text_fields_default_to_empty():
    event = event_from_dict({"type": "participant-leave", "timestamp": "t"})
    assert event.name == ""
    assert event.uuid == ""


@pytest.mark.parametrize(
    "payload,message",
    [
        ("join", "Event must be an object"),
        ({"type": "reaction"}, "Missing field: timestamp"),
        ({"type": "feedback", "timestamp": "t", "name": 3}, "Field name must be a string"),
        (
            {"type": "screenshot", "timestamp": "t", "trigger": "peak", "filename": "a"},
            "Field participantCount must be a number",
        ),
        ({"type": "join", "timestamp": "t"}, "Unknown event type: join"),
    ],
)
def test_event_from_dict_errors(payload, message):
    with pytest.raises(EventError, match=message):
        event_from_dict(payload)


def test_archive_dict_uses_camel_case_keys():
    data = ArchiveData(
        meeting=MeetingInfo(topic="T", id="1", uuid="u", start_time="s"),
        events=[ScreenshotEvent(timestamp="s", trigger="peak", filename="a.png", participant_count=4)],
        screenshots=[ScreenshotRecord(filename="a.png", timestamp="s", trigger="peak", participant_count=4)],
    )
    payload = data.to_dict()
    assert payload["meeting"]["startTime"] == "s"
    assert payload["meeting"]["endTime"] is None
    assert payload["events"][0]["participantCount"] == 4
    assert archive_from_dict(payload) == data
