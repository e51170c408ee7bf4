"""Storage and naming utilities."""

from __future__ import annotations

import os
import re
from datetime import datetime, timezone

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9\s\-_]")
_WHITESPACE = re.compile(r"\s+")

ARCHIVE_JSON = "archive.json"
ARCHIVE_HTML = "archive.html"
IMAGES_DIRNAME = "images"


def sanitize(name: str) -> str:
    value = _UNSAFE_CHARS.sub("", name or "").strip()
    return _WHITESPACE.sub("-", value) or "meeting"


def parse_iso(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into a local, timezone-aware datetime.

    A trailing ``Z`` is accepted. Naive values are taken as local time.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text).astimezone()


def format_timestamp(iso: str) -> str:
    return parse_iso(iso).strftime("%Y-%m-%d_%H-%M-%S")


def date_slug(iso: str) -> str:
    return format_timestamp(iso).split("_")[0]


def utc_now_iso(dt: datetime | None = None) -> str:
    now = (dt or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def screenshot_basename(timestamp: str, trigger: str) -> str:
    return f"{format_timestamp(timestamp)}_{trigger}"


def archive_dirname(topic: str, start_time: str) -> str:
    return f"{sanitize(topic)}-{date_slug(start_time)}"


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)
