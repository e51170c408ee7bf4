"""Archive and sidecar persistence."""

from __future__ import annotations

import json
import os
from typing import Any, Dict

from .models import ArchiveData, archive_from_dict
from .renderer import build_archive_html
from .storage import ARCHIVE_HTML, ARCHIVE_JSON


def save_archive(directory: str, data: ArchiveData) -> None:
    with open(os.path.join(directory, ARCHIVE_JSON), "w", encoding="utf-8") as handle:
        json.dump(data.to_dict(), handle, indent=2)
    with open(os.path.join(directory, ARCHIVE_HTML), "w", encoding="utf-8") as handle:
        handle.write(build_archive_html(data))


def load_archive(directory: str) -> ArchiveData:
    with open(os.path.join(directory, ARCHIVE_JSON), "r", encoding="utf-8") as handle:
        return archive_from_dict(json.load(handle))


def save_sidecar(path: str, metadata: Dict[str, Any]) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(metadata, handle, indent=2)


def render_archive(directory: str) -> str:
    """Rebuild ``archive.html`` from the ``archive.json`` next to it."""
    save_archive(directory, load_archive(directory))
    return os.path.join(directory, ARCHIVE_HTML)
