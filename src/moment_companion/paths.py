"""Containment checks for paths derived from remote input."""

from __future__ import annotations

import os
from typing import Optional


def _is_same_or_child(target: str, base: str) -> bool:
    if target == base:
        return True
    prefix = base if base.endswith(os.sep) else base + os.sep
    return target.startswith(prefix)


def is_path_within(target: str, base: str) -> bool:
    """Return True if ``target`` is ``base`` or lies underneath it.

    Both paths are symlink-resolved. Components that do not exist yet (checks
    made before a file is created) are resolved lexically.
    """
    return _is_same_or_child(os.path.realpath(target), os.path.realpath(base))


def normalize_save_dir(path: str) -> str:
    return os.path.realpath(os.path.expanduser(path))


def is_valid_save_dir(path: str, home: Optional[str] = None) -> bool:
    """Return True if ``path`` resolves, symlinks included, to home or below it."""
    if not isinstance(path, str) or not path.strip():
        return False
    root = os.path.realpath(home or os.path.expanduser("~"))
    return _is_same_or_child(normalize_save_dir(path), root)


def resolve_client_path(save_dir: str, path: str) -> Optional[str]:
    """Resolve a client-supplied path against the save root.

    Relative paths are joined onto ``save_dir``; absolute paths are kept.
    Returns None when the result escapes the save root.
    """
    target = os.path.abspath(os.path.join(save_dir, path))
    if not is_path_within(target, save_dir):
        return None
    return target
