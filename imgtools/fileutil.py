"""Filesystem helpers."""

from __future__ import annotations

import os
from pathlib import Path


def path_exists_and_create(path) -> bool:
    """Ensure directory ``path`` exists, creating it when missing.

    Returns True; raises OSError when existence cannot be established or the
    directory cannot be created.
    """
    try:
        os.stat(path)
    except FileNotFoundError:
        os.makedirs(path, exist_ok=True)
    return True


def file_or_path_exists(path) -> bool:
    """True if ``path`` exists, False if it does not; other errors raise."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


def save_file_from_bytes(path, data: bytes) -> None:
    """Create or truncate ``path`` and write ``data`` to it."""
    Path(path).write_bytes(data)