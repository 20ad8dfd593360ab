"""Daily housekeeping: archive old rows and delete old saved files."""

from __future__ import annotations

import os
import sqlite3
from datetime import datetime, timedelta
from pathlib import Path

_RETENTION = timedelta(hours=24)


def _cutoff_ms(now: datetime | None) -> int:
    now = datetime.now() if now is None else now
    return int((now - _RETENTION).timestamp() * 1000)


def _migrate(conn: sqlite3.Connection, source: str, backup: str, column: str, cutoff: int) -> int:
    (count,) = conn.execute(
        f"SELECT COUNT(*) FROM {source} WHERE {column} < ?", (cutoff,)
    ).fetchone()
    if count == 0:
        return 0
    with conn:
        conn.execute(
            f"INSERT INTO {backup} SELECT * FROM {source} WHERE {column} < ?", (cutoff,)
        )
        conn.execute(f"DELETE FROM {source} WHERE {column} < ?", (cutoff,))
    return count


def migrate_img_task_data(conn: sqlite3.Connection, now: datetime | None = None) -> int:
    """Move tasks not updated for 24 hours into ``img_task_backup``; returns the count."""
    return _migrate(conn, "img_task", "img_task_backup", "updated_at", _cutoff_ms(now))


def migrate_order_data(conn: sqlite3.Connection, now: datetime | None = None) -> int:
    """Move orders created over 24 hours ago into ``order_backup``; returns the count."""
    return _migrate(conn, '"order"', "order_backup", "created_at", _cutoff_ms(now))


def del_save_files(root="./save", now: datetime | None = None) -> list[str]:
    """Delete files under ``root`` last modified over 24 hours ago; returns their paths."""
    root_path = Path(root)
    if not root_path.exists():
        raise FileNotFoundError(f"directory not found: {root_path}")
    now = datetime.now() if now is None else now
    cutoff = (now - _RETENTION).timestamp()
    removed: list[str] = []
    for directory, _dirs, files in os.walk(root_path):
        for name in sorted(files):
            path = os.path.join(directory, name)
            if os.stat(path).st_mtime < cutoff:
                os.remove(path)
                removed.append(path)
    return removed