"""Per-day usage counters for each tool, flushed into the ``tools_data_use`` table."""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime

_COUNTERS = (
    "call",
    "success",
    "pay",
    "pay_amount",
    "refund",
    "refund_amount",
    "download",
    "api",
)


def today_timestamp(now: datetime | None = None) -> int:
    """Unix timestamp of local midnight on the day of ``now`` (default: today)."""
    now = datetime.now() if now is None else now
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp())


@dataclass
class ToolUsage:
    """Counters of one tool on one day."""

    tool_id: int
    date: int
    call: int = 0
    success: int = 0
    pay: int = 0
    pay_amount: int = 0
    refund: int = 0
    refund_amount: int = 0
    download: int = 0
    api: int = 0


class ToolStatistics:
    """Thread-safe in-memory counters keyed by day and tool."""

    def __init__(self, conn: sqlite3.Connection, zero_stamp: int | None = None) -> None:
        self.conn = conn
        self.zero_stamp = today_timestamp() if zero_stamp is None else zero_stamp
        self._usage: dict[int, dict[int, ToolUsage]] = {}
        self._lock = threading.Lock()

    def _bump(self, tool_id: int, counter: str, amount: int = 1) -> None:
        with self._lock:
            day = self._usage.setdefault(self.zero_stamp, {})
            usage = day.get(tool_id)
            if usage is None:
                usage = day[tool_id] = ToolUsage(tool_id=tool_id, date=self.zero_stamp)
            setattr(usage, counter, getattr(usage, counter) + amount)

    def tool_call(self, tool_id: int) -> None:
        """Count one call of a tool."""
        self._bump(tool_id, "call")

    def tool_call_success(self, tool_id: int) -> None:
        """Count one successful call."""
        self._bump(tool_id, "success")

    def tool_pay(self, tool_id: int) -> None:
        """Count one payment."""
        self._bump(tool_id, "pay")

    def tool_pay_amount(self, tool_id: int, amount: int) -> None:
        """Add a paid amount in cents."""
        self._bump(tool_id, "pay_amount", amount)

    def tool_refund(self, tool_id: int) -> None:
        """Count one refund."""
        self._bump(tool_id, "refund")

    def tool_refund_amount(self, tool_id: int, amount: int) -> None:
        """Add a refunded amount in cents."""
        self._bump(tool_id, "refund_amount", amount)

    def tool_download(self, tool_id: int) -> None:
        """Count one result download."""
        self._bump(tool_id, "download")

    def out_api_call(self, tool_id: int) -> None:
        """Count one successful call of an external API."""
        self._bump(tool_id, "api")

    def summary(self, timestamp: int) -> None:
        """Merge the counters of day ``timestamp`` into the database and forget them."""
        columns = ", ".join(f'"{name}"' for name in _COUNTERS)
        with self._lock:
            day = self._usage.get(timestamp, {})
            with self.conn:
                for usage in day.values():
                    row = self.conn.execute(
                        f"SELECT {columns} FROM tools_data_use WHERE tool_id = ? AND date = ?",
                        (usage.tool_id, usage.date),
                    ).fetchone()
                    values = [getattr(usage, name) for name in _COUNTERS]
                    if row is None:
                        placeholders = ", ".join("?" for _ in range(len(_COUNTERS) + 2))
                        self.conn.execute(
                            f"INSERT INTO tools_data_use (tool_id, date, {columns}) "
                            f"VALUES ({placeholders})",
                            (usage.tool_id, usage.date, *values),
                        )
                    else:
                        merged = [new + (old or 0) for new, old in zip(values, row)]
                        assignments = ", ".join(f'"{name}" = ?' for name in _COUNTERS)
                        self.conn.execute(
                            f"UPDATE tools_data_use SET {assignments} WHERE tool_id = ? AND date = ?",
                            (*merged, usage.tool_id, usage.date),
                        )
            self._usage.pop(timestamp, None)