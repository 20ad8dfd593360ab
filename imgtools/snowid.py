"""Time-ordered 64-bit identifiers in the snowflake layout.

An identifier is ``(milliseconds since base) << (worker bits + seq bits)``,
then the worker id, then a per-millisecond sequence number.
"""

from __future__ import annotations

import threading
import time

_BASE_TIME_MS = 1582136402000
_WORKER_ID_BIT_LENGTH = 6
_MIN_SEQ_NUMBER = 5


class IdGenerator:
    """Thread-safe generator of strictly increasing identifiers."""

    def __init__(self, worker_id: int = 1, seq_bit_length: int = 12) -> None:
        if not 3 <= seq_bit_length <= 21:
            raise ValueError("seq_bit_length must be in [3, 21]")
        max_worker_id = (1 << _WORKER_ID_BIT_LENGTH) - 1
        if not 0 <= worker_id <= max_worker_id:
            raise ValueError(f"worker_id must be in [0, {max_worker_id}]")
        self.worker_id = worker_id
        self.seq_bit_length = seq_bit_length
        self._max_seq = (1 << seq_bit_length) - 1
        self._timestamp_shift = seq_bit_length + _WORKER_ID_BIT_LENGTH
        self._last_ms = 0
        self._seq = _MIN_SEQ_NUMBER
        self._lock = threading.Lock()

    @staticmethod
    def _now_ms() -> int:
        return time.time_ns() // 1_000_000 - _BASE_TIME_MS

    def _wait_after(self, last_ms: int) -> int:
        now = self._now_ms()
        while now <= last_ms:
            time.sleep(0.0001)
            now = self._now_ms()
        return now

    def next_id(self) -> int:
        """Return the next identifier."""
        with self._lock:
            now = self._now_ms()
            if now > self._last_ms:
                self._last_ms = now
                self._seq = _MIN_SEQ_NUMBER
            elif self._seq > self._max_seq:
                self._last_ms = self._wait_after(self._last_ms)
                self._seq = _MIN_SEQ_NUMBER
            seq = self._seq
            self._seq += 1
            return (
                (self._last_ms << self._timestamp_shift)
                | (self.worker_id << self.seq_bit_length)
                | seq
            )


_default_generator = IdGenerator(1, 12)


def next_id() -> int:
    """Next identifier from the process-wide generator."""
    return _default_generator.next_id()