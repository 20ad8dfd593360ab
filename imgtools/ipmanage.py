"""Per-address visit counting and banning for IPv4 clients.

Each address holds a signed 8-bit value: positive numbers count visits in the
current cycle, negative numbers are remaining ban minutes and ``-128`` marks a
permanent ban.
"""

from __future__ import annotations

import gzip
import ipaddress
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path

from imgtools.response import IP_PER_ALLOW

PERMANENT_BAN = -128
_POINTER_SIZE = 8


def _int8(value: int) -> int:
    """Wrap an integer into the signed 8-bit range."""
    return (value + 128) % 256 - 128


def ip_to_bytes(ip: str) -> bytes:
    """Parse a dotted IPv4 string into four bytes; raises ValueError."""
    parts = ip.encode("utf-8").split(b".")
    if len(parts) != 4:
        raise ValueError(f"invalid IPv4 address: {ip!r}")
    octets = []
    for part in parts:
        value = 0
        for char in part:
            value = (value * 10 + char - ord("0")) & 0xFF
        octets.append(value)
    return bytes(octets)


def load_ip_masks(path) -> list:
    """Read one CIDR per line; a missing file gives an empty list."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return []
    return [ipaddress.ip_network(line.strip(), strict=False) for line in text.splitlines()]


def ip_in(ip: Sequence[int] | bytes, networks: Sequence) -> bool:
    """Binary search of sorted networks for one containing ``ip``."""
    packed = bytes(ip)
    address = ipaddress.ip_address(packed)
    low, high = 0, len(networks) - 1
    while low <= high:
        mid = low + (high - low) // 2
        network = networks[mid]
        if address.version == network.version and address in network:
            return True
        if network.network_address.packed >= packed:
            high = mid - 1
        else:
            low = mid + 1
    return False


class IpVisit:
    """Sparse four-level table of visit counters and bans."""

    def __init__(self, limit: int, cycle_second: int, visit_limit_ban_time: int) -> None:
        if not 0 <= limit <= 127:
            raise ValueError("limit的取值范围是 [0,127]")
        if not 1 <= cycle_second <= 3600:
            raise ValueError("cycleSecond的取值范围是 [1,3600]秒")
        if not 1 <= visit_limit_ban_time <= 127:
            raise ValueError("visitLimitBanTime的取值范围是 [1,127]分钟")
        self.limit = limit
        self.cycle_second = cycle_second
        self.visit_limit_ban_time = visit_limit_ban_time
        self._table: dict[int, dict[int, dict[int, list[int]]]] = {}
        self._lock = threading.RLock()

    def _leaf(self, ip: bytes) -> list[int]:
        second = self._table.setdefault(ip[0], {})
        third = second.setdefault(ip[1], {})
        return third.setdefault(ip[2], [0] * 256)

    def _peek(self, ip: bytes) -> list[int] | None:
        return self._table.get(ip[0], {}).get(ip[1], {}).get(ip[2])

    def add(self, ip: str) -> int:
        """Record a visit; returns the new value, or 0 for a malformed address."""
        try:
            octets = ip_to_bytes(ip)
        except ValueError:
            return 0
        with self._lock:
            leaf = self._leaf(octets)
            last = octets[3]
            value = leaf[last]
            if value == PERMANENT_BAN:
                return PERMANENT_BAN
            if value < 0:
                leaf[last] = value - 1
            elif value < self.limit:
                leaf[last] = value + 1
            elif value == self.limit:
                leaf[last] = -self.visit_limit_ban_time
            return leaf[last]

    def reduce(self, ip: str) -> int:
        """Decrement the stored value; 0 for a malformed address."""
        try:
            octets = ip_to_bytes(ip)
        except ValueError:
            return 0
        with self._lock:
            leaf = self._leaf(octets)
            leaf[octets[3]] = _int8(leaf[octets[3]] - 1)
            return leaf[octets[3]]

    def add_ban_time(self, ip: str, ban_time: int) -> int:
        """Ban or extend a ban by ``ban_time`` (negative minutes, -128 permanent)."""
        try:
            octets = ip_to_bytes(ip)
        except ValueError:
            return 0
        return self._add_ban_time(octets, ban_time)

    def add_ban_time_by_bytes(self, ip: Sequence[int] | bytes, ban_time: int) -> int:
        """Same as :meth:`add_ban_time` with the address as four bytes."""
        if len(ip) != 4:
            return 0
        return self._add_ban_time(bytes(ip), ban_time)

    def _add_ban_time(self, ip: bytes, ban_time: int) -> int:
        if ban_time >= 0:
            return 0
        with self._lock:
            leaf = self._leaf(ip)
            last = ip[3]
            if ban_time == PERMANENT_BAN or leaf[last] >= 0:
                leaf[last] = max(ban_time, PERMANENT_BAN)
            else:
                leaf[last] = max(leaf[last] + ban_time, PERMANENT_BAN)
            return leaf[last]

    def is_ban(self, ip: str) -> int:
        """Stored value for ``ip`` (0 when unrecorded); raises ValueError."""
        octets = ip_to_bytes(ip)
        with self._lock:
            leaf = self._peek(octets)
            return 0 if leaf is None else leaf[octets[3]]

    def _entries(self) -> Iterable[tuple[bytes, int]]:
        with self._lock:
            for a in sorted(self._table):
                second = self._table[a]
                for b in sorted(second):
                    third = second[b]
                    for c in sorted(third):
                        for d, value in enumerate(third[c]):
                            if value:
                                yield bytes((a, b, c, d)), value

    def get_len(self) -> int:
        """Number of addresses with a non-zero value."""
        return sum(1 for _ in self._entries())

    def get_permanent_ban(self) -> bytes:
        """Permanently banned addresses, four bytes each, ascending."""
        return b"".join(ip for ip, value in self._entries() if value == PERMANENT_BAN)

    def get_permanent_ban_strings(self) -> list[str]:
        """Permanently banned addresses in dotted form."""
        data = self.get_permanent_ban()
        return [".".join(str(b) for b in data[i:i + 4]) for i in range(0, len(data), 4)]

    def get_all(self) -> bytes:
        """All recorded addresses, four bytes each, ascending."""
        return b"".join(ip for ip, _ in self._entries())

    def delete_ip(self, ip: str) -> bool:
        """Clear a record; False when there was none. Raises ValueError."""
        octets = ip_to_bytes(ip)
        with self._lock:
            leaf = self._peek(octets)
            if leaf is None or leaf[octets[3]] == 0:
                return False
            leaf[octets[3]] = 0
            return True

    def size_of(self) -> int:
        """Bytes the equivalent dense pointer table would occupy."""
        with self._lock:
            size = 2 * 256 * _POINTER_SIZE
            for second in self._table.values():
                size += 256 * _POINTER_SIZE
                for third in second.values():
                    size += 256 * _POINTER_SIZE
                    size += 256 * len(third)
            return size

    def sweep(self) -> None:
        """One cycle: lower visit counts, shorten bans, drop empty ranges."""
        with self._lock:
            for a in list(self._table):
                second = self._table[a]
                second_count = 0
                for b in list(second):
                    third = second[b]
                    third_count = 0
                    for c in list(third):
                        leaf = third[c]
                        fourth_count = 0
                        for d, value in enumerate(leaf):
                            if value == 0:
                                continue
                            fourth_count += 1
                            if value == PERMANENT_BAN:
                                continue
                            if value > 0:
                                leaf[d] = max(value - IP_PER_ALLOW, 0)
                            else:
                                leaf[d] = value + 1
                        third_count += fourth_count
                        if fourth_count == 0:
                            del third[c]
                    second_count += third_count
                    if third_count == 0:
                        del second[b]
                if second_count == 0:
                    del self._table[a]

    def start_checker(self, stop_event: threading.Event) -> threading.Thread:
        """Run :meth:`sweep` every ``cycle_second`` until ``stop_event`` is set."""

        def run() -> None:
            while not stop_event.wait(self.cycle_second):
                self.sweep()

        thread = threading.Thread(target=run, name="ip-checker", daemon=True)
        thread.start()
        return thread

    def save_ban_ip(self, path) -> None:
        """Write permanently banned addresses to a gzip file."""
        with gzip.open(path, "wb") as handle:
            handle.write(self.get_permanent_ban())

    def load_ban_ip(self, path) -> None:
        """Permanently ban every address in a gzip file; missing file is ignored."""
        try:
            with gzip.open(path, "rb") as handle:
                data = handle.read()
        except FileNotFoundError:
            return
        for i in range(0, len(data) - len(data) % 4, 4):
            self.add_ban_time_by_bytes(data[i:i + 4], PERMANENT_BAN)