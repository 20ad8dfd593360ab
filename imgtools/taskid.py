"""Eight-character task identifiers with a two-character check code."""

from __future__ import annotations

from imgtools import snowid

_ALPHABET_SIZE = 36


def _encode(value: int) -> str:
    """Map 0-9 to digits and 10-35 to upper-case letters."""
    return chr(value + 48) if value < 10 else chr(value + 55)


def create_user_hash_code(user_id: str) -> str:
    """Two check characters derived from the first six characters."""
    if len(user_id) < 6:
        raise ValueError("user_id must have at least 6 characters")
    code1 = ord(user_id[0]) + ord(user_id[2]) + ord(user_id[4]) + ord(user_id[5])
    code2 = ord(user_id[0]) + ord(user_id[1]) + ord(user_id[3]) + ord(user_id[4])
    return _encode(code1 % _ALPHABET_SIZE) + _encode(code2 % _ALPHABET_SIZE)


def new_task_id(seed: int | None = None) -> str:
    """Build a task id from ``seed`` (a fresh snowflake id when omitted)."""
    if seed is None:
        seed = snowid.next_id()
    if seed < 0:
        raise ValueError("seed must not be negative")

    total = 0
    remaining = seed
    for weight in range(19, 0, -1):
        total += (remaining % 10) * weight
        remaining //= 10

    chars = [""] * 6
    remaining = seed
    for position in range(6, 0, -1):
        group_sum = 0
        for _ in range(3):
            group_sum += position * (remaining % 10)
            remaining //= 10
        chars[position - 1] = _encode((total - group_sum) % _ALPHABET_SIZE)

    body = "".join(chars)
    return body + create_user_hash_code(body)


def check_user_id(task_id: str) -> bool:
    """True when ``task_id`` is 8 digits/upper-case letters with a valid check code."""
    if len(task_id) != 8:
        return False
    if not all("0" <= ch <= "9" or "A" <= ch <= "Z" for ch in task_id):
        return False
    return create_user_hash_code(task_id[:6]) == task_id[6:]