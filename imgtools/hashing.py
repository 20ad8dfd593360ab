"""MD5 helpers."""

from __future__ import annotations

import base64
import hashlib


def md5_hex(params: str) -> str:
    """Hex MD5 digest of the UTF-8 bytes of ``params``."""
    return hashlib.md5(params.encode("utf-8")).hexdigest()


def base64_md5(params: str) -> str:
    """MD5 of the standard base64 encoding of ``params``."""
    return md5_hex(base64.b64encode(params.encode("utf-8")).decode("ascii"))