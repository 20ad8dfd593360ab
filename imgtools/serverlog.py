"""Writer for the HTTP server's error log that drops routine TLS noise."""

from __future__ import annotations

import logging

_logger = logging.getLogger(__name__)

_NOISE = (
    "tls: unknown certificate",
    "SSLv2 handshake received",
    "no cipher suite supported by both client and server",
    "client offered only unsupported versions: []",
    "EOF",
)


class ServerLog:
    """File-like sink: logs server errors as warnings, except known noise."""

    def write(self, data) -> int:
        """Consume one log line; returns the number of units written."""
        if isinstance(data, (bytes, bytearray)):
            text = bytes(data).decode("utf-8", "replace")
        else:
            text = data
        message = text[:-1] if text.endswith("\n") else text
        if not message.endswith(_NOISE):
            _logger.warning("ServerLog %s", message)
        return len(data)