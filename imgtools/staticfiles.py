"""In-memory static site bundles served with ETag and pre-compressed variants."""

from __future__ import annotations

import hashlib
import posixpath
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

_HTML = "text/html; charset=utf-8"
_CONTENT_TYPES = (
    (".js", "application/javascript; charset=utf-8"),
    (".css", "text/css; charset=utf-8"),
    (".jpg", "image/jpeg"),
    (".png", "image/png"),
    (".json", "application/json"),
)
_NOT_FOUND_PAGE = "/404.html"


@dataclass(frozen=True)
class StaticFile:
    """File content and its hex MD5."""

    data: bytes
    md5: str


@dataclass
class StaticResponse:
    """What to send back for a static request."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


def load_web(path_name) -> dict[str, StaticFile]:
    """Load every file under ``path_name`` keyed by its '/'-rooted relative path."""
    root = Path(path_name)
    if not root.exists():
        raise FileNotFoundError(f"static directory not found: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"not a directory: {root}")
    files: dict[str, StaticFile] = {}
    for path in sorted(root.rglob("*")):
        if path.is_file():
            data = path.read_bytes()
            key = "/" + path.relative_to(root).as_posix()
            files[key] = StaticFile(data, hashlib.md5(data).hexdigest())
    return files


class StaticStore:
    """Desktop and mobile bundles held in memory."""

    def __init__(self, web_dir, h5_dir) -> None:
        self.web_dir = web_dir
        self.h5_dir = h5_dir
        self.web_files: dict[str, StaticFile] = {}
        self.h5_files: dict[str, StaticFile] = {}
        self._lock = threading.Lock()
        self.reload()

    def reload(self) -> None:
        """Reload both bundles from disk; each is swapped in whole."""
        with self._lock:
            self.web_files = load_web(self.web_dir)
            self.h5_files = load_web(self.h5_dir)

    def serve(self, url_path: str, user_agent: str = "", headers: Mapping[str, str] | None = None) -> StaticResponse:
        """Resolve ``url_path`` against the matching bundle."""
        request_headers = {key.lower(): value for key, value in (headers or {}).items()}
        response_headers: dict[str, str] = {}

        if url_path.endswith("/") or "." not in url_path:
            name = posixpath.normpath(posixpath.join(url_path, "index.html"))
            response_headers["Content-Type"] = _HTML
        else:
            name = url_path
            content_type = next((ct for suffix, ct in _CONTENT_TYPES if url_path.endswith(suffix)), None)
            if content_type is not None:
                response_headers["Content-Type"] = content_type

        files = self.h5_files if "Mobile" in (user_agent or "") else self.web_files

        current = files.get(name)
        if current is None:
            response_headers["Content-Type"] = _HTML
            not_found = files.get(_NOT_FOUND_PAGE)
            if not_found is None:
                return StaticResponse(404, response_headers)
            return StaticResponse(200, response_headers, not_found.data)

        if request_headers.get("if-none-match") == current.md5:
            response_headers.pop("Content-Type", None)
            return StaticResponse(304, response_headers)

        response_headers["Etag"] = current.md5

        accept_encoding = request_headers.get("accept-encoding", "")
        if "br" in accept_encoding:
            if name + ".br" in files:
                response_headers["Content-Encoding"] = "br"
                name += ".br"
        elif "gzip" in accept_encoding:
            if name + ".gz" in files:
                response_headers["Content-Encoding"] = "gzip"
                name += ".gz"

        return StaticResponse(200, response_headers, files[name].data)