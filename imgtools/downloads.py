"""Upload checks and download accounting for processed images."""

from __future__ import annotations

import sqlite3
import threading
from collections.abc import Iterable

from imgtools.models import ImgTask, ModelError

_MIN_IMAGE_BYTES = 5
_KEEP_SECONDS = 86400

_down_lock = threading.Lock()


class ImageCheckError(Exception):
    """An uploaded file is missing, too large or not a recognised image."""


def check_suffix(suffix: str, accepted: Iterable[str]) -> bool:
    """True when ``suffix`` is one of ``accepted``."""
    return suffix in accepted


def _is_tiff_header(data: bytes) -> bool:
    return data[:4] in (b"II*\x00", b"MM\x00*")


def detect_image_extension(data: bytes) -> str:
    """Extension of the image format recognised from magic bytes.

    Raises ImageCheckError when the data is not a known image format.
    """
    if not data:
        raise ImageCheckError("上传的文件类型识别错误！")
    if data[:3] == b"\xff\xd8\xff":
        return "jpg"
    if data[:12] == b"\x00\x00\x00\x0cjP  \r\n\x87\n":
        return "jp2"
    if data[:4] == b"\x89PNG":
        return "png"
    if data[:3] == b"GIF":
        return "gif"
    if len(data) > 11 and data[8:12] == b"WEBP":
        return "webp"
    if len(data) > 10 and _is_tiff_header(data) and data[8:10] == b"CR":
        return "cr2"
    if len(data) > 10 and _is_tiff_header(data):
        return "tif"
    if data[:2] == b"BM":
        return "bmp"
    if data[:3] == b"II\xbc":
        return "jxr"
    if data[:4] == b"8BPS":
        return "psd"
    if data[:4] == b"\x00\x00\x01\x00":
        return "ico"
    if len(data) > 11 and data[4:8] == b"ftyp":
        brand = data[8:12]
        if brand in (b"avif", b"avis"):
            return "avif"
        if brand in (b"heic", b"heix", b"mif1", b"msf1"):
            return "heif"
    raise ImageCheckError("上传的文件类型识别错误！")


def check_image(data: bytes | None, content_length: int, max_size: int) -> tuple[bytes, str]:
    """Validate an upload and return its bytes and detected extension.

    An absent upload gives ``(b"", "")``. Raises ImageCheckError when the request
    is larger than ``max_size``, the file is too short or not an image.
    """
    if content_length > max_size:
        raise ImageCheckError(f"文件大小超过限制，最大不得超过 {max_size // 1024} KB")
    if data is None:
        return b"", ""
    if len(data) < _MIN_IMAGE_BYTES:
        raise ImageCheckError("上传的文件错误！")
    return bytes(data), detect_image_extension(data)


def down_img(conn: sqlite3.Connection, task: ImgTask, reduce_times: bool = True) -> None:
    """Load a task from the last day and use up one download when asked.

    Raises ModelError when the task is missing or has no downloads left.
    """
    with _down_lock:
        task.find_with_create_time(conn, _KEEP_SECONDS)
        if task.download_times <= 0:
            raise ModelError("下载次数已用完")
        if reduce_times:
            task.reduce_download_times(conn)