"""Data carried to and from the external image APIs."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


def _field(data: Mapping[str, Any], key: str, default: Any) -> Any:
    """Look up ``key`` exactly, then case-insensitively; None means absent."""
    if key in data:
        value = data[key]
    else:
        lowered = key.lower()
        value = next(
            (v for k, v in data.items() if isinstance(k, str) and k.lower() == lowered),
            None,
        )
    return default if value is None else value


def _mapping(value: Any, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise TypeError(f"{name} must be an object")
    return value


@dataclass
class Bgra:
    """A colour in blue, green, red, alpha order, each 0-255."""

    b: int = 0
    g: int = 0
    r: int = 0
    a: int = 0

    def scalar(self) -> tuple[float, float, float, float]:
        """The colour normalised to [0, 1] per channel."""
        return (self.b / 255.0, self.g / 255.0, self.r / 255.0, self.a / 255.0)


@dataclass
class ResultData:
    """Download addresses of a converted document."""

    word: str = ""
    excel: str = ""


def _result_data(data: Mapping[str, Any]) -> ResultData:
    return ResultData(word=_field(data, "word", ""), excel=_field(data, "excel", ""))


@dataclass
class EffectsEnhancement:
    """Reply of the image effects and enhancement API."""

    image: str = ""
    result: str = ""
    image_processed: str = ""
    log_id: int = 0
    error_code: int = 0
    error_msg: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EffectsEnhancement:
        data = _mapping(data, "reply")
        return cls(
            image=_field(data, "Image", ""),
            result=_field(data, "Result", ""),
            image_processed=_field(data, "image_processed", ""),
            log_id=_field(data, "log_id", 0),
            error_code=_field(data, "error_code", 0),
            error_msg=_field(data, "error_msg", ""),
        )

    def get_image(self) -> str:
        """The first non-empty of image, result and image_processed."""
        return self.image or self.result or self.image_processed


@dataclass
class DocConvert:
    """Reply of the document conversion API, with its result flattened."""

    code: int = 0
    log_id: int = 0
    message: str = ""
    task_id: str = ""
    ret_code: int = 0
    percent: int = 0
    result_data: ResultData = field(default_factory=ResultData)
    success: bool = False
    error_code: int = 0
    error_msg: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DocConvert:
        data = _mapping(data, "reply")
        result = _mapping(_field(data, "result", {}), "result")
        result_data = _mapping(_field(result, "result_data", {}), "result_data")
        return cls(
            code=_field(data, "code", 0),
            log_id=_field(data, "log_id", 0),
            message=_field(data, "message", ""),
            task_id=_field(result, "task_id", ""),
            ret_code=_field(result, "ret_code", 0),
            percent=_field(result, "percent", 0),
            result_data=_result_data(result_data),
            success=_field(data, "success", False),
            error_code=_field(data, "error_code", 0),
            error_msg=_field(data, "error_msg", ""),
        )