"""Strip control characters from every string inside a JSON-like value."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Union

JsonValue = Union[str, int, float, bool, None, List["JsonValue"], Dict[str, "JsonValue"]]

# C0 controls plus DEL and the C1 range.
_CONTROL_CHARS = re.compile("[\u0000-\u001f\u007f-\u009f]")


def sanitize_text(value: str) -> str:
    return _CONTROL_CHARS.sub("", value).strip()


def sanitize(value: JsonValue) -> JsonValue:
    """Return a copy of value with every string cleaned; keys are left untouched."""
    if isinstance(value, str):
        return sanitize_text(value)
    if isinstance(value, dict):
        return {k: sanitize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize(item) for item in value]
    if value is None or isinstance(value, (bool, int, float)):
        return value
    raise TypeError(f"not a JSON value: {type(value).__name__}")
