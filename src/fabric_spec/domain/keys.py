from __future__ import annotations

import re
from typing import Any, Iterable

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")


def strip_non_alnum(value: Any) -> str:
    if value is None:
        return ""
    return _NON_ALNUM.sub("", str(value))


def derive_key(fields: Iterable[Any]) -> str:
    """Build the dedup key: alphanumerics of each field, joined by '_', lower-cased.

    >>> derive_key(["Art-01", "Mill A"])
    'art01_milla'
    """
    return "_".join(strip_non_alnum(f) for f in fields).lower()
