import re
from typing import Any, Optional

from ..logging import get_logger

_LOG = get_logger("fabric-spec-normalize")

_SHORT_DATE = re.compile(r"(\d{2})/(\d{2})/(\d{2})")
_CURRENCY_PREFIX = re.compile(r"^\s*(?:[$€£¥₩]|USD|EUR|KRW|JPY|CNY|RMB|US\$)\s*", re.IGNORECASE)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def normalize_spec_date(value: Any) -> Optional[str]:
    """Rewrite an NN/NN/NN date to YYYYMMDD.

    The groups are read as YEAR/MONTH/DAY and the year always lands in the
    2000s ("99/01/02" -> "20990102"). Any other text is returned trimmed.
    """
    if value is None:
        return None
    v = str(value).strip()
    if not v:
        return None
    m = _SHORT_DATE.fullmatch(v)
    if not m:
        return v
    yy, mm, dd = m.groups()
    out = f"20{yy}{mm}{dd}"
    _LOG.debug("Reinterpreted date %r as %s", v, out)
    return out


def normalize_price(value: Any) -> Optional[str]:
    """Drop a leading currency marker and keep only digits and the decimal point.

    Commas are treated as thousands separators ("₩12,000" -> "12000") and dots
    left over from abbreviations at either end are dropped ("Rs. 300" -> "300").
    Returns None when no digit remains.
    """
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    s = _CURRENCY_PREFIX.sub("", s)
    digits = re.sub(r"[^0-9.]", "", s).strip(".")
    if not re.search(r"\d", digits):
        return None
    return digits
