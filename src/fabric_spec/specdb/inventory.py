from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from ..config import DEFAULT_INVENTORY_BASE_URL, DEFAULT_INVENTORY_TIMEOUT
from ..domain.models import LookupResult, MaterialRecord
from ..errors import InputError, UpstreamError
from ..logging import get_logger
from .constants import MATERIAL_LABELS


class MaterialClient:
    """Thin client for the inventory service's material lookup.

    Only implements `GET /materials?artcno=<code>`.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_INVENTORY_BASE_URL,
        *,
        timeout: int = DEFAULT_INVENTORY_TIMEOUT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base = base_url.rstrip("/")
        self.timeout = int(timeout)
        self.log = get_logger("fabric-spec-inventory")
        self.s = session or requests.Session()
        self.s.headers.update({"Content-Type": "application/json", "Accept": "application/json"})

    def _url(self, path: str) -> str:
        return f"{self.base}{path}"

    @staticmethod
    def _error_message(r: requests.Response) -> str:
        try:
            body = r.json()
        except ValueError:
            return r.text or f"HTTP {r.status_code}"
        if isinstance(body, dict):
            return str(body.get("errorMessage") or "Failed to fetch material data")
        return r.text or "Failed to fetch material data"

    def lookup(self, code: Optional[str]) -> LookupResult:
        """Return matching materials; an empty result is a normal outcome."""
        code = (code or "").strip()
        if not code:
            raise InputError("Article number (artcno) is required")

        url = self._url(f"/materials?artcno={requests.utils.quote(code, safe='')}")
        self.log.info(f"GET material lookup: artcno={code!r}")
        try:
            r = self.s.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            self.log.error(f"Material lookup failed for {code!r}: {e}")
            raise UpstreamError("An internal server error occurred.") from e

        if not r.ok:
            message = self._error_message(r)
            self.log.warning(f"Material lookup HTTP {r.status_code} for {code!r}: {message[:300]}")
            raise UpstreamError(message, status_code=r.status_code)

        try:
            body = r.json()
        except ValueError as e:
            self.log.error(f"Material lookup returned non-JSON body: {r.text[:300]!r}")
            raise UpstreamError("An internal server error occurred.") from e

        rows = body if isinstance(body, list) else [body] if isinstance(body, dict) else []
        records = [MaterialRecord(data=row) for row in rows if isinstance(row, dict)]
        if not records:
            self.log.info(f"No material found for {code!r}")
        return LookupResult(code=code, records=records, raw=body)


def label_material(record: MaterialRecord) -> List[Dict[str, Any]]:
    """Display rows for one material, skipping blank values; unknown codes keep their name."""
    rows: List[Dict[str, Any]] = []
    for code, value in record.data.items():
        if value is None or str(value).strip() == "":
            continue
        rows.append({"code": code, "label": MATERIAL_LABELS.get(code, code), "value": str(value)})
    return rows
