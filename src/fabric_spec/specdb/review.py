"""Validation rules behind the review/edit screen.

The screen itself is rendered elsewhere; this module decides which fields are
shown and editable, which ones still hold the sentinel, how user edits are
applied, and what blocks a commit.
"""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Tuple

from ..domain.keys import strip_non_alnum
from ..domain.models import FabricRecord, SchemaGeneration
from ..domain.normalize import is_blank
from ..domain.sanitize import sanitize_text
from ..errors import InputError
from ..logging import get_logger
from .constants import FIELD_LABELS, FLAT_GENERATION_FIELDS, MISSING_SENTINEL
from .normalizer import normalize_field


LOG = get_logger("fabric-spec-review")

STRUCTURED_EDITABLE: Tuple[str, ...] = (
    "art_no",
    "name",
    "mill_name",
    "date",
    "fabric_type_explanation",
    "expert_summary",
)

# Record field name -> key inside additional_data["basic_info"].
_BASIC_INFO_MIRROR = {
    "art_no": "art_no",
    "name": "fabric_name",
    "mill_name": "mill_name",
    "date": "date",
    "fabric_type_explanation": "fabric_type_explanation",
}

_PRICE_RE = re.compile(r"\d+(?:\.\d+)?")
_YYYYMMDD_RE = re.compile(r"\d{8}")


@dataclass
class ReviewField:
    name: str
    label: str
    value: Any
    needs_attention: bool
    editable: bool = True

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "value": self.value,
            "needs_attention": self.needs_attention,
            "editable": self.editable,
        }


def editable_fields(generation: SchemaGeneration) -> Tuple[str, ...]:
    if generation in FLAT_GENERATION_FIELDS:
        return FLAT_GENERATION_FIELDS[generation]
    if generation is SchemaGeneration.STRUCTURED:
        return STRUCTURED_EDITABLE
    raise ValueError(f"unsupported generation: {generation!r}")


def _current_value(record: FabricRecord, name: str) -> Any:
    if record.generation is SchemaGeneration.STRUCTURED:
        if name in ("art_no", "name", "mill_name"):
            return getattr(record, name)
        if name == "date":
            return record.fields.get("date")
        if name == "expert_summary":
            return record.additional_data.get("expert_summary")
        basic = record.additional_data.get("basic_info") or {}
        return basic.get(name)
    return record.fields.get(name)


def build_form(record: FabricRecord) -> List[ReviewField]:
    form: List[ReviewField] = []
    for name in editable_fields(record.generation):
        value = _current_value(record, name)
        form.append(
            ReviewField(
                name=name,
                label=FIELD_LABELS.get(name, name),
                value=value,
                needs_attention=(is_blank(value) or value == MISSING_SENTINEL),
            )
        )
    return form


def fields_needing_attention(record: FabricRecord) -> List[str]:
    return [f.name for f in build_form(record) if f.needs_attention]


def _coerce_edit(name: str, value: Any) -> str:
    if value is None:
        return normalize_field(name, None)
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise InputError(f"'{name}' 값은 문자열이어야 합니다.")
    return normalize_field(name, sanitize_text(str(value)))


def apply_edits(record: FabricRecord, edits: Mapping[str, Any]) -> FabricRecord:
    """Return a copy of record with the user's corrections applied.

    The key is carried over untouched.
    """
    if not isinstance(edits, Mapping):
        raise InputError("수정 내용은 필드 이름과 값의 객체여야 합니다.")
    allowed = editable_fields(record.generation)
    unknown = sorted(k for k in edits if k not in allowed)
    if unknown:
        raise InputError(f"수정할 수 없는 필드입니다: {', '.join(unknown)}")

    fields = dict(record.fields)
    additional = copy.deepcopy(record.additional_data)
    columns = {"art_no": record.art_no, "name": record.name, "mill_name": record.mill_name}

    for name, raw in edits.items():
        value = _coerce_edit(name, raw)
        if record.generation is SchemaGeneration.STRUCTURED:
            if name in columns:
                columns[name] = value
            if name in ("art_no", "mill_name", "date"):
                fields[name] = value
            if name == "expert_summary":
                additional["expert_summary"] = value
            else:
                basic = additional.setdefault("basic_info", {})
                basic[_BASIC_INFO_MIRROR[name]] = value
        else:
            fields[name] = value
            if name in columns:
                columns[name] = value

    LOG.debug("Applied %d edit(s) to key=%s", len(edits), record.key)
    return replace(record, fields=fields, additional_data=additional, **columns)


def validate(record: FabricRecord) -> List[str]:
    """Return the problems that must be fixed before the record can be saved."""
    problems: List[str] = []
    if not strip_non_alnum(record.key):
        problems.append("고유 키가 비어 있습니다. 원단 코드나 제조사명을 입력해주세요.")

    price = record.fields.get("price")
    if price not in (None, MISSING_SENTINEL) and not _PRICE_RE.fullmatch(str(price)):
        problems.append(f"단가 형식이 올바르지 않습니다: {price}")

    date = record.fields.get("date")
    if isinstance(date, str) and _YYYYMMDD_RE.fullmatch(date):
        try:
            datetime.strptime(date, "%Y%m%d")
        except ValueError:
            problems.append(f"날짜가 올바르지 않습니다: {date}")
    return problems
