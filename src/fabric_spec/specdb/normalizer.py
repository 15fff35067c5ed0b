from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from ..domain.models import (
    FLAT_FIELDS,
    ExtractedSpec,
    FabricRecord,
    FlatSpecV1,
    SchemaGeneration,
    StructuredSpecV2,
)
from ..domain.normalize import is_blank, normalize_price, normalize_spec_date
from ..logging import get_logger
from .constants import FLAT_GENERATION_FIELDS, MISSING_SENTINEL


LOG = get_logger("fabric-spec-normalizer")


def normalize_field(name: str, value: Any) -> str:
    """Apply the per-field value rules, falling back to the sentinel."""
    if is_blank(value):
        return MISSING_SENTINEL
    text = str(value).strip()
    if text == MISSING_SENTINEL:
        return text
    if name == "date":
        text = normalize_spec_date(text) or ""
    elif name == "price":
        text = normalize_price(text) or ""
    return text if text else MISSING_SENTINEL


def _normalize_flat(spec: FlatSpecV1) -> FabricRecord:
    used = FLAT_GENERATION_FIELDS[spec.generation]
    values = spec.field_values()
    fields: Dict[str, Optional[str]] = {
        name: (normalize_field(name, values.get(name)) if name in used else None)
        for name in FLAT_FIELDS
    }
    missing = [name for name in used if fields[name] == MISSING_SENTINEL]
    if missing:
        LOG.info("Fields needing manual entry for key=%s: %s", spec.key, ", ".join(missing))
    return FabricRecord(
        key=spec.key,
        generation=spec.generation,
        art_no=fields["art_no"],
        name=None,
        mill_name=fields["mill_name"],
        fields=fields,
        additional_data={},
    )


def _normalize_structured(spec: StructuredSpecV2) -> FabricRecord:
    basic = spec.basic_info
    fields: Dict[str, Optional[str]] = {name: None for name in FLAT_FIELDS}
    if "date" in basic:
        fields["date"] = normalize_field("date", basic.get("date"))
    art_no = normalize_field("art_no", basic.get("art_no"))
    fields["art_no"] = art_no
    mill_name = normalize_field("mill_name", basic.get("mill_name"))
    fields["mill_name"] = mill_name
    return FabricRecord(
        key=spec.key,
        generation=SchemaGeneration.STRUCTURED,
        art_no=art_no,
        name=normalize_field("name", basic.get("fabric_name")),
        mill_name=mill_name,
        fields=fields,
        additional_data=copy.deepcopy(spec.sections()),
    )


def normalize(spec: ExtractedSpec) -> FabricRecord:
    """Map an extracted spec onto the persisted record shape."""
    if isinstance(spec, FlatSpecV1):
        if spec.generation not in FLAT_GENERATION_FIELDS:
            raise ValueError(f"flat spec tagged with non-flat generation {spec.generation!r}")
        return _normalize_flat(spec)
    if isinstance(spec, StructuredSpecV2):
        return _normalize_structured(spec)
    raise TypeError(f"unsupported spec type: {type(spec).__name__}")
