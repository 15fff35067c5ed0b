from __future__ import annotations

from dataclasses import dataclass, field, fields as dc_fields
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class SchemaGeneration(str, Enum):
    """Shape of the extracted spec; each value has its own prompt and key fields."""

    FLAT = "flat"
    FLAT_SPLIT_WEIGHT = "flat_split_weight"
    STRUCTURED = "structured"

    @classmethod
    def parse(cls, value: Any) -> "SchemaGeneration":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            candidate = value.strip().lower()
            for member in cls:
                if member.value == candidate:
                    return member
        raise ValueError(f"unknown schema generation: {value!r}")


# Columns shared by every flat generation, in display order.
FLAT_FIELDS: Tuple[str, ...] = (
    "date",
    "art_no",
    "mill_name",
    "composition",
    "spec",
    "finishing",
    "weight",
    "weight_value",
    "weight_unit",
    "width",
    "price",
)


@dataclass
class FlatSpecV1:
    generation: SchemaGeneration
    key: str
    date: Optional[str] = None
    art_no: Optional[str] = None
    mill_name: Optional[str] = None
    composition: Optional[str] = None
    spec: Optional[str] = None
    finishing: Optional[str] = None
    weight: Optional[str] = None
    weight_value: Optional[str] = None
    weight_unit: Optional[str] = None
    width: Optional[str] = None
    price: Optional[str] = None

    def field_values(self) -> Dict[str, Optional[str]]:
        return {name: getattr(self, name) for name in FLAT_FIELDS}


@dataclass
class StructuredSpecV2:
    key: str
    basic_info: Dict[str, Any] = field(default_factory=dict)
    yarn_specs: List[Dict[str, Any]] = field(default_factory=list)
    dimensions: Dict[str, Any] = field(default_factory=dict)
    shrinkage: Dict[str, Any] = field(default_factory=dict)
    dyeing_info: Dict[str, Any] = field(default_factory=dict)
    finishing_processes: List[Dict[str, Any]] = field(default_factory=list)
    expert_summary: Optional[str] = None
    # Top-level keys the model returned beyond the known sections.
    extra: Dict[str, Any] = field(default_factory=dict)

    generation = SchemaGeneration.STRUCTURED

    def sections(self) -> Dict[str, Any]:
        """Return the structure in its wire shape (known sections then extras)."""
        out: Dict[str, Any] = {
            f.name: getattr(self, f.name)
            for f in dc_fields(self)
            if f.name not in {"key", "extra"}
        }
        for k, v in self.extra.items():
            out.setdefault(k, v)
        return out


ExtractedSpec = Union[FlatSpecV1, StructuredSpecV2]


@dataclass
class FabricRecord:
    key: str
    generation: SchemaGeneration
    art_no: Optional[str]
    name: Optional[str]
    mill_name: Optional[str]
    fields: Dict[str, Optional[str]] = field(default_factory=dict)
    additional_data: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    created_at: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "key": self.key,
            "created_at": self.created_at,
            "generation": self.generation.value,
            "art_no": self.art_no,
            "name": self.name,
            "mill_name": self.mill_name,
            "fields": dict(self.fields),
            "additional_data": self.additional_data,
        }


@dataclass
class MaterialRecord:
    """One row from the inventory service; keys are opaque short codes."""

    data: Dict[str, Any]

    @property
    def artcno(self) -> Optional[str]:
        v = self.data.get("artcno")
        return str(v) if v is not None else None


@dataclass
class LookupResult:
    code: str
    records: List[MaterialRecord]
    # Upstream body exactly as received, for verbatim passthrough.
    raw: Any = None

    @property
    def found(self) -> bool:
        return bool(self.records)
