from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from ..domain.keys import derive_key
from ..domain.models import ExtractedSpec, FlatSpecV1, SchemaGeneration, StructuredSpecV2
from ..errors import MalformedResponse
from ..logging import get_logger
from .constants import FLAT_GENERATION_FIELDS, KEY_FIELDS, TRANSIENT_KEYS


LOG = get_logger("fabric-spec-parser")

_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def _extract_fenced_json(text: str) -> Optional[str]:
    """If the model wrapped JSON in ``` or ```json fences, return the inner content."""
    match = _FENCE.search(text)
    if match and match.group(1):
        return match.group(1).strip()
    return None


def extract_json(raw_text: Optional[str]) -> Dict[str, Any]:
    """Return the JSON object embedded in raw model output.

    Tries the fenced block (or the whole text), then the span from the first
    '{' to the last '}'. Raises MalformedResponse carrying the raw text.
    """
    if not isinstance(raw_text, str) or not raw_text.strip():
        raise MalformedResponse("Empty response from model", raw_text=raw_text)

    candidates: List[str] = [_extract_fenced_json(raw_text) or raw_text.strip()]
    start = raw_text.find("{")
    end = raw_text.rfind("}")
    if start != -1 and end > start:
        candidates.append(raw_text[start : end + 1])

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(data, dict):
            return data

    LOG.error("Model output is not a JSON object; first 500 chars: %r", raw_text[:500])
    raise MalformedResponse("Invalid response format from model", raw_text=raw_text)


def _dig(payload: Dict[str, Any], path: str) -> Any:
    node: Any = payload
    for part in path.split("."):
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def key_fields_for(generation: SchemaGeneration, payload: Dict[str, Any]) -> List[Any]:
    return [_dig(payload, path) for path in KEY_FIELDS[generation]]


def key_for_payload(generation: SchemaGeneration, payload: Dict[str, Any]) -> str:
    return derive_key(key_fields_for(generation, payload))


def _scalar_text(name: str, value: Any, raw: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    raise MalformedResponse(f"field '{name}' must be a string", raw_text=raw)


def parse_spec(
    payload: Any,
    generation: SchemaGeneration,
    *,
    key: Optional[str] = None,
    raw_text: Optional[str] = None,
) -> ExtractedSpec:
    """Validate a sanitized model payload into the variant for its generation.

    The key defaults to the one derived from the payload itself.
    """
    if not isinstance(payload, dict):
        raise MalformedResponse("Model payload must be a JSON object", raw_text=raw_text)
    if key is None:
        key = key_for_payload(generation, payload)

    if generation in FLAT_GENERATION_FIELDS:
        values = {
            name: _scalar_text(name, payload.get(name), raw_text)
            for name in FLAT_GENERATION_FIELDS[generation]
        }
        if generation is SchemaGeneration.FLAT_SPLIT_WEIGHT and "weight" in payload:
            LOG.debug("Ignoring combined weight %r for split-weight generation", payload.get("weight"))
        return FlatSpecV1(generation=generation, key=key, **values)

    if generation is SchemaGeneration.STRUCTURED:
        basic = payload.get("basic_info")
        if not isinstance(basic, dict):
            raise MalformedResponse("분석 데이터에 기본 정보가 없습니다.", raw_text=raw_text)

        def _dict(name: str) -> Dict[str, Any]:
            v = payload.get(name)
            if v is None:
                return {}
            if not isinstance(v, dict):
                raise MalformedResponse(f"'{name}' must be an object", raw_text=raw_text)
            return v

        def _list(name: str) -> List[Any]:
            v = payload.get(name)
            if v is None:
                return []
            if not isinstance(v, list):
                raise MalformedResponse(f"'{name}' must be a list", raw_text=raw_text)
            return v

        known = {
            "basic_info", "yarn_specs", "dimensions", "shrinkage",
            "dyeing_info", "finishing_processes", "expert_summary",
        }
        extra = {k: v for k, v in payload.items() if k not in known and k not in TRANSIENT_KEYS}
        return StructuredSpecV2(
            key=key,
            basic_info=dict(basic),
            yarn_specs=_list("yarn_specs"),
            dimensions=_dict("dimensions"),
            shrinkage=_dict("shrinkage"),
            dyeing_info=_dict("dyeing_info"),
            finishing_processes=_list("finishing_processes"),
            expert_summary=_scalar_text("expert_summary", payload.get("expert_summary"), raw_text),
            extra=extra,
        )

    raise ValueError(f"unsupported generation: {generation!r}")
