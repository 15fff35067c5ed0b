import os
import sys

import pytest

sys.path.insert(0, os.path.abspath("src"))

from fabric_spec.domain.models import FlatSpecV1, SchemaGeneration, StructuredSpecV2
from fabric_spec.errors import MalformedResponse
from fabric_spec.specdb.parser import extract_json, key_for_payload, parse_spec


def test_extract_json_from_fenced_block():
    assert extract_json("```json\n{\"a\":1}\n```") == {"a": 1}


def test_extract_json_from_surrounding_noise():
    assert extract_json('noise {"a":1} trailing') == {"a": 1}


def test_extract_json_plain_object():
    assert extract_json('  {"a": {"b": [1, 2]}}  ') == {"a": {"b": [1, 2]}}


def test_extract_json_without_braces_fails_with_raw_text():
    with pytest.raises(MalformedResponse) as excinfo:
        extract_json("I could not read the sheet.")
    assert excinfo.value.raw_text == "I could not read the sheet."
    assert excinfo.value.as_payload()["rawContent"] == "I could not read the sheet."


def test_extract_json_rejects_invalid_json_between_braces():
    with pytest.raises(MalformedResponse):
        extract_json("{art_no: TC-1,}")


def test_extract_json_rejects_empty_text():
    with pytest.raises(MalformedResponse):
        extract_json("")


def test_parse_flat_coerces_scalars_and_derives_key():
    payload = {"art_no": "Art-01", "mill_name": "Mill A", "spec": "CM 30/1", "width": 150}
    spec = parse_spec(payload, SchemaGeneration.FLAT)

    assert isinstance(spec, FlatSpecV1)
    assert spec.key == "art01_milla_cm301"
    assert spec.width == "150"
    assert spec.price is None


def test_parse_split_weight_ignores_combined_weight():
    payload = {"art_no": "A1", "mill_name": "M", "weight": "300 g/m2", "weight_value": "300", "weight_unit": "g/m2"}
    spec = parse_spec(payload, SchemaGeneration.FLAT_SPLIT_WEIGHT)

    assert spec.weight is None
    assert (spec.weight_value, spec.weight_unit) == ("300", "g/m2")
    assert spec.key == "a1_m_300"


def test_parse_flat_rejects_nested_field():
    with pytest.raises(MalformedResponse):
        parse_spec({"art_no": {"value": "A1"}}, SchemaGeneration.FLAT)


def test_parse_structured_requires_basic_info():
    with pytest.raises(MalformedResponse):
        parse_spec({"yarn_specs": []}, SchemaGeneration.STRUCTURED)


def test_parse_structured_keeps_sections_and_extras():
    payload = {
        "basic_info": {"art_no": "TC-123", "fabric_name": "Fleece", "mill_name": "Dae Kyung"},
        "yarn_specs": [{"spec": "CM 30/1", "details": ["combed"]}],
        "finishing_processes": None,
        "notes": "extra",
        "image_url": "data:image/png;base64,AAAA",
    }
    spec = parse_spec(payload, SchemaGeneration.STRUCTURED)

    assert isinstance(spec, StructuredSpecV2)
    assert spec.key == key_for_payload(SchemaGeneration.STRUCTURED, payload) == "tc123_fleece_daekyung"
    assert spec.finishing_processes == []
    assert spec.extra == {"notes": "extra"}
    assert spec.sections()["notes"] == "extra"
