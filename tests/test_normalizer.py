import os
import sys

sys.path.insert(0, os.path.abspath("src"))

from fabric_spec.domain.models import SchemaGeneration
from fabric_spec.domain.normalize import normalize_price, normalize_spec_date
from fabric_spec.specdb.constants import MISSING_SENTINEL
from fabric_spec.specdb.normalizer import normalize, normalize_field
from fabric_spec.specdb.parser import parse_spec
from fabric_spec.specdb.service import run_pipeline


def test_short_dates_are_read_as_year_month_day():
    assert normalize_spec_date("24/08/15") == "20240815"
    assert normalize_spec_date("99/01/02") == "20990102"


def test_other_dates_are_trimmed_only():
    assert normalize_spec_date(" 2024-08-15 ") == "2024-08-15"
    assert normalize_spec_date("24/8/15") == "24/8/15"
    assert normalize_spec_date("   ") is None


def test_price_keeps_digits_and_point():
    assert normalize_price("$3.00") == "3.00"
    assert normalize_price("USD 4.5/yd") == "4.5"
    assert normalize_price("₩12,000") == "12000"
    assert normalize_price("N/A") is None


def test_blank_fields_become_sentinel():
    assert normalize_field("finishing", "") == MISSING_SENTINEL
    assert normalize_field("finishing", None) == MISSING_SENTINEL
    assert normalize_field("price", "call us") == MISSING_SENTINEL
    assert normalize_field("width", " 150cm ") == "150cm"


def test_flat_pipeline_end_to_end():
    raw = (
        "```json\n"
        '{"date": "24/08/15", "art_no": "Art-01", "mill_name": "Mill A", "composition": "C100",'
        ' "spec": "CM 30/1", "finishing": "", "weight": "300 g/m2", "width": "150cm", "price": "$3.00"}\n'
        "```"
    )
    payload, record = run_pipeline(raw, SchemaGeneration.FLAT)

    assert payload["finishing"] == ""
    assert record.key == "art01_milla_cm301"
    assert record.fields["price"] == "3.00"
    assert record.fields["date"] == "20240815"
    assert record.fields["finishing"] == MISSING_SENTINEL
    assert record.fields["weight_value"] is None
    assert record.art_no == "Art-01" and record.name is None
    assert record.additional_data == {}


def test_key_is_taken_before_sentinel_substitution():
    _, record = run_pipeline('{"art_no": "A1", "mill_name": ""}', SchemaGeneration.FLAT)

    assert record.key == "a1__"
    assert record.mill_name == MISSING_SENTINEL


def test_split_weight_generation_fills_value_and_unit():
    payload = {"art_no": "A1", "mill_name": "M", "weight_value": "300", "weight_unit": "g/m2"}
    record = normalize(parse_spec(payload, SchemaGeneration.FLAT_SPLIT_WEIGHT))

    assert record.generation is SchemaGeneration.FLAT_SPLIT_WEIGHT
    assert record.fields["weight_value"] == "300"
    assert record.fields["weight_unit"] == "g/m2"
    assert record.fields["weight"] is None
    assert record.fields["spec"] == MISSING_SENTINEL


def test_structured_record_flattens_basic_info():
    payload = {
        "basic_info": {
            "art_no": "TC-123",
            "fabric_name": "Fleece",
            "mill_name": "Dae Kyung",
            "date": "24/08/15",
            "fabric_type_explanation": "",
        },
        "yarn_specs": [{"spec": "CM 30/1", "details": ["combed"]}],
        "expert_summary": "Soft brushed fleece.",
    }
    record = normalize(parse_spec(payload, SchemaGeneration.STRUCTURED))

    assert record.key == "tc123_fleece_daekyung"
    assert (record.art_no, record.name, record.mill_name) == ("TC-123", "Fleece", "Dae Kyung")
    assert record.fields["date"] == "20240815"
    assert record.fields["price"] is None
    assert record.additional_data["yarn_specs"] == [{"spec": "CM 30/1", "details": ["combed"]}]
    assert record.additional_data["expert_summary"] == "Soft brushed fleece."


def test_structured_record_does_not_share_payload_objects():
    payload = {"basic_info": {"art_no": "A"}, "yarn_specs": [{"spec": "x"}]}
    record = normalize(parse_spec(payload, SchemaGeneration.STRUCTURED))

    record.additional_data["yarn_specs"][0]["spec"] = "changed"
    assert payload["yarn_specs"][0]["spec"] == "x"


def test_price_drops_dots_left_by_abbreviations():
    assert normalize_price("3.00 USD/yd.") == "3.00"
    assert normalize_price("Rs. 300") == "300"
    assert normalize_price("...") is None
