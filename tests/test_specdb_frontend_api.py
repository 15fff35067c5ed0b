import json
import os
import sqlite3
import sys
from typing import Any, List

import pytest
from starlette.testclient import TestClient

sys.path.insert(0, os.path.abspath("src"))

from fabric_spec.config import AppSettings
from fabric_spec.domain.models import SchemaGeneration
from fabric_spec.specdb.constants import MISSING_SENTINEL
from fabric_spec.specdb.db import FabricSpecDatabase
from fabric_spec.specdb.frontend import create_app
from fabric_spec.specdb.inventory import MaterialClient
from fabric_spec.specdb.service import FabricSpecService

IMAGE = "data:image/png;base64,iVBORw0KGgo="

FLAT_TEXT = (
    "Here is the data:\n```json\n"
    '{"date": "24/08/15", "art_no": "Art-01", "mill_name": "Mill A", "composition": "C100",'
    ' "spec": "CM 30/1", "finishing": "", "weight": "300 g/m2", "width": "150cm", "price": "$3.00"}\n'
    "```"
)


class FakeResponse:
    def __init__(self, status_code: int, body: Any) -> None:
        self.status_code = status_code
        self._body = body
        self.text = json.dumps(body)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        return self._body


class FakeSession:
    def __init__(self, response: FakeResponse) -> None:
        self.headers: dict = {}
        self.response = response

    def get(self, url: str, timeout: int = 0) -> FakeResponse:
        return self.response


class FakeExtractor:
    def __init__(self, text: str) -> None:
        self.text = text
        self.calls: List[Any] = []

    def request_text(self, data_url: str, generation: SchemaGeneration) -> str:
        self.calls.append((data_url, generation))
        return self.text


def _settings() -> AppSettings:
    return AppSettings(
        openai_api_key=None,
        openai_base_url=None,
        model="gpt-4o-mini",
        generation="structured",
        inventory_base_url="https://inventory.example",
        inventory_timeout=5,
        db_path=None,
    )


def _service(tmp_path, *, text: str = FLAT_TEXT, inventory: Any = None) -> FabricSpecService:
    (tmp_path / "README.md").write_text("marker", encoding="utf-8")
    extractor = FakeExtractor(text)
    return FabricSpecService(
        FabricSpecDatabase(root_dir=str(tmp_path)),
        extractor=extractor,
        materials=MaterialClient(
            "https://inventory.example",
            session=FakeSession(inventory if inventory is not None else FakeResponse(200, [])),
        ),
        settings=_settings(),
        root_dir=str(tmp_path),
    )


def _client(tmp_path, **kwargs):
    service = _service(tmp_path, **kwargs)
    app = create_app(root_dir=str(tmp_path), service=service, serve_static=False)
    return TestClient(app), service.extractor


def test_health_and_api_only_root(tmp_path):
    client, _ = _client(tmp_path)
    assert client.get("/api/health").json()["status"] == "ok"
    assert client.get("/").status_code == 200


def test_analyze_review_commit_flow(tmp_path):
    client, extractor = _client(tmp_path)

    res = client.post("/api/analyze", json={"image": IMAGE, "generation": "flat"})
    assert res.status_code == 200
    review = res.json()
    assert extractor.calls == [(IMAGE, SchemaGeneration.FLAT)]
    assert review["key"] == "art01_milla_cm301"
    assert review["record"]["fields"]["price"] == "3.00"
    assert review["record"]["fields"]["date"] == "20240815"
    assert review["needs_attention"] == ["finishing"]
    assert review["extracted"]["finishing"] == ""

    session_id = review["session_id"]
    res = client.patch(f"/api/reviews/{session_id}", json={"fields": {"finishing": "Peach"}})
    assert res.status_code == 200
    assert res.json()["needs_attention"] == []
    assert client.get(f"/api/reviews/{session_id}").json()["record"]["fields"]["finishing"] == "Peach"

    res = client.post(f"/api/reviews/{session_id}/commit")
    assert res.status_code == 201
    stored = res.json()
    assert stored["id"] is not None
    assert stored["fields"]["finishing"] == "Peach"

    assert client.get(f"/api/reviews/{session_id}").status_code == 404
    assert client.get(f"/api/specs/{stored['id']}").json()["key"] == "art01_milla_cm301"
    listing = client.get("/api/specs", params={"limit": "10", "page": "0"}).json()
    assert listing["total"] == 1 and listing["page"] == 0


def test_second_commit_of_same_sheet_is_conflict(tmp_path):
    client, _ = _client(tmp_path)
    first = client.post("/api/analyze", json={"image": IMAGE, "generation": "flat"}).json()
    assert client.post(f"/api/reviews/{first['session_id']}/commit").status_code == 201

    second = client.post("/api/analyze", json={"image": IMAGE, "generation": "flat"}).json()
    res = client.post(f"/api/reviews/{second['session_id']}/commit")

    assert res.status_code == 409
    assert res.json() == {"error": "이미 저장된 원단 스펙입니다.", "key": "art01_milla_cm301"}
    assert client.get("/api/specs").json()["total"] == 1
    # The pending copy survives so the user can still edit or discard it.
    assert client.get(f"/api/reviews/{second['session_id']}").status_code == 200


def test_discard_review(tmp_path):
    client, _ = _client(tmp_path)
    review = client.post("/api/analyze", json={"image": IMAGE, "generation": "flat"}).json()

    assert client.delete(f"/api/reviews/{review['session_id']}").status_code == 200
    assert client.delete(f"/api/reviews/{review['session_id']}").status_code == 404


def test_commit_blocked_when_key_is_empty(tmp_path):
    client, _ = _client(tmp_path, text='{"art_no": "", "mill_name": "", "spec": ""}')
    review = client.post("/api/analyze", json={"image": IMAGE, "generation": "flat"}).json()

    res = client.post(f"/api/reviews/{review['session_id']}/commit")

    assert res.status_code == 400
    assert review["record"]["art_no"] == MISSING_SENTINEL


def test_structured_is_default_generation(tmp_path):
    text = '{"basic_info": {"art_no": "TC-123", "fabric_name": "Fleece", "mill_name": "Dae Kyung"}}'
    client, extractor = _client(tmp_path, text=text)

    review = client.post("/api/analyze", json={"image": IMAGE}).json()

    assert extractor.calls[0][1] is SchemaGeneration.STRUCTURED
    assert review["key"] == "tc123_fleece_daekyung"
    assert [f["name"] for f in review["form"]][:3] == ["art_no", "name", "mill_name"]


@pytest.mark.parametrize(
    "body, message",
    [
        ({}, "Image is required"),
        ({"image": ""}, "Image is required"),
    ],
)
def test_analyze_requires_image(tmp_path, body, message):
    client, extractor = _client(tmp_path)
    res = client.post("/api/analyze", json=body)
    assert res.status_code == 400
    assert res.json() == {"error": message}
    assert extractor.calls == []


def test_analyze_rejects_unknown_generation(tmp_path):
    client, _ = _client(tmp_path)
    res = client.post("/api/analyze", json={"image": IMAGE, "generation": "v3"})
    assert res.status_code == 400


def test_malformed_model_output_returns_raw_content(tmp_path):
    client, _ = _client(tmp_path, text="Sorry, the photo is too blurry.")
    res = client.post("/api/analyze", json={"image": IMAGE, "generation": "flat"})

    assert res.status_code == 500
    assert res.json()["rawContent"] == "Sorry, the photo is too blurry."


def test_unknown_spec_is_404(tmp_path):
    client, _ = _client(tmp_path)
    assert client.get("/api/specs/999").status_code == 404


def test_search_material_passes_upstream_body_through(tmp_path):
    body = [{"artcno": "BP-1", "dsgnm": "Twill"}]
    client, _ = _client(tmp_path, inventory=FakeResponse(200, body))

    assert client.get("/api/search-material", params={"artcno": "BP-1"}).json() == body

    labeled = client.get("/api/materials", params={"artcno": "BP-1"}).json()
    assert labeled["found"] is True
    assert labeled["items"][0]["rows"][1] == {"code": "dsgnm", "label": "디자인명", "value": "Twill"}


def test_search_material_not_found_and_missing_code(tmp_path):
    client, _ = _client(tmp_path)

    assert client.get("/api/search-material", params={"artcno": "NONE"}).json() == []
    assert client.get("/api/materials", params={"artcno": "NONE"}).json()["found"] is False
    res = client.get("/api/search-material")
    assert res.status_code == 400
    assert res.json() == {"error": "Article number (artcno) is required"}


def test_search_material_upstream_error_keeps_status(tmp_path):
    client, _ = _client(tmp_path, inventory=FakeResponse(404, {"errorMessage": "Material not found"}))
    res = client.get("/api/search-material", params={"artcno": "X"})

    assert res.status_code == 404
    assert res.json() == {"error": "Material not found"}


def test_material_labels(tmp_path):
    client, _ = _client(tmp_path)
    assert client.get("/api/material-labels").json()["artcno"] == "소재번호"


def test_misread_structured_date_is_fixed_in_review(tmp_path):
    text = (
        '{"basic_info": {"art_no": "TC-1", "fabric_name": "Fleece", "mill_name": "M", "date": "24/13/40"}}'
    )
    client, _ = _client(tmp_path, text=text)
    review = client.post("/api/analyze", json={"image": IMAGE}).json()
    session_id = review["session_id"]
    assert "date" in [f["name"] for f in review["form"]]
    assert client.post(f"/api/reviews/{session_id}/commit").status_code == 400

    res = client.patch(f"/api/reviews/{session_id}", json={"fields": {"date": "24/12/01"}})
    assert res.status_code == 200
    assert res.json()["problems"] == []

    res = client.post(f"/api/reviews/{session_id}/commit")
    assert res.status_code == 201
    stored = res.json()
    assert stored["fields"]["date"] == "20241201"
    assert stored["additional_data"]["basic_info"]["date"] == "20241201"


def test_analyze_purges_stale_pending_reviews(tmp_path):
    service = _service(tmp_path)
    stale = service.analyze(IMAGE, "flat")["session_id"]
    with service.db.connect() as conn:
        conn.execute(
            "UPDATE pending_reviews SET created_at = datetime('now', '-2 days') WHERE session_id = ?;", (stale,)
        )
        conn.commit()

    fresh = service.analyze(IMAGE, "flat")["session_id"]

    assert service.db.fetch_pending(stale) is None
    assert service.db.fetch_pending(fresh) is not None
    assert service.db.count_pending() == 1


def test_review_store_failure_is_json_error(tmp_path, monkeypatch):
    service = _service(tmp_path)
    session_id = service.analyze(IMAGE, "flat")["session_id"]

    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(service.db, "fetch_pending", broken)
    client = TestClient(create_app(root_dir=str(tmp_path), service=service, serve_static=False))

    for res in (
        client.get(f"/api/reviews/{session_id}"),
        client.patch(f"/api/reviews/{session_id}", json={"fields": {"spec": "x"}}),
        client.post(f"/api/reviews/{session_id}/commit"),
    ):
        assert res.status_code == 500
        assert "error" in res.json()

    monkeypatch.setattr(service.db, "delete_pending", broken)
    res = client.delete(f"/api/reviews/{session_id}")
    assert res.status_code == 500
    assert "error" in res.json()
