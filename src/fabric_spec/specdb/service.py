from __future__ import annotations

import sqlite3
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

from ..config import AppSettings, load_settings
from ..domain.models import FabricRecord, LookupResult, SchemaGeneration
from ..domain.sanitize import sanitize
from ..errors import InputError, ReviewNotFound, StoreError
from ..logging import get_logger
from . import gate
from .constants import DEFAULT_GENERATION, PENDING_REVIEW_MAX_AGE_HOURS
from .db import FabricSpecDatabase
from .extraction import VisionExtractor
from .images import shrink_data_url
from .inventory import MaterialClient
from .normalizer import normalize
from .parser import extract_json, key_for_payload, parse_spec
from .review import apply_edits, build_form, fields_needing_attention, validate


LOG = get_logger("fabric-spec-service")


def parse_generation(value: Any, default: SchemaGeneration = DEFAULT_GENERATION) -> SchemaGeneration:
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    try:
        return SchemaGeneration.parse(value)
    except ValueError as exc:
        choices = ", ".join(g.value for g in SchemaGeneration)
        raise InputError(f"generation must be one of: {choices}") from exc


def run_pipeline(raw_text: str, generation: SchemaGeneration) -> Tuple[Dict[str, Any], FabricRecord]:
    """Model text -> (sanitized payload, normalized record). No I/O."""
    payload = sanitize(extract_json(raw_text))
    key = key_for_payload(generation, payload)
    spec = parse_spec(payload, generation, key=key, raw_text=raw_text)
    record = normalize(spec)
    LOG.debug("Pipeline produced key=%s generation=%s", key, generation.value)
    return payload, record


def review_payload(pending: Mapping[str, Any]) -> Dict[str, Any]:
    record: FabricRecord = pending["record"]
    return {
        "session_id": pending["session_id"],
        "generation": record.generation.value,
        "key": record.key,
        "record": record.as_dict(),
        "form": [f.as_dict() for f in build_form(record)],
        "needs_attention": fields_needing_attention(record),
        "problems": validate(record),
        "extracted": pending.get("payload"),
    }


@contextmanager
def _store_errors(message: str) -> Iterator[None]:
    """Report a failed datastore call as StoreError with a user-facing message."""
    try:
        yield
    except sqlite3.DatabaseError as exc:
        LOG.error("%s (%s)", message, exc)
        raise StoreError(message) from exc


class FabricSpecService:
    """High-level service coordinating extraction, review, and persistence."""

    def __init__(
        self,
        db: Optional[FabricSpecDatabase] = None,
        *,
        extractor: Optional[VisionExtractor] = None,
        materials: Optional[MaterialClient] = None,
        settings: Optional[AppSettings] = None,
        root_dir: Optional[str] = None,
        pending_max_age_hours: int = PENDING_REVIEW_MAX_AGE_HOURS,
    ) -> None:
        self.settings = settings or load_settings(root_dir)
        self.db = db or FabricSpecDatabase(root_dir=root_dir, db_path=self.settings.db_path)
        self.extractor = extractor or VisionExtractor(
            api_key=self.settings.openai_api_key,
            model_name=self.settings.model,
            base_url=self.settings.openai_base_url,
        )
        self.materials = materials or MaterialClient(
            self.settings.inventory_base_url,
            timeout=self.settings.inventory_timeout,
        )
        self.pending_max_age_hours = pending_max_age_hours
        try:
            self.default_generation = SchemaGeneration.parse(self.settings.generation)
        except ValueError:
            LOG.warning("FABRIC_SPEC_GENERATION=%r is invalid; using %s", self.settings.generation, DEFAULT_GENERATION.value)
            self.default_generation = DEFAULT_GENERATION

    def init_database(self) -> str:
        """Ensure the database exists and return its path."""
        LOG.info("Fabric spec database initialized.")
        return self.db.db_path

    # ---- analysis & review -----------------------------------------------------
    def extract(self, image: Any, generation: Any = None) -> Tuple[str, Dict[str, Any], FabricRecord]:
        """Image data URL -> (raw model text, sanitized payload, normalized record). Stores nothing."""
        gen = parse_generation(generation, self.default_generation)
        data_url = shrink_data_url(image)
        raw_text = self.extractor.request_text(data_url, gen)
        payload, record = run_pipeline(raw_text, gen)
        return raw_text, payload, record

    def analyze(self, image: Any, generation: Any = None) -> Dict[str, Any]:
        """Image data URL -> pending review awaiting human confirmation."""
        raw_text, payload, record = self.extract(image, generation)

        session_id = uuid.uuid4().hex
        with _store_errors("분석 결과를 임시 저장하지 못했습니다."):
            self.db.purge_pending(older_than_hours=self.pending_max_age_hours)
            self.db.save_pending(
                session_id,
                generation=record.generation,
                payload=payload,
                record=record,
                raw_content=raw_text,
            )
        LOG.info("Pending review %s ready (key=%s)", session_id, record.key)
        return review_payload({"session_id": session_id, "payload": payload, "record": record})

    def _pending(self, session_id: str) -> Dict[str, Any]:
        with _store_errors("검토 중인 데이터를 불러오지 못했습니다."):
            pending = self.db.fetch_pending(session_id)
        if pending is None:
            raise ReviewNotFound(session_id)
        return pending

    def get_review(self, session_id: str) -> Dict[str, Any]:
        return review_payload(self._pending(session_id))

    def edit_review(self, session_id: str, edits: Any) -> Dict[str, Any]:
        pending = self._pending(session_id)
        record = apply_edits(pending["record"], edits)
        with _store_errors("수정 내용을 저장하지 못했습니다."):
            self.db.update_pending_record(session_id, record)
        pending["record"] = record
        return review_payload(pending)

    def commit_record(self, record: FabricRecord) -> FabricRecord:
        """Validate and store a record through the duplicate-key gate."""
        problems = validate(record)
        if problems:
            raise InputError(" ".join(problems))
        return gate.commit(self.db, record)

    def commit_review(self, session_id: str) -> FabricRecord:
        """Store the reviewed record, then drop the pending copy."""
        pending = self._pending(session_id)
        stored = self.commit_record(pending["record"])
        try:
            self.db.delete_pending(session_id)
        except sqlite3.DatabaseError as exc:
            # The record is stored; the leftover row ages out via purge_pending.
            LOG.warning("Stored key=%s but could not drop pending review %s: %s", stored.key, session_id, exc)
        return stored

    def discard_review(self, session_id: str) -> None:
        with _store_errors("검토 중인 데이터를 삭제하지 못했습니다."):
            removed = self.db.delete_pending(session_id)
        if not removed:
            raise ReviewNotFound(session_id)
        LOG.info("Discarded pending review %s", session_id)

    # ---- lookups -----------------------------------------------------------------
    def lookup_material(self, code: Optional[str]) -> LookupResult:
        return self.materials.lookup(code)

    def list_records(self, *, limit: int = 25, offset: int = 0, search: Optional[str] = None) -> Dict[str, Any]:
        return self.db.fetch_records(limit=limit, offset=offset, search=search)

    def get_record(self, record_id: int) -> Optional[FabricRecord]:
        return self.db.fetch_record(record_id)
