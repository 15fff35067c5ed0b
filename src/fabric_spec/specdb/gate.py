from __future__ import annotations

import sqlite3

from ..domain.models import FabricRecord
from ..errors import DuplicateKey, StoreError
from ..logging import get_logger
from .db import FabricSpecDatabase


LOG = get_logger("fabric-spec-gate")


def commit(db: FabricSpecDatabase, record: FabricRecord) -> FabricRecord:
    """Insert record unless its key is already stored.

    The lookup only spares the user a failed insert; the UNIQUE constraint on
    `key` is what rejects a concurrent duplicate, and that is reported the
    same way. Existing rows are never overwritten.
    """
    try:
        existing = db.find_by_key(record.key)
    except sqlite3.DatabaseError as exc:
        LOG.error("Duplicate check failed for key=%s: %s", record.key, exc)
        raise StoreError("저장 중 오류가 발생했습니다.") from exc
    if existing is not None:
        LOG.info("Rejected duplicate key=%s (existing id=%s)", record.key, existing.id)
        raise DuplicateKey(record.key)

    try:
        stored = db.insert_record(record)
    except sqlite3.IntegrityError as exc:
        if "unique" in str(exc).lower():
            LOG.info("Unique constraint rejected key=%s after pre-check", record.key)
            raise DuplicateKey(record.key) from exc
        LOG.error("Insert rejected for key=%s: %s", record.key, exc)
        raise StoreError("저장 중 오류가 발생했습니다.") from exc
    except sqlite3.DatabaseError as exc:
        LOG.error("Insert failed for key=%s: %s", record.key, exc)
        raise StoreError("저장 중 오류가 발생했습니다.") from exc

    LOG.info("Stored fabric spec id=%s key=%s", stored.id, stored.key)
    return stored
