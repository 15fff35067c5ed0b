from __future__ import annotations

import json
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from ..domain.models import FLAT_FIELDS, FabricRecord, SchemaGeneration
from ..logging import get_logger
from ..paths import expand_abs, find_project_root, var_dir


LOG = get_logger("fabric-spec-db")


DEFAULT_DB_FOLDER = "specdb"
DEFAULT_DB_FILENAME = "fabric_specs.sqlite3"

GENERATION_ENUM_SQL = ", ".join(f"'{g.value}'" for g in SchemaGeneration)

# Columns added after the first flat-only table shipped.
_LATE_COLUMNS = {
    "generation": f"TEXT NOT NULL DEFAULT '{SchemaGeneration.FLAT.value}'",
    "name": "TEXT",
    "weight_value": "TEXT",
    "weight_unit": "TEXT",
    "additional_data": "TEXT NOT NULL DEFAULT '{}'",
}


SCHEMA_SQL = f"""
-- 1) Approved fabric specs, one row per dedup key
CREATE TABLE IF NOT EXISTS fabric_specs (
  id               INTEGER PRIMARY KEY,
  key              TEXT NOT NULL UNIQUE,
  generation       TEXT NOT NULL DEFAULT 'structured'
                   CHECK(generation IN ({GENERATION_ENUM_SQL})),
  art_no           TEXT,
  name             TEXT,
  mill_name        TEXT,
  date             TEXT,              -- YYYYMMDD when the sheet used NN/NN/NN
  composition      TEXT,
  spec             TEXT,
  finishing        TEXT,
  weight           TEXT,              -- combined value+unit (flat generation)
  weight_value     TEXT,
  weight_unit      TEXT,
  width            TEXT,
  price            TEXT,              -- digits and decimal point only
  additional_data  TEXT NOT NULL DEFAULT '{{}}',  -- JSON object
  created_at       TEXT DEFAULT (datetime('now'))
);

-- 2) Extractions awaiting human review
CREATE TABLE IF NOT EXISTS pending_reviews (
  session_id   TEXT PRIMARY KEY,
  generation   TEXT NOT NULL,
  payload      TEXT NOT NULL,         -- sanitized model JSON
  record       TEXT NOT NULL,         -- normalized record JSON
  raw_content  TEXT,
  created_at   TEXT DEFAULT (datetime('now')),
  updated_at   TEXT
);

-- Helpful indexes
CREATE UNIQUE INDEX IF NOT EXISTS idx_fabric_specs_key    ON fabric_specs(key);
CREATE INDEX IF NOT EXISTS idx_fabric_specs_art_no        ON fabric_specs(art_no);
CREATE INDEX IF NOT EXISTS idx_fabric_specs_mill_name     ON fabric_specs(mill_name);
"""

_RECORD_COLUMNS = ("key", "generation", "art_no", "name", "mill_name", *[
    f for f in FLAT_FIELDS if f not in ("art_no", "mill_name")
], "additional_data")


def _json_dumps(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def record_to_json(record: FabricRecord) -> str:
    return _json_dumps(record.as_dict())


def record_from_dict(data: Dict[str, Any]) -> FabricRecord:
    return FabricRecord(
        key=data["key"],
        generation=SchemaGeneration.parse(data["generation"]),
        art_no=data.get("art_no"),
        name=data.get("name"),
        mill_name=data.get("mill_name"),
        fields=dict(data.get("fields") or {}),
        additional_data=dict(data.get("additional_data") or {}),
        id=data.get("id"),
        created_at=data.get("created_at"),
    )


class FabricSpecDatabase:
    """SQLite-backed store for approved fabric specs and pending reviews.

    - Places DB under `<repo-root>/var/specdb/fabric_specs.sqlite3` unless
      an explicit path is given.
    - Ensures schema on first use.
    - Provides a context-managed connection method.
    """

    def __init__(self, root_dir: Optional[str] = None, *, db_path: Optional[str] = None) -> None:
        if db_path:
            self.db_path = expand_abs(db_path)
            os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
        else:
            root = find_project_root(root_dir)
            db_folder = os.path.join(var_dir(root), DEFAULT_DB_FOLDER)
            os.makedirs(db_folder, exist_ok=True)
            self.db_path = os.path.join(db_folder, DEFAULT_DB_FILENAME)
        LOG.info(f"Fabric spec DB path: {self.db_path}")
        self._ensure_schema()

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self.connect() as conn:
            cur = conn.cursor()
            try:
                cur.execute("PRAGMA journal_mode=WAL;")
                cur.execute("PRAGMA synchronous=NORMAL;")
            except sqlite3.DatabaseError:
                LOG.debug("WAL journal mode unavailable; continuing with defaults")
            LOG.info("Ensuring fabric spec DB schema is present…")
            self._migrate_fabric_specs_add_columns(conn)
            cur.executescript(SCHEMA_SQL)
            conn.commit()
            LOG.info("Fabric spec DB schema ensured.")

    def _migrate_fabric_specs_add_columns(self, conn: sqlite3.Connection) -> None:
        """Add columns introduced by later generations to an older flat table."""
        cur = conn.cursor()
        cur.execute("PRAGMA table_info(fabric_specs);")
        columns = {row[1] for row in cur.fetchall()}
        if not columns:
            return
        missing = [name for name in _LATE_COLUMNS if name not in columns]
        if not missing:
            return
        LOG.info("Migrating fabric_specs: adding column(s) %s", ", ".join(missing))
        try:
            for name in missing:
                cur.execute(f"ALTER TABLE fabric_specs ADD COLUMN {name} {_LATE_COLUMNS[name]};")
            conn.commit()
        except sqlite3.DatabaseError:
            LOG.exception("Failed to migrate fabric_specs table; rolling back changes")
            conn.rollback()
            raise

    # --------------- Records ---------------
    def _row_to_record(self, row: sqlite3.Row) -> FabricRecord:
        try:
            additional = json.loads(row["additional_data"] or "{}")
        except ValueError:
            LOG.warning("Unreadable additional_data for key=%s; returning empty map", row["key"])
            additional = {}
        return FabricRecord(
            key=row["key"],
            generation=SchemaGeneration.parse(row["generation"]),
            art_no=row["art_no"],
            name=row["name"],
            mill_name=row["mill_name"],
            fields={name: row[name] for name in FLAT_FIELDS},
            additional_data=additional if isinstance(additional, dict) else {},
            id=int(row["id"]),
            created_at=row["created_at"],
        )

    def find_by_key(self, key: str) -> Optional[FabricRecord]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM fabric_specs WHERE key = ? LIMIT 1;", (key,)).fetchone()
        return self._row_to_record(row) if row else None

    def insert_record(self, record: FabricRecord) -> FabricRecord:
        """Insert a record and return it with the store-assigned id/created_at.

        sqlite3.IntegrityError propagates when the key already exists.
        """
        values: Dict[str, Any] = {
            "key": record.key,
            "generation": record.generation.value,
            "art_no": record.art_no,
            "name": record.name,
            "mill_name": record.mill_name,
            "additional_data": _json_dumps(record.additional_data or {}),
        }
        for name in FLAT_FIELDS:
            if name not in values:
                values[name] = record.fields.get(name)
        cols = ", ".join(_RECORD_COLUMNS)
        marks = ", ".join("?" for _ in _RECORD_COLUMNS)
        with self.connect() as conn:
            cur = conn.cursor()
            cur.execute(
                f"INSERT INTO fabric_specs ({cols}) VALUES ({marks}) RETURNING id, created_at;",
                tuple(values[c] for c in _RECORD_COLUMNS),
            )
            row = cur.fetchone()
            conn.commit()
        LOG.debug("Inserted fabric spec id=%s key=%s", row["id"], record.key)
        return FabricRecord(
            key=record.key,
            generation=record.generation,
            art_no=record.art_no,
            name=record.name,
            mill_name=record.mill_name,
            fields=dict(record.fields),
            additional_data=record.additional_data,
            id=int(row["id"]),
            created_at=row["created_at"],
        )

    def fetch_record(self, record_id: int) -> Optional[FabricRecord]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM fabric_specs WHERE id = ?;", (int(record_id),)).fetchone()
        return self._row_to_record(row) if row else None

    def count_records(self) -> int:
        with self.connect() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM fabric_specs;").fetchone()[0])

    def fetch_records(self, *, limit: int = 25, offset: int = 0, search: Optional[str] = None) -> Dict[str, Any]:
        where = ""
        params: List[Any] = []
        if search:
            where = "WHERE art_no LIKE ? OR name LIKE ? OR mill_name LIKE ? OR key LIKE ?"
            like = f"%{search.strip()}%"
            params.extend([like, like, like, like])
        with self.connect() as conn:
            total = int(conn.execute(f"SELECT COUNT(*) FROM fabric_specs {where};", params).fetchone()[0])
            rows = conn.execute(
                f"SELECT * FROM fabric_specs {where} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?;",
                [*params, int(limit), int(offset)],
            ).fetchall()
        return {
            "items": [self._row_to_record(r).as_dict() for r in rows],
            "total": total,
            "limit": int(limit),
            "offset": int(offset),
        }

    # --------------- Pending reviews ---------------
    def save_pending(
        self,
        session_id: str,
        *,
        generation: SchemaGeneration,
        payload: Dict[str, Any],
        record: FabricRecord,
        raw_content: Optional[str],
    ) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO pending_reviews (session_id, generation, payload, record, raw_content)
                VALUES (?, ?, ?, ?, ?);
                """,
                (session_id, generation.value, _json_dumps(payload), record_to_json(record), raw_content),
            )
            conn.commit()

    def update_pending_record(self, session_id: str, record: FabricRecord) -> bool:
        with self.connect() as conn:
            cur = conn.execute(
                "UPDATE pending_reviews SET record = ?, updated_at = datetime('now') WHERE session_id = ?;",
                (record_to_json(record), session_id),
            )
            conn.commit()
            return cur.rowcount > 0

    def fetch_pending(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self.connect() as conn:
            row = conn.execute("SELECT * FROM pending_reviews WHERE session_id = ?;", (session_id,)).fetchone()
        if row is None:
            return None
        return {
            "session_id": row["session_id"],
            "generation": SchemaGeneration.parse(row["generation"]),
            "payload": json.loads(row["payload"]),
            "record": record_from_dict(json.loads(row["record"])),
            "raw_content": row["raw_content"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }

    def delete_pending(self, session_id: str) -> bool:
        with self.connect() as conn:
            cur = conn.execute("DELETE FROM pending_reviews WHERE session_id = ?;", (session_id,))
            conn.commit()
            return cur.rowcount > 0

    def purge_pending(self, *, older_than_hours: int) -> int:
        """Delete pending reviews not created or edited within the given age."""
        with self.connect() as conn:
            cur = conn.execute(
                "DELETE FROM pending_reviews WHERE COALESCE(updated_at, created_at) < datetime('now', ?);",
                (f"-{int(older_than_hours)} hours",),
            )
            conn.commit()
            removed = cur.rowcount
        if removed:
            LOG.info("Purged %d stale pending review(s)", removed)
        return removed

    def count_pending(self) -> int:
        with self.connect() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM pending_reviews;").fetchone()[0])
