"""
SQLite persistence layer for spec items.

One database file (output/specs.db) holds:

  - spec_items  one row per item; links, annotations and price components
                are JSON columns
  - audit_log   append-only history of every committed change

Every write method is a single transaction, so a multi-field patch (approval
withdrawn + status reverted, price edit + derived price) commits together or
not at all.  There is no version column: the last write wins.

Status values are stored as the raw string.  Rows are normalised to a
canonical SpecStatus on read (legacy aliases included) without rewriting the
stored value; it only changes when a new status is written.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

from models.spec_item import SpecItem
from models.status import SpecStatus, normalise_status

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS spec_items (
    id                     TEXT PRIMARY KEY,
    project_id             TEXT NOT NULL,
    name                   TEXT NOT NULL,
    sku                    TEXT,
    model                  TEXT,
    doc_code               TEXT,
    brand                  TEXT,

    -- Placement
    room_id                TEXT,
    section_id             TEXT,
    sort_order             REAL NOT NULL DEFAULT 0,

    -- Commercial
    quantity               REAL NOT NULL DEFAULT 1,
    unit_type              TEXT,
    trade_price            REAL,
    trade_price_currency   TEXT,
    rrp                    REAL,
    rrp_currency           TEXT,
    markup_percent         REAL,
    trade_discount_percent REAL,
    supplier_id            TEXT,
    components             TEXT NOT NULL DEFAULT '[]',

    -- Workflow
    status                 TEXT NOT NULL DEFAULT 'SELECTED',
    client_approved        INTEGER NOT NULL DEFAULT 0,

    -- Linkage: legacy single link + JSON list of {link_id, requirement_id}
    ffe_requirement_id     TEXT,
    links                  TEXT NOT NULL DEFAULT '[]',

    -- JSON list of flagged / group_parent / group_child annotations
    annotations            TEXT NOT NULL DEFAULT '[]',

    created_at             TEXT NOT NULL,
    updated_at             TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_spec_items_project ON spec_items (project_id);
CREATE INDEX IF NOT EXISTS idx_spec_items_room    ON spec_items (room_id);
CREATE INDEX IF NOT EXISTS idx_spec_items_status  ON spec_items (status);

CREATE TABLE IF NOT EXISTS audit_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    item_id     TEXT    NOT NULL,
    timestamp   TEXT    NOT NULL,   -- ISO-8601 UTC
    action      TEXT    NOT NULL,   -- created | updated | archived | ungrouped | deleted
    actor       TEXT    NOT NULL DEFAULT 'system',
    detail      TEXT                -- optional JSON blob with action-specific context
);

CREATE INDEX IF NOT EXISTS idx_audit_item      ON audit_log (item_id);
CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log (timestamp DESC);
"""

_JSON_COLUMNS = {"links", "annotations", "components"}

# Columns a partial update may touch (id, project_id and created_at are fixed)
UPDATABLE_COLUMNS = {
    "name", "sku", "model", "doc_code", "brand",
    "room_id", "section_id", "sort_order",
    "quantity", "unit_type",
    "trade_price", "trade_price_currency", "rrp", "rrp_currency",
    "markup_percent", "trade_discount_percent", "supplier_id", "components",
    "status", "client_approved",
    "ffe_requirement_id", "links", "annotations",
}

_GROUPING_KINDS = {"group_parent", "group_child"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_column(key: str, value: Any) -> Any:
    """Convert a model value to its SQLite column representation."""
    if key in _JSON_COLUMNS:
        return json.dumps([
            v.model_dump(mode="json") if isinstance(v, BaseModel) else v
            for v in (value or [])
        ])
    if isinstance(value, SpecStatus):
        return value.value
    if key == "client_approved":
        return 1 if value else 0
    return value


def _row_to_item(row: sqlite3.Row) -> SpecItem:
    data = dict(row)
    data.pop("updated_at", None)
    for key in _JSON_COLUMNS:
        data[key] = json.loads(data[key] or "[]")
    raw = data.pop("status")
    status = normalise_status(raw)
    data["status"] = status
    data["raw_status"] = raw if raw != status.value else None
    data["client_approved"] = bool(data["client_approved"])
    return SpecItem(**data)


class Database:
    """Thin wrapper around an SQLite database file for spec item state."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def create_item(self, item: SpecItem, actor: str = "system") -> None:
        """Insert a new spec item.  Raises sqlite3.IntegrityError on a duplicate id."""
        columns = ["id", "project_id", "created_at", "updated_at"] + sorted(UPDATABLE_COLUMNS)
        values = {
            "id": item.id,
            "project_id": item.project_id,
            "created_at": item.created_at.isoformat(),
            "updated_at": _now(),
        }
        for key in UPDATABLE_COLUMNS:
            values[key] = _to_column(key, getattr(item, key))

        placeholders = ", ".join(f":{c}" for c in columns)
        with self._conn() as conn:
            conn.execute(
                f"INSERT INTO spec_items ({', '.join(columns)}) VALUES ({placeholders})",
                values,
            )
        logger.info("DB created item %s (%s)", item.id, item.name)
        self.log_audit(item.id, "created", actor=actor, detail={"name": item.name})

    def update_item(self, item_id: str, fields: dict, actor: str = "system") -> bool:
        """
        Partially update one item in a single transaction.

        Only the given fields are written.  Returns True if the record was found.
        """
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Invalid field(s) {sorted(unknown)}. Must be among {sorted(UPDATABLE_COLUMNS)}")
        if not fields:
            return self.get_item(item_id) is not None

        params = {k: _to_column(k, v) for k, v in fields.items()}
        assignments = ", ".join(f"{k} = :{k}" for k in params)
        params["updated_at"] = _now()
        params["_id"] = item_id

        with self._conn() as conn:
            conn.execute(
                f"UPDATE spec_items SET {assignments}, updated_at = :updated_at WHERE id = :_id",
                params,
            )
            changed = conn.execute("SELECT changes()").fetchone()[0]

        if changed:
            detail = {k: (v.value if isinstance(v, SpecStatus) else v)
                      for k, v in fields.items() if k not in _JSON_COLUMNS}
            self.log_audit(item_id, "updated", actor=actor, detail={
                "fields": sorted(fields), **({"values": detail} if detail else {}),
            })
        return changed > 0

    def archive_item(self, item_id: str, actor: str = "system") -> bool:
        """Set status ARCHIVED and clear every requirement link."""
        with self._conn() as conn:
            conn.execute(
                """UPDATE spec_items SET
                    status             = 'ARCHIVED',
                    links              = '[]',
                    ffe_requirement_id = NULL,
                    updated_at         = ?
                WHERE id = ?""",
                (_now(), item_id),
            )
            changed = conn.execute("SELECT changes()").fetchone()[0]
        if changed:
            self.log_audit(item_id, "archived", actor=actor)
        return changed > 0

    def ungroup_item(self, item_id: str, actor: str = "system") -> bool:
        """Strip grouping annotations from one item, leaving links and flags alone."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT annotations FROM spec_items WHERE id = ?", (item_id,)
            ).fetchone()
            if row is None:
                return False
            kept = [a for a in json.loads(row["annotations"] or "[]")
                    if a.get("kind") not in _GROUPING_KINDS]
            conn.execute(
                "UPDATE spec_items SET annotations = ?, updated_at = ? WHERE id = ?",
                (json.dumps(kept), _now(), item_id),
            )
        self.log_audit(item_id, "ungrouped", actor=actor)
        return True

    def delete_item(self, item_id: str, actor: str = "system") -> bool:
        """Delete a spec item record entirely."""
        with self._conn() as conn:
            conn.execute("DELETE FROM spec_items WHERE id = ?", (item_id,))
            changed = conn.execute("SELECT changes()").fetchone()[0] > 0
        if changed:
            self.log_audit(item_id, "deleted", actor=actor)
        return changed

    def log_audit(
        self,
        item_id: str,
        action: str,
        actor: str = "system",
        detail: Optional[dict] = None,
    ) -> None:
        """Append one entry to the audit log."""
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO audit_log (item_id, timestamp, action, actor, detail)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    item_id,
                    _now(),
                    action,
                    actor,
                    json.dumps(detail) if detail is not None else None,
                ),
            )

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get_item(self, item_id: str) -> Optional[SpecItem]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM spec_items WHERE id = ?", (item_id,)
            ).fetchone()
        return _row_to_item(row) if row else None

    def get_raw_status(self, item_id: str) -> Optional[str]:
        """The status string exactly as stored."""
        with self._conn() as conn:
            row = conn.execute(
                "SELECT status FROM spec_items WHERE id = ?", (item_id,)
            ).fetchone()
        return row["status"] if row else None

    def list_items(self, project_id: str, include_archived: bool = True) -> list[SpecItem]:
        """All items of a project in creation order."""
        sql = "SELECT * FROM spec_items WHERE project_id = ?"
        if not include_archived:
            sql += " AND status != 'ARCHIVED'"
        sql += " ORDER BY created_at ASC, rowid ASC"
        with self._conn() as conn:
            rows = conn.execute(sql, (project_id,)).fetchall()
        return [_row_to_item(r) for r in rows]

    def get_audit_log(self, item_id: str) -> list[dict]:
        """Return all audit entries for one item, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT id, timestamp, action, actor, detail
                   FROM audit_log WHERE item_id = ?
                   ORDER BY timestamp ASC, id ASC""",
                (item_id,),
            ).fetchall()
        return [dict(r) for r in rows]
