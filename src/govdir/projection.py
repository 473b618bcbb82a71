"""Relational projection of the record tree.

The tree is canonical; these tables are a derived, queryable copy used for
search and lookups such as "who holds this office".  Every mutating
``RecordRepo`` call applies the same change here inside its transaction,
and ``rebuild`` regenerates everything from tree content.

Tables and views:

* ``entity(type, id, name)`` with the ``entity_idx`` FTS5 index kept in
  step by triggers.
* ``entity_photo``, ``entity_contact``.
* ``office_supervisor(office_id, relation, supervisor_office_id)``: an edge
  list, possibly cyclic.
* ``person_office_tenure(person_id, office_id, start, end)`` and the
  ``person_office_incumbent`` / ``person_office_quondam`` views.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel

from govdir.record.models import EntityType, SupervisingRelation
from govdir.record.paths import FieldKind, RecordPath

logger = logging.getLogger(__name__)

DEFAULT_CHAIN_DEPTH = 16


class EntitySummary(BaseModel):
    """An entity as listed by search."""

    entity_type: EntityType
    entity_id: str
    name: str

    model_config = {"frozen": True}


class TenureRow(BaseModel):
    """One person-in-office row, joined with the person's name."""

    person_id: str
    person_name: str | None = None
    office_id: str
    start: str | None = None
    end: str | None = None

    model_config = {"frozen": True}


class Projection:
    """Reads and writes the projection tables on one connection.

    Like the object store, the projection never commits; the owning
    ``Database`` decides transaction boundaries.

    Args:
        conn: Open SQLite connection.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS entity (
            type TEXT NOT NULL,
            id TEXT NOT NULL,
            name TEXT NOT NULL,
            PRIMARY KEY(type, id)
        );
        CREATE VIRTUAL TABLE IF NOT EXISTS entity_idx
            USING fts5(id, name, content = 'entity');
        CREATE TRIGGER IF NOT EXISTS entity_ai_fts AFTER INSERT ON entity BEGIN
            INSERT INTO entity_idx(rowid, id, name)
            VALUES (new.rowid, new.id, new.name);
        END;
        CREATE TRIGGER IF NOT EXISTS entity_ad_fts AFTER DELETE ON entity BEGIN
            INSERT INTO entity_idx(entity_idx, rowid, id, name)
            VALUES ('delete', old.rowid, old.id, old.name);
        END;
        CREATE TRIGGER IF NOT EXISTS entity_au_fts AFTER UPDATE ON entity BEGIN
            INSERT INTO entity_idx(entity_idx, rowid, id, name)
            VALUES ('delete', old.rowid, old.id, old.name);
            INSERT INTO entity_idx(rowid, id, name)
            VALUES (new.rowid, new.id, new.name);
        END;

        CREATE TABLE IF NOT EXISTS entity_photo (
            entity_type TEXT NOT NULL,
            entity_id TEXT NOT NULL,
            url TEXT NOT NULL,
            attribution TEXT,
            PRIMARY KEY(entity_type, entity_id)
        );
        CREATE TABLE IF NOT EXISTS entity_contact (
            entity_type TEXT NOT NULL,
            entity_id TEXT NOT NULL,
            type TEXT NOT NULL,
            value TEXT NOT NULL,
            PRIMARY KEY(entity_type, entity_id, type)
        );
        CREATE VIEW IF NOT EXISTS person (id, name) AS
            SELECT id, name FROM entity WHERE type = 'person';
        CREATE VIEW IF NOT EXISTS office (id, name) AS
            SELECT id, name FROM entity WHERE type = 'office';

        CREATE TABLE IF NOT EXISTS office_supervisor (
            office_id TEXT NOT NULL,
            relation TEXT NOT NULL,
            supervisor_office_id TEXT NOT NULL,
            PRIMARY KEY(office_id, relation)
        );
        CREATE TABLE IF NOT EXISTS person_office_tenure (
            person_id TEXT NOT NULL,
            office_id TEXT NOT NULL,
            start TEXT,
            end TEXT
        );
        CREATE INDEX IF NOT EXISTS person_office_tenure_office
            ON person_office_tenure(office_id);
        CREATE VIEW IF NOT EXISTS person_office_incumbent
            (person_id, office_id, start) AS
            SELECT person_id, office_id, start
            FROM person_office_tenure WHERE end IS NULL;
        CREATE VIEW IF NOT EXISTS person_office_quondam
            (person_id, office_id, start, end) AS
            SELECT person_id, office_id, start, end
            FROM person_office_tenure WHERE end IS NOT NULL;
    """

    _TABLES = (
        "entity",
        "entity_photo",
        "entity_contact",
        "office_supervisor",
        "person_office_tenure",
    )

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_schema(self) -> None:
        self._conn.executescript(self.SCHEMA)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply(self, record_path: RecordPath, value: Any) -> None:
        """Project one field value (already validated)."""
        rp = record_path
        typ, eid = rp.entity_type.value, rp.entity_id

        if rp.kind == FieldKind.NAME:
            self._conn.execute(
                "INSERT INTO entity (type, id, name) VALUES (?, ?, ?) "
                "ON CONFLICT (type, id) DO UPDATE SET name = excluded.name",
                (typ, eid, value),
            )
        elif rp.kind == FieldKind.PHOTO:
            self._conn.execute(
                "INSERT OR REPLACE INTO entity_photo "
                "(entity_type, entity_id, url, attribution) VALUES (?, ?, ?, ?)",
                (typ, eid, value["url"], value.get("attribution")),
            )
        elif rp.kind == FieldKind.CONTACT:
            self._conn.execute(
                "INSERT OR REPLACE INTO entity_contact "
                "(entity_type, entity_id, type, value) VALUES (?, ?, ?, ?)",
                (typ, eid, rp.contact_type.value, value),
            )
        elif rp.kind == FieldKind.SUPERVISOR:
            self._conn.execute(
                "INSERT OR REPLACE INTO office_supervisor "
                "(office_id, relation, supervisor_office_id) VALUES (?, ?, ?)",
                (eid, rp.relation.value, value),
            )
        elif rp.kind == FieldKind.TENURE:
            self._delete_tenure(rp)
            self._conn.execute(
                "INSERT INTO person_office_tenure "
                "(person_id, office_id, start, end) VALUES (?, ?, ?, ?)",
                (eid, rp.office_id, rp.start, value),
            )

    def remove(self, record_path: RecordPath) -> None:
        """Remove the projected row of one field, if any."""
        rp = record_path
        typ, eid = rp.entity_type.value, rp.entity_id

        if rp.kind == FieldKind.NAME:
            self._conn.execute(
                "DELETE FROM entity WHERE type = ? AND id = ?", (typ, eid)
            )
        elif rp.kind == FieldKind.PHOTO:
            self._conn.execute(
                "DELETE FROM entity_photo "
                "WHERE entity_type = ? AND entity_id = ?",
                (typ, eid),
            )
        elif rp.kind == FieldKind.CONTACT:
            self._conn.execute(
                "DELETE FROM entity_contact "
                "WHERE entity_type = ? AND entity_id = ? AND type = ?",
                (typ, eid, rp.contact_type.value),
            )
        elif rp.kind == FieldKind.SUPERVISOR:
            self._conn.execute(
                "DELETE FROM office_supervisor "
                "WHERE office_id = ? AND relation = ?",
                (eid, rp.relation.value),
            )
        elif rp.kind == FieldKind.TENURE:
            self._delete_tenure(rp)

    def clear(self) -> None:
        for table in self._TABLES:
            self._conn.execute(f"DELETE FROM {table}")

    def rebuild(self, entries: Iterable[tuple[RecordPath, Any]]) -> int:
        """Replace all projected rows with *entries*.

        Returns:
            Number of fields projected.
        """
        self.clear()
        count = 0
        for record_path, value in entries:
            self.apply(record_path, value)
            count += 1
        logger.info("Projection rebuilt from %d fields", count)
        return count

    def _delete_tenure(self, rp: RecordPath) -> None:
        self._conn.execute(
            "DELETE FROM person_office_tenure "
            "WHERE person_id = ? AND office_id = ? AND start IS ?",
            (rp.entity_id, rp.office_id, rp.start),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def entity_name(
        self, entity_type: EntityType | str, entity_id: str
    ) -> str | None:
        row = self._conn.execute(
            "SELECT name FROM entity WHERE type = ? AND id = ?",
            (EntityType(entity_type).value, entity_id),
        ).fetchone()
        return row[0] if row else None

    def search(self, text: str, limit: int = 20) -> list[EntitySummary]:
        """Full-text search over entity names and ids.

        Each word of *text* is matched as a prefix; all words must match.
        """
        words = re.findall(r"\w+", text)
        if not words:
            return []
        query = " ".join(f'"{w}"*' for w in words)
        rows = self._conn.execute(
            "SELECT e.type, e.id, e.name FROM entity_idx "
            "JOIN entity AS e ON e.rowid = entity_idx.rowid "
            "WHERE entity_idx MATCH ? ORDER BY rank LIMIT ?",
            (query, limit),
        ).fetchall()
        return [
            EntitySummary(entity_type=t, entity_id=i, name=n)
            for t, i, n in rows
        ]

    def incumbents(self, office_id: str) -> list[TenureRow]:
        """Current holders of *office_id*."""
        rows = self._conn.execute(
            "SELECT i.person_id, p.name, i.office_id, i.start "
            "FROM person_office_incumbent AS i "
            "LEFT JOIN person AS p ON p.id = i.person_id "
            "WHERE i.office_id = ? ORDER BY i.start DESC, i.person_id",
            (office_id,),
        ).fetchall()
        return [
            TenureRow(person_id=pid, person_name=name, office_id=oid, start=s)
            for pid, name, oid, s in rows
        ]

    def quondams(self, office_id: str) -> list[TenureRow]:
        """Past holders of *office_id*, most recent first."""
        rows = self._conn.execute(
            "SELECT q.person_id, p.name, q.office_id, q.start, q.end "
            "FROM person_office_quondam AS q "
            "LEFT JOIN person AS p ON p.id = q.person_id "
            "WHERE q.office_id = ? ORDER BY q.end DESC, q.person_id",
            (office_id,),
        ).fetchall()
        return [
            TenureRow(
                person_id=pid, person_name=name, office_id=oid, start=s, end=e
            )
            for pid, name, oid, s, e in rows
        ]

    def supervisor_chain(
        self,
        office_id: str,
        relation: SupervisingRelation = SupervisingRelation.RESPONSIBLE_TO,
        max_depth: int = DEFAULT_CHAIN_DEPTH,
    ) -> list[str]:
        """Follow *relation* edges upwards from *office_id*.

        Supervision may form cycles, so the walk stops at the first office
        already visited or after *max_depth* steps.

        Returns:
            Office ids in walk order, excluding *office_id* itself.
        """
        chain: list[str] = []
        seen = {office_id}
        current = office_id
        for _ in range(max_depth):
            row = self._conn.execute(
                "SELECT supervisor_office_id FROM office_supervisor "
                "WHERE office_id = ? AND relation = ?",
                (current, SupervisingRelation(relation).value),
            ).fetchone()
            if row is None:
                break
            current = row[0]
            if current in seen:
                logger.warning(
                    "Supervision cycle at office '%s' (%s)",
                    current,
                    SupervisingRelation(relation).value,
                )
                break
            seen.add(current)
            chain.append(current)
        return chain

    def entity_counts(self) -> dict[str, int]:
        row = self._conn.execute(
            "SELECT "
            "COUNT(CASE WHEN type = 'person' THEN 1 END), "
            "COUNT(CASE WHEN type = 'office' THEN 1 END) "
            "FROM entity"
        ).fetchone()
        return {"persons": row[0], "offices": row[1]}
