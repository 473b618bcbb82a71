"""Per-entity commit tracking.

Decides which entities hold state that is not yet in the external file
tree.  Each entity known to the store has one row in ``entity_commit``:

* ``date`` set -- *Clean*: exported (or imported from a committed file)
  on that date and untouched since.
* ``date`` null -- *Dirty*: no clean record.

The record repo calls ``mark_dirty`` on every write or delete.  While
tracking is enabled this moves the entity to *Dirty* unconditionally, even
when the written value equals the old one, so the hot write path never has
to read before writing.  While tracking is disabled it does nothing; bulk
loaders record the resulting state themselves with ``record``.  Only
``mark_clean`` makes an entity *Clean* again.

The global switch lives in the ``commit_tracking`` table so it survives
across processes; ``bulk_mode()`` scopes a temporary suspension for bulk
loads and restores the previous setting afterwards.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from pydantic import BaseModel

from govdir.record.models import EntityType

logger = logging.getLogger(__name__)


class CommitState(BaseModel):
    """Commit state of one entity.

    Attributes:
        tracked: Whether the store has ever seen the entity.
        date: Date of the last clean record, ``None`` when dirty.
    """

    tracked: bool
    date: str | None = None

    model_config = {"frozen": True}

    @property
    def dirty(self) -> bool:
        return self.tracked and self.date is None


class UncommittedEntity(BaseModel):
    """An entity without a clean record."""

    entity_type: EntityType
    entity_id: str
    name: str | None = None

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return f"{self.entity_type.value}/{self.entity_id}"


class CommitTracker:
    """Commit-state bookkeeping on one SQLite connection.

    Args:
        conn: Open SQLite connection shared with the record repo.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS commit_tracking (
            id INTEGER PRIMARY KEY,
            enabled INTEGER NOT NULL DEFAULT 0
        );
        INSERT OR IGNORE INTO commit_tracking (id, enabled) VALUES (1, 1);
        CREATE TABLE IF NOT EXISTS entity_commit (
            entity_type TEXT NOT NULL,
            entity_id TEXT NOT NULL,
            date TEXT,
            PRIMARY KEY(entity_type, entity_id)
        );
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_schema(self) -> None:
        self._conn.executescript(self.SCHEMA)

    # ------------------------------------------------------------------
    # Switch
    # ------------------------------------------------------------------

    def is_enabled(self) -> bool:
        row = self._conn.execute(
            "SELECT enabled FROM commit_tracking WHERE id = 1"
        ).fetchone()
        return bool(row and row[0])

    def enable(self) -> None:
        self._set_enabled(True)

    def disable(self) -> None:
        self._set_enabled(False)

    @contextmanager
    def bulk_mode(self) -> Iterator[None]:
        """Suspend tracking for the duration of the block.

        The previous switch value is restored on exit, also when the block
        raises.
        """
        previous = self.is_enabled()
        self._set_enabled(False)
        try:
            yield
        finally:
            self._set_enabled(previous)

    def _set_enabled(self, enabled: bool) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO commit_tracking (id, enabled) VALUES (1, ?)",
            (1 if enabled else 0,),
        )
        logger.debug("Commit tracking %s", "enabled" if enabled else "disabled")

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def mark_dirty(self, entity_type: EntityType | str, entity_id: str) -> None:
        """Record that a field of the entity was written or deleted."""
        if not self.is_enabled():
            return
        self.record(entity_type, entity_id, None)

    def mark_clean(
        self, entity_type: EntityType | str, entity_id: str, date: str
    ) -> None:
        """Record a successful export (or committed import) on *date*."""
        self.record(entity_type, entity_id, date)

    def record(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        date: str | None,
    ) -> None:
        """Set the commit state directly, regardless of the switch."""
        self._conn.execute(
            "INSERT OR REPLACE INTO entity_commit "
            "(entity_type, entity_id, date) VALUES (?, ?, ?)",
            (EntityType(entity_type).value, entity_id, date),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def state(
        self, entity_type: EntityType | str, entity_id: str
    ) -> CommitState:
        row = self._conn.execute(
            "SELECT date FROM entity_commit "
            "WHERE entity_type = ? AND entity_id = ?",
            (EntityType(entity_type).value, entity_id),
        ).fetchone()
        if row is None:
            return CommitState(tracked=False)
        return CommitState(tracked=True, date=row[0])

    def is_dirty(self, entity_type: EntityType | str, entity_id: str) -> bool:
        return self.state(entity_type, entity_id).dirty

    def list_uncommitted(self) -> list[UncommittedEntity]:
        """Entities with no clean record, in ascending name order (ignoring case).

        Unnamed entities sort by their id.
        """
        rows = self._conn.execute(
            "SELECT c.entity_type, c.entity_id, e.name "
            "FROM entity_commit AS c "
            "LEFT JOIN entity AS e "
            "ON e.type = c.entity_type AND e.id = c.entity_id "
            "WHERE c.date IS NULL "
            "ORDER BY COALESCE(e.name, c.entity_id) COLLATE NOCASE, "
            "c.entity_type, c.entity_id"
        ).fetchall()
        return [
            UncommittedEntity(entity_type=t, entity_id=i, name=n)
            for t, i, n in rows
        ]
