"""SQLite database holding the object store, projection and commit state.

One ``Database`` owns one connection.  The connection runs in autocommit
mode and ``transaction()`` opens explicit ``BEGIN``/``COMMIT`` blocks;
nested blocks join the outermost one so that a multi-field operation
(import of an entity, a merge) commits or rolls back as a unit.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from govdir.projection import Projection
from govdir.store.object_store import SqliteObjectStore
from govdir.tracking import CommitTracker

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


class Database:
    """Open (and initialise if needed) a govdir database.

    Args:
        path: Database file, or ``":memory:"`` for a throwaway database.
    """

    def __init__(self, path: str | Path = MEMORY) -> None:
        self.path = str(path)
        if self.path != MEMORY:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path, isolation_level=None)
        if self.path != MEMORY:
            self.conn.execute("PRAGMA journal_mode=WAL")
        self._depth = 0

        self.store = SqliteObjectStore(self.conn)
        self.projection = Projection(self.conn)
        self.tracker = CommitTracker(self.conn)
        self.create_schema()
        logger.debug("Opened database %s", self.path)

    def create_schema(self) -> None:
        self.store.create_schema()
        self.projection.create_schema()
        self.tracker.create_schema()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the block in a transaction, joining an enclosing one."""
        if self._depth:
            self._depth += 1
            try:
                yield self.conn
            finally:
                self._depth -= 1
            return

        self.conn.execute("BEGIN")
        self._depth = 1
        try:
            yield self.conn
        except BaseException:
            self.conn.execute("ROLLBACK")
            raise
        else:
            self.conn.execute("COMMIT")
        finally:
            self._depth = 0

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
