"""Content-addressed blob storage with named refs.

Blobs are addressed by the BLAKE3 digest of their exact bytes, so putting
the same bytes twice is a no-op returning the same hash.  Refs are the only
mutable slots: a ref name points at exactly one hash.

Two implementations are provided:

* ``MemoryObjectStore`` -- dict-backed, used for scratch trees and tests.
* ``SqliteObjectStore`` -- the persisted layout, two tables ``repo`` and
  ``refs`` living in the same database as the relational projection.
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod

from blake3 import blake3

from govdir.errors import NoSuchRef, NotFound

logger = logging.getLogger(__name__)

HASH_SIZE = 32


def hash_blob(data: bytes) -> str:
    """Return the hex BLAKE3 digest addressing *data*."""
    return blake3(data).hexdigest()


class ObjectStore(ABC):
    """Interface for the ``hash -> blob`` and ``name -> hash`` mappings."""

    @abstractmethod
    def put(self, data: bytes) -> str:
        """Store *data* and return its hash.  Idempotent."""

    @abstractmethod
    def get(self, blob_hash: str) -> bytes:
        """Return the blob for *blob_hash*.

        Raises:
            NotFound: If no blob is stored under that hash.
        """

    @abstractmethod
    def has(self, blob_hash: str) -> bool:
        pass

    @abstractmethod
    def set_ref(self, name: str, blob_hash: str) -> None:
        """Point ref *name* at *blob_hash*, replacing any previous target."""

    @abstractmethod
    def get_ref(self, name: str) -> str:
        """Return the hash ref *name* points at.

        Raises:
            NoSuchRef: If the ref was never set.
        """

    @abstractmethod
    def refs(self) -> dict[str, str]:
        pass

    def get_ref_or_none(self, name: str) -> str | None:
        try:
            return self.get_ref(name)
        except NoSuchRef:
            return None


class MemoryObjectStore(ObjectStore):
    """Object store kept entirely in process memory."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._refs: dict[str, str] = {}

    def put(self, data: bytes) -> str:
        blob_hash = hash_blob(data)
        self._blobs.setdefault(blob_hash, bytes(data))
        return blob_hash

    def get(self, blob_hash: str) -> bytes:
        try:
            return self._blobs[blob_hash]
        except KeyError:
            raise NotFound(f"no blob stored for hash {blob_hash}") from None

    def has(self, blob_hash: str) -> bool:
        return blob_hash in self._blobs

    def set_ref(self, name: str, blob_hash: str) -> None:
        self._refs[name] = blob_hash

    def get_ref(self, name: str) -> str:
        try:
            return self._refs[name]
        except KeyError:
            raise NoSuchRef(name) from None

    def refs(self) -> dict[str, str]:
        return dict(self._refs)

    def __len__(self) -> int:
        return len(self._blobs)


class SqliteObjectStore(ObjectStore):
    """Object store persisted in the ``repo`` and ``refs`` SQLite tables.

    The store never commits on its own.  Transaction boundaries belong to
    the owner of the connection (see ``govdir.database.Database``), which
    lets a ref swap share a transaction with the blobs it points at.

    Args:
        conn: Open SQLite connection.
    """

    SCHEMA = """
        CREATE TABLE IF NOT EXISTS repo (
            hash BLOB NOT NULL PRIMARY KEY,
            blob BLOB NOT NULL
        );
        CREATE TABLE IF NOT EXISTS refs (
            name TEXT NOT NULL PRIMARY KEY,
            hash BLOB NOT NULL
        );
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def create_schema(self) -> None:
        self._conn.executescript(self.SCHEMA)

    def put(self, data: bytes) -> str:
        blob_hash = hash_blob(data)
        self._conn.execute(
            "INSERT OR IGNORE INTO repo (hash, blob) VALUES (?, ?)",
            (bytes.fromhex(blob_hash), bytes(data)),
        )
        return blob_hash

    def get(self, blob_hash: str) -> bytes:
        row = self._conn.execute(
            "SELECT blob FROM repo WHERE hash = ?",
            (bytes.fromhex(blob_hash),),
        ).fetchone()
        if row is None:
            raise NotFound(f"no blob stored for hash {blob_hash}")
        return bytes(row[0])

    def has(self, blob_hash: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM repo WHERE hash = ?",
            (bytes.fromhex(blob_hash),),
        ).fetchone()
        return row is not None

    def set_ref(self, name: str, blob_hash: str) -> None:
        if not self.has(blob_hash):
            raise NotFound(
                f"refusing to point ref '{name}' at missing blob {blob_hash}"
            )
        self._conn.execute(
            "INSERT OR REPLACE INTO refs (name, hash) VALUES (?, ?)",
            (name, bytes.fromhex(blob_hash)),
        )
        logger.debug("ref %s -> %s", name, blob_hash)

    def get_ref(self, name: str) -> str:
        row = self._conn.execute(
            "SELECT hash FROM refs WHERE name = ?", (name,)
        ).fetchone()
        if row is None:
            raise NoSuchRef(name)
        return bytes(row[0]).hex()

    def refs(self) -> dict[str, str]:
        rows = self._conn.execute(
            "SELECT name, hash FROM refs ORDER BY name"
        ).fetchall()
        return {name: bytes(h).hex() for name, h in rows}

    def blob_count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM repo").fetchone()[0]
