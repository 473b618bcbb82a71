"""Path-keyed record repository.

``RecordRepo`` is the single write path into a govdir database.  Each
mutation validates the path and value first, then in one transaction:

1. advances the Merkle Search Tree and swaps the working ref,
2. applies the same change to the relational projection,
3. notifies commit tracking that the entity changed.

An invalid ``set`` therefore never leaves a partial write behind.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from typing import Any

from pydantic import BaseModel

from govdir.database import Database
from govdir.errors import ValidationError
from govdir.record.models import EntityType
from govdir.record.paths import (
    RecordPath,
    decode_value,
    encode_value,
    entity_prefix,
    make_path,
    parse_path,
    validate_value,
)
from govdir.store.mst import MerkleSearchTree, MstStats

logger = logging.getLogger(__name__)

WORKING_REF = "working"


class RepoStats(BaseModel):
    """Figures reported by ``govdir stats``."""

    root: str
    persons: int
    offices: int
    blobs: int
    tree: MstStats

    model_config = {"frozen": True}


class RecordRepo:
    """Read and write entity fields by path.

    Args:
        db: Open database.
        ref: Name of the ref holding the current root.
        person_id_max_length: When set, writes to person ids longer than
            this are rejected.  Off by default: ids derived by
            ``derive_person_id`` are at most 8 characters, but existing
            keys such as ``person/narendramodi`` are longer and stay
            writable.
    """

    def __init__(
        self,
        db: Database,
        ref: str = WORKING_REF,
        person_id_max_length: int | None = None,
    ) -> None:
        self.db = db
        self.ref = ref
        self.person_id_max_length = person_id_max_length
        self.tree = MerkleSearchTree(db.store)

        if db.store.get_ref_or_none(ref) is None:
            with db.transaction():
                db.store.set_ref(ref, self.tree.empty_root())
            logger.info("Initialised ref '%s' with an empty tree", ref)

    @property
    def tracker(self):
        return self.db.tracker

    @property
    def projection(self):
        return self.db.projection

    def root(self) -> str:
        return self.db.store.get_ref(self.ref)

    # ------------------------------------------------------------------
    # KV surface
    # ------------------------------------------------------------------

    def get(self, path: str) -> Any | None:
        """Return the value at *path*, or ``None`` when unset."""
        return self._read(parse_path(path))

    def set(self, path: str, value: Any) -> None:
        self._write(self._parse_for_write(path), value)

    def set_from_json(self, path: str, text: str) -> None:
        """Decode *text* as JSON and ``set`` it."""
        try:
            value = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValidationError(
                f"value is not valid JSON ({exc.msg})", path=path
            ) from None
        self.set(path, value)

    def delete(self, path: str) -> bool:
        """Remove the value at *path*.

        Returns:
            ``True`` if a value was removed, ``False`` if it was already
            absent (not an error).
        """
        return self._delete(parse_path(path))

    def list(self, prefix: str = "") -> Iterator[tuple[str, Any]]:
        """Yield ``(path, value)`` under *prefix* in path order."""
        for path, data in self.tree.list(self.root(), prefix):
            yield path, decode_value(data)

    # ------------------------------------------------------------------
    # Entity fields
    # ------------------------------------------------------------------

    def read_field(
        self, entity_type: EntityType | str, entity_id: str, field: str
    ) -> Any | None:
        return self._read(make_path(entity_type, entity_id, field))

    def write_field(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        field: str,
        value: Any,
    ) -> None:
        record_path = make_path(
            entity_type,
            entity_id,
            field,
            person_id_max_length=self.person_id_max_length,
        )
        self._write(record_path, value)

    def check_field(
        self,
        entity_type: EntityType | str,
        entity_id: str,
        field: str,
        value: Any,
    ) -> Any:
        """Validate a field write without applying it.

        Returns:
            The canonical value ``write_field`` would store.
        """
        record_path = make_path(
            entity_type,
            entity_id,
            field,
            person_id_max_length=self.person_id_max_length,
        )
        return validate_value(record_path, value)

    def delete_field(
        self, entity_type: EntityType | str, entity_id: str, field: str
    ) -> bool:
        return self._delete(make_path(entity_type, entity_id, field))

    def list_entity(
        self, entity_type: EntityType | str, entity_id: str
    ) -> list[tuple[str, Any]]:
        """All ``(field, value)`` pairs of one entity, in path order."""
        return [
            (rp.field, value)
            for rp, value in self.entity_records(entity_type, entity_id)
        ]

    def entity_records(
        self, entity_type: EntityType | str, entity_id: str
    ) -> list[tuple[RecordPath, Any]]:
        prefix = entity_prefix(entity_type, entity_id)
        return [(parse_path(path), value) for path, value in self.list(prefix)]

    def has_entity(self, entity_type: EntityType | str, entity_id: str) -> bool:
        prefix = entity_prefix(entity_type, entity_id)
        return next(self.tree.keys(self.root(), prefix), None) is not None

    def delete_entity(
        self, entity_type: EntityType | str, entity_id: str
    ) -> int:
        """Delete every field of one entity.

        Returns:
            Number of fields removed.
        """
        records = self.entity_records(entity_type, entity_id)
        with self.db.transaction():
            for record_path, _ in records:
                self._delete(record_path)
        return len(records)

    def entities(
        self, entity_type: EntityType | str | None = None
    ) -> list[tuple[EntityType, str]]:
        """Distinct ``(type, id)`` pairs present in the tree, in path order."""
        types = (
            [EntityType(entity_type)] if entity_type else list(EntityType)
        )
        found: list[tuple[EntityType, str]] = []
        root = self.root()
        for typ in types:
            last = None
            for path in self.tree.keys(root, f"{typ.value}/"):
                entity_id = path.split("/", 2)[1]
                if entity_id != last:
                    found.append((typ, entity_id))
                    last = entity_id
        return found

    # ------------------------------------------------------------------
    # Versions and maintenance
    # ------------------------------------------------------------------

    def diff(self, root_a: str, root_b: str | None = None) -> set[str]:
        """Paths whose value differs between two roots (default: current)."""
        return self.tree.diff(root_a, root_b or self.root())

    def reindex(self) -> int:
        """Rebuild the projection from tree content."""
        with self.db.transaction():
            return self.projection.rebuild(
                (parse_path(path), value) for path, value in self.list()
            )

    def stats(self) -> RepoStats:
        root = self.root()
        counts = self.projection.entity_counts()
        return RepoStats(
            root=root,
            persons=counts["persons"],
            offices=counts["offices"],
            blobs=self.db.store.blob_count(),
            tree=self.tree.stats(root),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _parse_for_write(self, path: str) -> RecordPath:
        return parse_path(
            path, person_id_max_length=self.person_id_max_length
        )

    def _read(self, record_path: RecordPath) -> Any | None:
        data = self.tree.get(self.root(), record_path.path)
        if data is None:
            return None
        return decode_value(data)

    def _write(self, record_path: RecordPath, value: Any) -> None:
        canonical = validate_value(record_path, value)
        with self.db.transaction():
            root = self.root()
            new_root = self.tree.set(
                root, record_path.path, encode_value(canonical)
            )
            if new_root != root:
                self.db.store.set_ref(self.ref, new_root)
            self.projection.apply(record_path, canonical)
            self.tracker.mark_dirty(*record_path.entity_key)
        logger.debug("set %s", record_path.path)

    def _delete(self, record_path: RecordPath) -> bool:
        with self.db.transaction():
            root = self.root()
            new_root = self.tree.delete(root, record_path.path)
            if new_root == root:
                return False
            self.db.store.set_ref(self.ref, new_root)
            self.projection.remove(record_path)
            self.tracker.mark_dirty(*record_path.entity_key)
        logger.debug("delete %s", record_path.path)
        return True
