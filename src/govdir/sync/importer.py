"""Import of the external entity tree into a record repo.

The ``Importer`` walks ``person/*.toml`` and ``office/*.toml`` below the
data directory in sorted order.  For each file it:

1. Reads and validates the TOML against the entity file model.
2. Replaces the entity's fields in the store with commit tracking
   suspended, in one transaction.
3. Records the entity's commit state from git: the date of the last
   commit touching the file, or *Dirty* when the file has uncommitted
   edits (or was never committed).  Outside a git work tree the file
   content is taken as clean today.

Tracking is enabled once the walk is done, so that subsequent edits dirty
their entities.  Error handling is per-file: a single failure does not
abort the run.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from pathlib import Path

from govdir.errors import GovdirError
from govdir.file_handler import read_file_with_encoding
from govdir.record.files import file_to_fields, loads_entity_file
from govdir.record.models import EntityType
from govdir.record.repo import RecordRepo
from govdir.sync import git
from govdir.sync.models import EntityResult, SyncAction, SyncReport

logger = logging.getLogger(__name__)

ENTITY_SUFFIX = ".toml"


def entity_files(data_dir: Path) -> list[tuple[EntityType, str, Path]]:
    """``(type, id, path)`` of every entity file, sorted by type then id."""
    found = []
    for entity_type in EntityType:
        type_dir = data_dir / entity_type.value
        if not type_dir.is_dir():
            continue
        for path in sorted(type_dir.glob(f"*{ENTITY_SUFFIX}")):
            if path.is_file():
                found.append((entity_type, path.stem, path))
    return found


class Importer:
    """Load an external entity tree into *repo*.

    Args:
        repo: Target record repo.
        data_dir: Root of the external entity tree.
    """

    def __init__(self, repo: RecordRepo, data_dir: Path) -> None:
        self.repo = repo
        self.data_dir = data_dir

    def run(self, dry_run: bool = False) -> SyncReport:
        """Import every entity file.

        Args:
            dry_run: If ``True``, parse and validate the files but do not
                touch the store.

        Returns:
            A ``SyncReport`` with one result per file.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        results: list[EntityResult] = []

        in_git = git.is_work_tree(self.data_dir)
        if not in_git:
            logger.info(
                "%s is not a git work tree; imported entities are clean as of today",
                self.data_dir,
            )
        today = date.today().isoformat()

        tracker = self.repo.tracker
        with tracker.bulk_mode():
            for entity_type, entity_id, path in entity_files(self.data_dir):
                rel_path = f"{entity_type.value}/{path.name}"
                try:
                    commit_date = (
                        self._commit_date(rel_path) if in_git else today
                    )
                    self._import_file(
                        entity_type, entity_id, path, rel_path,
                        commit_date, dry_run,
                    )
                    results.append(
                        EntityResult(
                            entity_type=entity_type,
                            entity_id=entity_id,
                            file_path=rel_path,
                            action=SyncAction.IMPORT,
                            success=True,
                            commit_date=commit_date,
                        )
                    )
                except (GovdirError, OSError) as exc:
                    logger.error("Error importing %s: %s", rel_path, exc)
                    results.append(
                        EntityResult(
                            entity_type=entity_type,
                            entity_id=entity_id,
                            file_path=rel_path,
                            action=SyncAction.IMPORT,
                            success=False,
                            error=str(exc),
                        )
                    )

        if not dry_run:
            tracker.enable()

        report = SyncReport(
            operation="import",
            dry_run=dry_run,
            results=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
            root=self.repo.root(),
        )
        logger.info(
            "Import complete: %d imported, %d errors",
            len(report.imported),
            len(report.errors),
        )
        return report

    def _commit_date(self, rel_path: str) -> str | None:
        if git.has_uncommitted_changes(self.data_dir, rel_path):
            return None
        return git.last_commit_date(self.data_dir, rel_path)

    def _import_file(
        self,
        entity_type: EntityType,
        entity_id: str,
        path: Path,
        rel_path: str,
        commit_date: str | None,
        dry_run: bool,
    ) -> None:
        content, encoding = read_file_with_encoding(path)
        if encoding != "utf-8":
            logger.warning("%s decoded as %s", rel_path, encoding)
        model = loads_entity_file(entity_type, content, source=rel_path)
        fields = file_to_fields(model)

        if dry_run:
            # Field-level checks still run so the preview reports bad files.
            for field, value in fields:
                self.repo.check_field(entity_type, entity_id, field, value)
            return

        with self.repo.db.transaction():
            self.repo.delete_entity(entity_type, entity_id)
            for field, value in fields:
                self.repo.write_field(entity_type, entity_id, field, value)
            self.repo.tracker.record(entity_type, entity_id, commit_date)
        logger.debug("Imported %s (%d fields)", rel_path, len(fields))
