"""Export of dirty entities to the external entity tree.

The ``Exporter``:

1. Checks that the data directory's git work tree is clean
   (``git_safety``): ``block`` raises ``PreconditionFailed`` before any
   file is touched, ``warn`` logs and continues, ``none`` skips the check.
2. Lists the dirty entities from commit tracking.
3. Serialises each one to ``{type}/{id}.toml`` with an atomic write, or
   removes the file when the entity no longer has any field.
4. Marks each successfully written entity clean with today's date.

Re-serialising unchanged content yields identical bytes, so a re-run after
a crash mid-export simply rewrites the same files.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timezone
from pathlib import Path

from govdir.errors import GovdirError, PreconditionFailed
from govdir.file_handler import remove_file, write_file_atomic
from govdir.record.files import dumps_entity_file, records_to_file
from govdir.record.models import EntityType
from govdir.record.repo import RecordRepo
from govdir.sync import git
from govdir.sync.importer import ENTITY_SUFFIX
from govdir.sync.models import EntityResult, SyncAction, SyncReport

logger = logging.getLogger(__name__)

GIT_SAFETY_MODES = ("none", "warn", "block")


class Exporter:
    """Write dirty entities of *repo* into *data_dir*.

    Args:
        repo: Source record repo.
        data_dir: Root of the external entity tree.
        git_safety: ``none``, ``warn`` or ``block``.
    """

    def __init__(
        self,
        repo: RecordRepo,
        data_dir: Path,
        git_safety: str = "block",
    ) -> None:
        if git_safety not in GIT_SAFETY_MODES:
            raise ValueError(f"Invalid git_safety mode: {git_safety}")
        self.repo = repo
        self.data_dir = data_dir
        self.git_safety = git_safety

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(
        self,
        dry_run: bool = False,
        only: Iterable[tuple[EntityType | str, str]] | None = None,
    ) -> SyncReport:
        """Export dirty entities.

        Args:
            dry_run: If ``True``, report what would be written without
                writing files or changing commit state.
            only: Restrict the export to these ``(type, id)`` entities.
                Entities in the list that are not dirty are ignored.

        Returns:
            A ``SyncReport`` with one result per dirty entity.

        Raises:
            PreconditionFailed: If ``git_safety`` is ``block`` and the
                data directory has uncommitted changes.
        """
        started_at = datetime.now(timezone.utc).isoformat()
        self._check_git_safety()

        wanted = (
            {(EntityType(t), i) for t, i in only} if only is not None else None
        )
        today = date.today().isoformat()
        results: list[EntityResult] = []

        for entity in self.repo.tracker.list_uncommitted():
            key = (entity.entity_type, entity.entity_id)
            if wanted is not None and key not in wanted:
                continue
            try:
                result = self._export_entity(*key, today, dry_run)
            except (GovdirError, OSError) as exc:
                logger.error("Error exporting %s: %s", entity.label, exc)
                result = EntityResult(
                    entity_type=entity.entity_type,
                    entity_id=entity.entity_id,
                    file_path=self._rel_path(*key),
                    action=SyncAction.EXPORT,
                    success=False,
                    error=str(exc),
                )
            results.append(result)

        report = SyncReport(
            operation="export",
            dry_run=dry_run,
            results=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
            root=self.repo.root(),
        )
        logger.info(
            "Export complete: %d exported, %d removed, %d errors",
            len(report.exported),
            len(report.removed),
            len(report.errors),
        )
        return report

    # ------------------------------------------------------------------
    # Per-entity export
    # ------------------------------------------------------------------

    def _export_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        today: str,
        dry_run: bool,
    ) -> EntityResult:
        rel_path = self._rel_path(entity_type, entity_id)
        path = self.data_dir / rel_path
        records = self.repo.entity_records(entity_type, entity_id)

        if not records:
            action = SyncAction.REMOVE
            if not dry_run:
                if remove_file(path):
                    logger.debug("Removed %s", rel_path)
        else:
            action = SyncAction.EXPORT
            text = dumps_entity_file(records_to_file(entity_type, records))
            # Compared as bytes: the old file may be in another encoding
            if path.exists() and path.read_bytes() == text.encode("utf-8"):
                action = SyncAction.SKIP
            elif not dry_run:
                write_file_atomic(path, text)
                logger.debug("Wrote %s", rel_path)

        if not dry_run:
            self.repo.tracker.mark_clean(entity_type, entity_id, today)

        return EntityResult(
            entity_type=entity_type,
            entity_id=entity_id,
            file_path=rel_path,
            action=action,
            success=True,
            commit_date=None if dry_run else today,
        )

    @staticmethod
    def _rel_path(entity_type: EntityType, entity_id: str) -> str:
        return f"{entity_type.value}/{entity_id}{ENTITY_SUFFIX}"

    # ------------------------------------------------------------------
    # Git safety
    # ------------------------------------------------------------------

    def _check_git_safety(self) -> None:
        """Check the data directory for uncommitted changes.

        Raises:
            PreconditionFailed: In ``block`` mode when changes exist.
        """
        if self.git_safety == "none":
            return

        if not git.has_uncommitted_changes(self.data_dir):
            return

        if self.git_safety == "block":
            logger.error(
                "Git safety check failed: uncommitted changes in %s",
                self.data_dir,
            )
            raise PreconditionFailed(
                f"uncommitted changes in {self.data_dir}; commit or stash "
                "them before exporting"
            )

        logger.warning(
            "Uncommitted changes detected in %s (git_safety=warn)",
            self.data_dir,
        )
