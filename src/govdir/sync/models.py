"""Pydantic models for import, export and merge runs.

Defines the data contracts shared by the sync modules:

- ``SyncAction``: Enum of per-entity operations.
- ``EntityResult``: Outcome for one entity.
- ``SyncReport``: Aggregate results for one run.

All models are frozen (immutable).
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from govdir.record.models import EntityType


class SyncAction(str, Enum):
    """Possible operations on one entity during a run."""

    SKIP = "skip"
    IMPORT = "import"
    EXPORT = "export"
    REMOVE = "remove"
    MERGE = "merge"


class EntityResult(BaseModel):
    """Result of processing one entity.

    Attributes:
        entity_type: ``person`` or ``office``.
        entity_id: Entity id.
        file_path: File path relative to the data directory, if any.
        action: Operation that was (or would be) performed.
        success: Whether the operation succeeded.
        error: Error message if the operation failed.
        commit_date: Clean date recorded for the entity, ``None`` if dirty.
    """

    entity_type: EntityType
    entity_id: str
    file_path: str = ""
    action: SyncAction
    success: bool
    error: str | None = None
    commit_date: str | None = None

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return f"{self.entity_type.value}/{self.entity_id}"


class SyncReport(BaseModel):
    """Aggregate report for one import, export or merge run.

    Attributes:
        operation: ``import``, ``export`` or ``merge``.
        dry_run: Whether this was a dry-run (no changes applied).
        results: Individual entity results.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
        root: Working root hash after the run.
    """

    operation: str
    dry_run: bool = False
    results: list[EntityResult] = []
    started_at: str
    completed_at: str | None = None
    root: str | None = None

    model_config = {"frozen": True}

    @property
    def imported(self) -> list[EntityResult]:
        """Successful results where action is IMPORT."""
        return self._succeeded(SyncAction.IMPORT)

    @property
    def exported(self) -> list[EntityResult]:
        """Successful results where action is EXPORT."""
        return self._succeeded(SyncAction.EXPORT)

    @property
    def removed(self) -> list[EntityResult]:
        """Successful results where action is REMOVE."""
        return self._succeeded(SyncAction.REMOVE)

    @property
    def merged(self) -> list[EntityResult]:
        """Successful results where action is MERGE."""
        return self._succeeded(SyncAction.MERGE)

    @property
    def skipped(self) -> list[EntityResult]:
        """Results where action is SKIP."""
        return [r for r in self.results if r.action == SyncAction.SKIP]

    @property
    def errors(self) -> list[EntityResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    def _succeeded(self, action: SyncAction) -> list[EntityResult]:
        return [r for r in self.results if r.action == action and r.success]

    def summary(self) -> str:
        """Format a human-readable summary of the run.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"{self.operation.capitalize()} report"
            + (" (dry run)" if self.dry_run else ""),
            f"  Imported: {len(self.imported)}",
            f"  Exported: {len(self.exported)}",
            f"  Removed:  {len(self.removed)}",
            f"  Merged:   {len(self.merged)}",
            f"  Skipped:  {len(self.skipped)}",
            f"  Errors:   {len(self.errors)}",
            f"  Total:    {len(self.results)}",
        ]
        return "\n".join(lines)
