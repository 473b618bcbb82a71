"""Merge of two independently populated stores.

``merge_stores`` copies every entity of a secondary repo into a primary
one.  Entities are the unit of ownership: if any ``(type, id)`` exists in
both stores the merge is refused as a whole, listing every collision,
before anything is written.  Otherwise all fields are copied in a single
transaction, so the primary is never left half-merged.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from govdir.errors import ConflictError
from govdir.record.repo import RecordRepo
from govdir.sync.models import EntityResult, SyncAction, SyncReport

logger = logging.getLogger(__name__)


def find_collisions(
    primary: RecordRepo, secondary: RecordRepo
) -> list[tuple[str, str]]:
    """``(type, id)`` pairs present in both repos, in path order."""
    existing = set(primary.entities())
    return [
        (entity_type.value, entity_id)
        for entity_type, entity_id in secondary.entities()
        if (entity_type, entity_id) in existing
    ]


def merge_stores(primary: RecordRepo, secondary: RecordRepo) -> SyncReport:
    """Copy every entity of *secondary* into *primary*.

    Merged entities go through the normal write path, so they are dirty
    afterwards when commit tracking is enabled on the primary.

    Returns:
        A ``SyncReport`` with one ``MERGE`` result per copied entity.

    Raises:
        ConflictError: If any entity exists in both stores.  The primary
            is unchanged.
    """
    started_at = datetime.now(timezone.utc).isoformat()

    collisions = find_collisions(primary, secondary)
    if collisions:
        logger.error("Merge refused: %d colliding entities", len(collisions))
        raise ConflictError(collisions)

    results: list[EntityResult] = []
    with primary.db.transaction():
        for entity_type, entity_id in secondary.entities():
            for field, value in secondary.list_entity(entity_type, entity_id):
                primary.write_field(entity_type, entity_id, field, value)
            results.append(
                EntityResult(
                    entity_type=entity_type,
                    entity_id=entity_id,
                    action=SyncAction.MERGE,
                    success=True,
                )
            )

    logger.info("Merged %d entities", len(results))
    return SyncReport(
        operation="merge",
        results=results,
        started_at=started_at,
        completed_at=datetime.now(timezone.utc).isoformat(),
        root=primary.root(),
    )
