"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync runs:

- ``format_sync_report`` -- full post-run summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by action.
- ``report_to_json`` -- structured dict for ``--json`` output.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import EntityResult, SyncReport

from .models import SyncAction

_SECTION_TITLES = {
    SyncAction.IMPORT: "Imported:",
    SyncAction.EXPORT: "Exported:",
    SyncAction.REMOVE: "Removed files:",
    SyncAction.MERGE: "Merged:",
}

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one result.
    Skipped entities are summarised by count only.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = f"{report.operation.capitalize()} report"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    if report.root:
        lines.append(f"Root: {report.root}")
    lines.append("")

    lines.append(
        f"Processed {len(report.results)} entities: "
        f"{len(report.imported)} imported, "
        f"{len(report.exported)} exported, "
        f"{len(report.removed)} removed, "
        f"{len(report.merged)} merged, "
        f"{len(report.errors)} errors"
    )
    lines.append("")

    sections = {
        SyncAction.IMPORT: report.imported,
        SyncAction.EXPORT: report.exported,
        SyncAction.REMOVE: report.removed,
        SyncAction.MERGE: report.merged,
    }
    for action, results in sections.items():
        if not results:
            continue
        lines.append(_SECTION_TITLES[action])
        for r in results:
            lines.append(f"  {_describe(r)}")
        lines.append("")

    if report.errors:
        lines.append("Errors:")
        for r in report.errors:
            lines.append(f"  {r.file_path or r.label}: {r.error}")
        lines.append("")

    skipped = len(report.skipped)
    if skipped > 0:
        lines.append(f"Skipped: {skipped} entities")
        lines.append("")

    return "\n".join(lines).rstrip()


def _describe(result: EntityResult) -> str:
    text = result.label
    if result.file_path:
        text += f" <-> {result.file_path}"
    if result.action == SyncAction.IMPORT:
        text += f" ({result.commit_date or 'dirty'})"
    return text


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(report: SyncReport) -> str:
    """Format a dry-run preview grouped by action type.

    Each proposed action is shown as ``[ACTION] type/id <-> file``.

    Args:
        report: A dry-run sync report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("DRY RUN -- No changes will be made")
    lines.append(f"Operation: {report.operation}")
    lines.append("")

    groups: dict[SyncAction, list[EntityResult]] = defaultdict(list)
    for r in report.results:
        if r.success:
            groups[r.action].append(r)

    display_order = [
        SyncAction.IMPORT,
        SyncAction.EXPORT,
        SyncAction.REMOVE,
        SyncAction.MERGE,
    ]

    for action in display_order:
        if action not in groups:
            continue
        lines.append(f"[{action.value.upper()}]")
        for r in groups[action]:
            lines.append(f"  {_describe(r)}")
        lines.append("")

    if report.errors:
        lines.append("[ERROR]")
        for r in report.errors:
            lines.append(f"  {r.file_path or r.label}: {r.error}")
        lines.append("")

    skip_count = len(groups.get(SyncAction.SKIP, []))
    if skip_count > 0:
        lines.append(f"Skipped: {skip_count} entities (unchanged)")
        lines.append("")

    if not report.errors and not any(a != SyncAction.SKIP for a in groups):
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Args:
        report: The sync report.

    Returns:
        Dict with run info, counts, and per-entity details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "entity_type": r.entity_type.value,
            "entity_id": r.entity_id,
            "file_path": r.file_path,
            "action": r.action.value,
            "success": r.success,
        }
        if r.commit_date:
            entry["commit_date"] = r.commit_date
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "operation": report.operation,
        "dry_run": report.dry_run,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "root": report.root,
        "counts": {
            "total": len(report.results),
            "imported": len(report.imported),
            "exported": len(report.exported),
            "removed": len(report.removed),
            "merged": len(report.merged),
            "errors": len(report.errors),
            "skipped": len(report.skipped),
        },
        "results": results_list,
    }
