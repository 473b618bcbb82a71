"""Import/export between a govdir store and the external entity tree.

The external tree is a git-managed directory of TOML files, one per
entity (``person/{id}.toml``, ``office/{id}.toml``).  It is the canonical
record; the store is a working copy that can be edited interactively and
exported back.

Commit tracking decides what needs exporting: import records each
entity's git commit date as its clean date, edits mark entities dirty, and
export writes only the dirty ones before marking them clean again.

Modules:

- ``importer``  -- ``Importer``: load every entity file into a repo.
- ``exporter``  -- ``Exporter``: write dirty entities, guarded by the git
  safety check.
- ``merge``     -- ``merge_stores``: all-or-nothing union of two stores.
- ``git``       -- work-tree status and last-commit dates.
- ``models``    -- ``SyncAction``, ``EntityResult``, ``SyncReport``.
- ``reporter``  -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from pathlib import Path
    from govdir.database import Database
    from govdir.record.repo import RecordRepo
    from govdir.sync import Exporter, Importer, format_sync_report

    repo = RecordRepo(Database("govdir.db"))
    print(format_sync_report(Importer(repo, Path("data")).run()))

    repo.write_field("person", "narenddm", "contact/x", "narendramodi")

    # Dry-run first to preview changes
    exporter = Exporter(repo, Path("data"), git_safety="block")
    preview = exporter.run(dry_run=True)
    report = exporter.run()
"""

from .exporter import Exporter
from .importer import Importer
from .merge import merge_stores
from .models import EntityResult, SyncAction, SyncReport
from .reporter import format_dry_run_preview, format_sync_report, report_to_json

__all__ = [
    "EntityResult",
    "Exporter",
    "Importer",
    "SyncAction",
    "SyncReport",
    "format_dry_run_preview",
    "format_sync_report",
    "merge_stores",
    "report_to_json",
]
