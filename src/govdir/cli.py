"""The ``govdir`` command.

Subcommands cover the KV surface of the store (``get``/``set``/``list``/
``delete``), synchronisation with the external entity tree
(``import``/``export``/``merge``/``uncommitted``/``tracking``) and
inspection (``search``/``office``/``root``/``diff``/``stats``).

All command output goes to stdout; log records and errors go to stderr.
Every ``GovdirError`` is printed with its corrective action and exits
with status 1.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path

import yaml

from . import __version__
from .config import Config, resolve_config
from .config_loader import ensure_config
from .database import Database
from .errors import GovdirError, format_error
from .file_handler import validate_data_dir
from .logger import setup_logging
from .record.models import EntityType, SupervisingRelation
from .record.repo import RecordRepo
from .sync import (
    Exporter,
    Importer,
    format_dry_run_preview,
    format_sync_report,
    merge_stores,
    report_to_json,
)
from .validators import derive_person_id

logger = logging.getLogger(__name__)


def _dump(value: object) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False)


def _open_repo(config: Config) -> RecordRepo:
    return RecordRepo(
        Database(config.db_path),
        ref=config.ref,
        person_id_max_length=config.person_id_max_length,
    )


def _parse_entity(text: str) -> tuple[EntityType, str]:
    entity_type, _, entity_id = text.partition("/")
    try:
        return EntityType(entity_type), entity_id
    except ValueError:
        raise ValueError(
            f"Invalid entity '{text}': expected person/ID or office/ID"
        ) from None


def _print_report(report, args: argparse.Namespace) -> int:
    if args.json:
        print(_dump(report_to_json(report)))
    elif report.dry_run:
        print(format_dry_run_preview(report))
    else:
        print(format_sync_report(report))
    return 1 if report.errors else 0


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def cmd_init(args: argparse.Namespace, config: Config) -> int:
    repo = _open_repo(config)
    print(f"Initialised {config.db_path} (root {repo.root()})")
    return 0


def cmd_get(args: argparse.Namespace, config: Config) -> int:
    print(_dump(_open_repo(config).get(args.path)))
    return 0


def cmd_set(args: argparse.Namespace, config: Config) -> int:
    _open_repo(config).set_from_json(args.path, args.value)
    return 0


def cmd_list(args: argparse.Namespace, config: Config) -> int:
    for path, value in _open_repo(config).list(args.prefix):
        print(json.dumps({"path": path, "value": value}, ensure_ascii=False))
    return 0


def cmd_delete(args: argparse.Namespace, config: Config) -> int:
    if not _open_repo(config).delete(args.path):
        logger.info("Nothing stored at %s", args.path)
    return 0


def cmd_import(args: argparse.Namespace, config: Config) -> int:
    data_dir = validate_data_dir(config.data_dir)
    report = Importer(_open_repo(config), data_dir).run(dry_run=args.dry_run)
    return _print_report(report, args)


def cmd_export(args: argparse.Namespace, config: Config) -> int:
    data_dir = Path(config.data_dir).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)
    only = [_parse_entity(e) for e in args.entities] if args.entities else None
    exporter = Exporter(_open_repo(config), data_dir, config.git_safety)
    report = exporter.run(dry_run=args.dry_run, only=only)
    return _print_report(report, args)


def cmd_merge(args: argparse.Namespace, config: Config) -> int:
    other = Path(args.other_db)
    if not other.is_file():
        raise ValueError(f"Database not found: {other}")
    primary = _open_repo(config)
    secondary = RecordRepo(Database(other), ref=config.ref)
    try:
        report = merge_stores(primary, secondary)
    finally:
        secondary.db.close()
    return _print_report(report, args)


def cmd_uncommitted(args: argparse.Namespace, config: Config) -> int:
    for entity in _open_repo(config).tracker.list_uncommitted():
        print(f"{entity.label}\t{entity.name or ''}")
    return 0


def cmd_tracking(args: argparse.Namespace, config: Config) -> int:
    tracker = _open_repo(config).tracker
    if args.action == "on":
        tracker.enable()
    elif args.action == "off":
        tracker.disable()
    print("enabled" if tracker.is_enabled() else "disabled")
    return 0


def cmd_search(args: argparse.Namespace, config: Config) -> int:
    for hit in _open_repo(config).projection.search(args.text, args.limit):
        print(f"{hit.entity_type.value}/{hit.entity_id}\t{hit.name}")
    return 0


def cmd_office(args: argparse.Namespace, config: Config) -> int:
    projection = _open_repo(config).projection
    name = projection.entity_name(EntityType.OFFICE, args.office_id)
    print(f"office/{args.office_id}\t{name or ''}")

    print("Incumbents:")
    for row in projection.incumbents(args.office_id):
        print(f"  {row.person_id}\t{row.person_name or ''}\tsince {row.start or '?'}")
    print("Former holders:")
    for row in projection.quondams(args.office_id):
        print(
            f"  {row.person_id}\t{row.person_name or ''}\t"
            f"{row.start or '?'} to {row.end}"
        )

    relation = SupervisingRelation(args.relation)
    chain = projection.supervisor_chain(args.office_id, relation)
    print(f"Chain ({relation.value}): {' -> '.join(chain) or '(none)'}")
    return 0


def cmd_root(args: argparse.Namespace, config: Config) -> int:
    print(_open_repo(config).root())
    return 0


def cmd_diff(args: argparse.Namespace, config: Config) -> int:
    for path in sorted(_open_repo(config).diff(args.root_a, args.root_b)):
        print(path)
    return 0


def cmd_reindex(args: argparse.Namespace, config: Config) -> int:
    count = _open_repo(config).reindex()
    print(f"Reindexed {count} fields")
    return 0


def cmd_stats(args: argparse.Namespace, config: Config) -> int:
    stats = _open_repo(config).stats()
    if args.json:
        print(stats.model_dump_json(indent=2))
        return 0
    print(f"Root:     {stats.root}")
    print(f"Persons:  {stats.persons}")
    print(f"Offices:  {stats.offices}")
    print(f"Fields:   {stats.tree.entries}")
    print(f"Nodes:    {stats.tree.nodes} (depth {stats.tree.depth})")
    print(f"Blobs:    {stats.blobs}")
    return 0


def cmd_new_id(args: argparse.Namespace, config: Config) -> int:
    print(derive_person_id(args.name))
    return 0


def cmd_config(args: argparse.Namespace, config: Config) -> int:
    if args.init:
        print(ensure_config())
        return 0
    print(yaml.safe_dump(asdict(config), sort_keys=False).rstrip())
    return 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="govdir",
        description="Directory of government persons and offices",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Load the canonical file tree
  govdir --data-dir data import

  # Edit a field
  govdir set person/narenddm/contact/x '"narendramodi"'

  # Preview, then write, the entities changed since the last export
  govdir export --dry-run
  govdir export
        """,
    )
    parser.add_argument(
        "--db", help="SQLite database file (overrides GOVDIR_DB and config files)"
    )
    parser.add_argument(
        "--data-dir",
        help="External entity tree (overrides GOVDIR_DATA_DIR and config files)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--log-file", help="Also append log records to this file")
    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        help="Log record format (default: text)",
    )
    parser.add_argument(
        "--version", action="version", version=f"govdir version {__version__}"
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    p = sub.add_parser("init", help="Create the database and working ref")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("get", help="Print the JSON value at PATH")
    p.add_argument("path")
    p.set_defaults(func=cmd_get)

    p = sub.add_parser("set", help="Store a JSON value at PATH")
    p.add_argument("path")
    p.add_argument("value", help="JSON text, e.g. '\"Prime Minister\"'")
    p.set_defaults(func=cmd_set)

    p = sub.add_parser("list", help="List paths and values under PREFIX")
    p.add_argument("prefix", nargs="?", default="")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("delete", help="Remove the value at PATH")
    p.add_argument("path")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("import", help="Load the external entity tree")
    p.add_argument("--dry-run", action="store_true")
    p.add_argument("--json", action="store_true", help="JSON report")
    p.set_defaults(func=cmd_import)

    p = sub.add_parser("export", help="Write dirty entities to the tree")
    p.add_argument("entities", nargs="*", metavar="TYPE/ID")
    p.add_argument("--dry-run", action="store_true")
    p.add_argument("--json", action="store_true", help="JSON report")
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("merge", help="Copy every entity of OTHER_DB into the store")
    p.add_argument("other_db", metavar="OTHER_DB")
    p.add_argument("--json", action="store_true", help="JSON report")
    p.set_defaults(func=cmd_merge)

    p = sub.add_parser("uncommitted", help="List dirty entities by name")
    p.set_defaults(func=cmd_uncommitted)

    p = sub.add_parser("tracking", help="Show or switch commit tracking")
    p.add_argument("action", choices=["on", "off", "status"])
    p.set_defaults(func=cmd_tracking)

    p = sub.add_parser("search", help="Full-text search over names")
    p.add_argument("text")
    p.add_argument("--limit", type=int, default=20)
    p.set_defaults(func=cmd_search)

    p = sub.add_parser("office", help="Holders and supervisor chain of an office")
    p.add_argument("office_id")
    p.add_argument(
        "--relation",
        choices=[r.value for r in SupervisingRelation],
        default=SupervisingRelation.RESPONSIBLE_TO.value,
    )
    p.set_defaults(func=cmd_office)

    p = sub.add_parser("root", help="Print the current root hash")
    p.set_defaults(func=cmd_root)

    p = sub.add_parser("diff", help="Paths that differ between two roots")
    p.add_argument("root_a", metavar="ROOT_A")
    p.add_argument("root_b", metavar="ROOT_B", nargs="?")
    p.set_defaults(func=cmd_diff)

    p = sub.add_parser("reindex", help="Rebuild the projection from the tree")
    p.set_defaults(func=cmd_reindex)

    p = sub.add_parser("stats", help="Store and tree statistics")
    p.add_argument("--json", action="store_true")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("new-id", help="Derive a person id from a name")
    p.add_argument("name")
    p.set_defaults(func=cmd_new_id)

    p = sub.add_parser("config", help="Show the resolved configuration")
    p.add_argument(
        "--init", action="store_true", help="Write a starter config file"
    )
    p.set_defaults(func=cmd_config)

    return parser


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {
        "db": args.db,
        "data_dir": args.data_dir,
        "debug": args.debug,
        "log_file": args.log_file,
        "log_format": args.log_format,
    }
    try:
        config = resolve_config(overrides)
    except ValueError as e:
        print(f"Error (configuration_error): {e}", file=sys.stderr)
        return 1

    setup_logging(
        debug=config.debug,
        log_file=config.log_file,
        log_format=config.log_format,
        level=config.log_level,
    )

    try:
        return args.func(args, config)
    except GovdirError as e:
        logger.debug("%s failed", args.command, exc_info=True)
        print(format_error(e), file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error (invalid_input): {e}", file=sys.stderr)
        return 1


def run() -> None:
    """Console script entry point."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    run()
