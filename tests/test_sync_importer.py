"""Tests for Importer.

Covers:
- Fields and commit states loaded from a TOML tree
- git-derived clean dates and dirty files
- Per-file error isolation and per-entity rollback
- Replacement of existing entity fields
- Dry run
- Deterministic roots
"""

import subprocess
from datetime import date

from govdir.database import Database
from govdir.record.repo import RecordRepo
from govdir.sync.importer import Importer, entity_files
from govdir.sync.models import SyncAction

MODI = """\
name = "Narendra Modi"

[contacts]
x = "narendramodi"

[[tenures]]
office_id = "pm"
start = "2014-05-26"
"""

PMO = """\
name = "Prime Minister's Office"

[supervisors]
head = "pm"
"""


class TestEntityFiles:
    """Tests for entity_files()."""

    def test_sorted_and_filtered(self, data_dir, write_entity):
        write_entity("person", "b", "")
        write_entity("person", "a", "")
        write_entity("office", "pmo", "")
        (data_dir / "person" / "README.md").write_text("notes")
        (data_dir / "other").mkdir()
        (data_dir / "other" / "x.toml").write_text("")

        found = [(t.value, i) for t, i, _ in entity_files(data_dir)]
        assert found == [("person", "a"), ("person", "b"), ("office", "pmo")]

    def test_missing_type_directory(self, tmp_path):
        (tmp_path / "office").mkdir()
        assert entity_files(tmp_path) == []


class TestImportWithoutGit:
    """Data directory outside any git work tree."""

    def test_fields_imported(self, repo, data_dir, write_entity, no_git):
        write_entity("person", "narenddm", MODI)
        write_entity("office", "pmo", PMO)

        report = Importer(repo, data_dir).run()

        assert len(report.imported) == 2
        assert report.errors == []
        assert repo.get("person/narenddm/name") == "Narendra Modi"
        assert repo.get("person/narenddm/contact/x") == "narendramodi"
        assert ("tenure/pm/2014-05-26", None) in repo.list_entity(
            "person", "narenddm"
        )
        assert repo.get("office/pmo/supervisor/head") == "pm"
        assert repo.projection.entity_name("office", "pmo") == (
            "Prime Minister's Office"
        )
        assert report.root == repo.root()

    def test_entities_clean_as_of_today(self, repo, data_dir, write_entity, no_git):
        write_entity("person", "narenddm", MODI)
        report = Importer(repo, data_dir).run()

        today = date.today().isoformat()
        assert report.results[0].commit_date == today
        assert repo.tracker.state("person", "narenddm").date == today
        assert repo.tracker.list_uncommitted() == []

    def test_tracking_enabled_afterwards(self, repo, data_dir, write_entity, no_git):
        repo.tracker.disable()
        write_entity("office", "pmo", PMO)
        Importer(repo, data_dir).run()

        assert repo.tracker.is_enabled()
        repo.set("office/pmo/contact/email", "pmo@example.org")
        assert repo.tracker.is_dirty("office", "pmo")

    def test_import_replaces_existing_fields(
        self, repo, data_dir, write_entity, no_git
    ):
        repo.set("office/pmo/contact/email", "stale@example.org")
        write_entity("office", "pmo", PMO)
        Importer(repo, data_dir).run()

        assert repo.list_entity("office", "pmo") == [
            ("name", "Prime Minister's Office"),
            ("supervisor/head", "pm"),
        ]

    def test_entities_without_files_untouched(
        self, repo, data_dir, write_entity, no_git
    ):
        repo.set("office/other/name", "Other")
        write_entity("office", "pmo", PMO)
        Importer(repo, data_dir).run()
        assert repo.get("office/other/name") == "Other"


class TestImportErrors:
    """Per-file failures."""

    def test_bad_file_does_not_abort(self, repo, data_dir, write_entity, no_git):
        write_entity("person", "aaa", 'name = "A"\nshoe_size = 9\n')
        write_entity("person", "bbb", 'name = "B"\n')

        report = Importer(repo, data_dir).run()

        assert [r.entity_id for r in report.errors] == ["aaa"]
        assert "shoe_size" in report.errors[0].error
        assert report.errors[0].file_path == "person/aaa.toml"
        assert repo.get("person/bbb/name") == "B"
        assert not repo.has_entity("person", "aaa")

    def test_invalid_field_rolls_back_entity(
        self, repo, data_dir, write_entity, no_git
    ):
        repo.set("person/ccc/name", "Kept")
        write_entity(
            "person",
            "ccc",
            'name = "New"\n\n[photo]\nurl = "not-a-url"\n',
        )

        report = Importer(repo, data_dir).run()

        assert len(report.errors) == 1
        assert repo.list_entity("person", "ccc") == [("name", "Kept")]

    def test_invalid_id_reported(self, repo, data_dir, write_entity, no_git):
        write_entity("person", " spaced", 'name = "S"\n')
        report = Importer(repo, data_dir).run()
        assert len(report.errors) == 1

    def test_non_utf8_file_decoded(self, repo, data_dir, no_git):
        path = data_dir / "office" / "mea.toml"
        text = 'name = "Ministère des Affaires étrangères"\n'
        path.write_bytes(text.encode("cp1252"))
        report = Importer(repo, data_dir).run()
        assert report.errors == []
        assert repo.get("office/mea/name").startswith("Minist")


class TestImportWithGit:
    """Commit states from git."""

    def test_commit_dates_and_dirty_files(
        self, repo, data_dir, write_entity, fake_git
    ):
        write_entity("person", "aaa", 'name = "A"\n')
        write_entity("person", "bbb", 'name = "B"\n')
        write_entity("person", "ccc", 'name = "C"\n')
        fake_git[("rev-parse", "--is-inside-work-tree")] = (0, "true\n")
        fake_git[("status", "--porcelain", "--", "person/aaa.toml")] = (
            0,
            " M person/aaa.toml\n",
        )
        log = ("log", "-1", "--format=%ad", "--date=short", "--")
        fake_git[log + ("person/bbb.toml",)] = (0, "2024-03-01\n")

        report = Importer(repo, data_dir).run()

        dates = {r.entity_id: r.commit_date for r in report.results}
        assert dates == {"aaa": None, "bbb": "2024-03-01", "ccc": None}
        assert [u.entity_id for u in repo.tracker.list_uncommitted()] == [
            "aaa",
            "ccc",
        ]
        assert repo.tracker.state("person", "bbb").date == "2024-03-01"

    def test_git_commands_run_in_data_dir(self, repo, data_dir, monkeypatch):
        seen = []

        def _run(cmd, cwd=None, **kwargs):
            seen.append(cwd)
            return subprocess.CompletedProcess(cmd, 128, "", "not a repo")

        monkeypatch.setattr("govdir.sync.git.subprocess.run", _run)
        Importer(repo, data_dir).run()
        assert seen == [str(data_dir)]


class TestDryRun:
    """Dry-run import."""

    def test_nothing_written(self, repo, data_dir, write_entity, no_git):
        write_entity("person", "narenddm", MODI)
        root = repo.root()

        report = Importer(repo, data_dir).run(dry_run=True)

        assert report.dry_run
        assert [r.action for r in report.results] == [SyncAction.IMPORT]
        assert repo.root() == root
        assert not repo.tracker.state("person", "narenddm").tracked

    def test_field_errors_reported(self, repo, data_dir, write_entity, no_git):
        write_entity("person", "x", '[photo]\nurl = "nope"\n')
        report = Importer(repo, data_dir).run(dry_run=True)
        assert len(report.errors) == 1

    def test_tracking_switch_unchanged(self, repo, data_dir, no_git):
        repo.tracker.disable()
        Importer(repo, data_dir).run(dry_run=True)
        assert not repo.tracker.is_enabled()


class TestDeterminism:
    """Same file set, same root."""

    def test_root_independent_of_prior_history(
        self, repo, data_dir, write_entity, no_git
    ):
        write_entity("person", "narenddm", MODI)
        write_entity("office", "pmo", PMO)

        repo.set("office/pmo/contact/email", "stale@example.org")
        Importer(repo, data_dir).run()

        with Database() as other_db:
            fresh = RecordRepo(other_db)
            Importer(fresh, data_dir).run()
            assert fresh.root() == repo.root()
