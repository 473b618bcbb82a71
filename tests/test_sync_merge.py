"""Tests for merging two stores."""

import pytest

from govdir.database import Database
from govdir.errors import ConflictError
from govdir.record.repo import RecordRepo
from govdir.sync.merge import find_collisions, merge_stores
from govdir.sync.models import SyncAction


@pytest.fixture
def secondary():
    with Database() as db:
        yield RecordRepo(db)


class TestFindCollisions:
    def test_none(self, repo, secondary):
        repo.set("person/a/name", "A")
        secondary.set("person/b/name", "B")
        assert find_collisions(repo, secondary) == []

    def test_same_id_different_type_is_fine(self, repo, secondary):
        repo.set("person/pm/name", "Someone")
        secondary.set("office/pm/name", "Prime Minister")
        assert find_collisions(repo, secondary) == []

    def test_lists_every_collision(self, repo, secondary):
        for repo_ in (repo, secondary):
            repo_.set("person/a/name", "A")
            repo_.set("office/pmo/name", "PMO")
        secondary.set("person/z/name", "Z")
        assert find_collisions(repo, secondary) == [
            ("person", "a"),
            ("office", "pmo"),
        ]


class TestMergeStores:
    """merge_stores() all-or-nothing behaviour."""

    def test_disjoint_merge(self, repo, secondary):
        repo.set("person/a/name", "A")
        secondary.set("person/b/name", "B")
        secondary.set("person/b/tenure/pm/2014-05-26", None)
        secondary.set("office/pm/supervisor/responsible_to", "parliament")

        report = merge_stores(repo, secondary)

        assert [(r.label, r.action) for r in report.results] == [
            ("person/b", SyncAction.MERGE),
            ("office/pm", SyncAction.MERGE),
        ]
        assert len(report.merged) == 2
        assert report.root == repo.root()
        assert repo.list_entity("person", "b") == secondary.list_entity(
            "person", "b"
        )
        assert repo.get("office/pm/supervisor/responsible_to") == "parliament"
        assert [h.entity_id for h in repo.projection.search("B")] == ["b"]

    def test_root_matches_building_union(self, repo, secondary):
        repo.set("person/a/name", "A")
        secondary.set("person/b/name", "B")
        merge_stores(repo, secondary)

        with Database() as db:
            union = RecordRepo(db)
            union.set("person/b/name", "B")
            union.set("person/a/name", "A")
            assert union.root() == repo.root()

    def test_merged_entities_dirty(self, repo, secondary):
        secondary.set("person/b/name", "B")
        merge_stores(repo, secondary)
        assert repo.tracker.is_dirty("person", "b")

    def test_conflict_leaves_primary_unchanged(self, repo, secondary):
        repo.set("person/a/name", "A")
        secondary.set("person/a/name", "Other A")
        secondary.set("person/b/name", "B")
        root = repo.root()

        with pytest.raises(ConflictError) as exc_info:
            merge_stores(repo, secondary)

        assert exc_info.value.collisions == [("person", "a")]
        assert "person/a" in str(exc_info.value)
        assert repo.root() == root
        assert not repo.has_entity("person", "b")

    def test_empty_secondary(self, repo, secondary):
        repo.set("person/a/name", "A")
        root = repo.root()
        report = merge_stores(repo, secondary)
        assert report.results == []
        assert repo.root() == root
