"""
Tests for the SQLite cache store.
"""

import sqlite3
from unittest.mock import patch

import pytest

from overall.core.errors import Conflict, InvalidOwner, NotFound, PersistenceFailed
from overall.core.github.models import PRState
from overall.core.priority import BranchStatus, Priority, classify_branches
from overall.core.store.connection import get_connection
from overall.core.store.models import Branch, PullRequest, Repository
from overall.core.store.schema import SCHEMA_VERSION, get_schema_version
from overall.core.store.store import CacheStore


def generation(snapshot, priority=Priority.COMPLETE):
    """Records for one persisted generation of a snapshot."""
    repo_id = snapshot.repo.id
    statuses = classify_branches(snapshot.branches, snapshot.pull_requests, snapshot.default_branch)
    repository = Repository.from_remote(snapshot.repo, priority, synced_at=snapshot.repo.updated_at)
    branches = [Branch.from_remote(repo_id, b, statuses[b.name]) for b in snapshot.branches]
    prs = [PullRequest.from_remote(repo_id, pr) for pr in snapshot.pull_requests]
    return repository, branches, prs


# Row ids change on every generation
BRANCH_IDS = {"id": True, "commits": {"__all__": {"id", "branch_id"}}}


def persist(store, snapshot, priority=Priority.COMPLETE):
    store.persist_generation(*generation(snapshot, priority))


class TestSchema:
    """Tests for database initialization."""

    def test_creates_schema(self, store):
        with get_connection(store.db_path) as conn:
            assert get_schema_version(conn) == SCHEMA_VERSION

    def test_init_is_idempotent(self, store, db_path, make_snapshot):
        persist(store, make_snapshot("octo/widgets"))
        again = CacheStore(db_path)
        assert again.get_repository("octo/widgets") is not None


class TestPersistGeneration:
    """Tests for replace-not-merge persistence."""

    def test_persist_and_read_back(self, store, make_snapshot):
        snapshot = make_snapshot(
            "octo/widgets",
            branches=[("main", 0, 0), ("feature", 2, 0)],
            prs=[(7, PRState.OPEN, "feature")],
        )
        persist(store, snapshot, Priority.NEEDS_SYNC)

        repo = store.get_repository("octo/widgets")
        assert repo is not None
        assert repo.priority == Priority.NEEDS_SYNC
        assert repo.language == "Python"
        assert repo.last_synced_at == snapshot.repo.updated_at

        branches = {b.name: b for b in store.list_branches("octo/widgets")}
        assert set(branches) == {"main", "feature"}
        assert branches["feature"].status == BranchStatus.READY_REVIEW
        assert branches["feature"].ahead_by == 2

        prs = store.list_pull_requests("octo/widgets")
        assert len(prs) == 1
        assert prs[0].branch_id == branches["feature"].id

    def test_vanished_branch_is_removed(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets", branches=[("main", 0, 0), ("feature", 1, 0)]))
        persist(store, make_snapshot("octo/widgets", branches=[("main", 0, 0)]))

        assert [b.name for b in store.list_branches("octo/widgets")] == ["main"]

    def test_empty_snapshot_leaves_zero_rows(self, store, make_snapshot):
        persist(
            store,
            make_snapshot(
                "octo/widgets",
                branches=[("main", 0, 0), ("old", 0, 3)],
                prs=[(1, PRState.CLOSED, "old")],
            ),
        )
        persist(store, make_snapshot("octo/widgets", branches=[], prs=[]))

        assert store.list_branches("octo/widgets") == []
        assert store.list_pull_requests("octo/widgets") == []
        assert store.get_repository("octo/widgets") is not None

    def test_persisting_twice_is_idempotent(self, store, make_snapshot):
        snapshot = make_snapshot(
            "octo/widgets",
            branches=[("main", 0, 0), ("feature", 0, 2)],
            prs=[(3, PRState.MERGED, "feature")],
            commits={"main": 2, "feature": 3},
        )
        persist(store, snapshot)
        first = (
            [b.model_dump(exclude=BRANCH_IDS) for b in store.list_branches("octo/widgets")],
            [p.model_dump(exclude={"id", "branch_id"}) for p in store.list_pull_requests("octo/widgets")],
        )
        persist(store, snapshot)
        second = (
            [b.model_dump(exclude=BRANCH_IDS) for b in store.list_branches("octo/widgets")],
            [p.model_dump(exclude={"id", "branch_id"}) for p in store.list_pull_requests("octo/widgets")],
        )

        assert first == second

    def test_pr_survives_branch_deletion(self, store, make_snapshot):
        persist(
            store,
            make_snapshot(
                "octo/widgets",
                branches=[("main", 0, 0), ("feature", 1, 0)],
                prs=[(9, PRState.OPEN, "feature")],
            ),
        )

        store.replace_branches("octo/widgets", [])

        prs = store.list_pull_requests("octo/widgets")
        assert len(prs) == 1
        assert prs[0].number == 9
        assert prs[0].branch_id is None

    def test_failed_persist_keeps_previous_generation(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets", branches=[("main", 0, 0), ("feature", 1, 0)]))

        # Duplicate PR numbers violate UNIQUE(repo_id, number) mid-transaction
        broken = make_snapshot(
            "octo/widgets",
            branches=[("main", 0, 0)],
            prs=[(1, PRState.OPEN, None), (1, PRState.OPEN, None)],
        )
        with pytest.raises(PersistenceFailed):
            persist(store, broken, Priority.STALE)

        assert {b.name for b in store.list_branches("octo/widgets")} == {"main", "feature"}
        assert store.list_pull_requests("octo/widgets") == []
        assert store.get_repository("octo/widgets").priority == Priority.COMPLETE

    def test_commits_persisted_newest_first(self, store, make_snapshot):
        snapshot = make_snapshot(
            "octo/widgets",
            branches=[("main", 0, 0), ("feature", 2, 0)],
            commits={"feature": 3},
        )
        persist(store, snapshot)

        branches = {b.name: b for b in store.list_branches("octo/widgets")}
        feature = branches["feature"]
        assert [c.sha for c in feature.commits] == [c.sha for c in snapshot.branches[1].commits]
        assert [c.message for c in feature.commits] == [
            "feature change 3",
            "feature change 2",
            "feature change 1",
        ]
        assert all(c.branch_id == feature.id for c in feature.commits)
        assert feature.commits[0].committed_date > feature.commits[-1].committed_date
        assert branches["main"].commits == []

    def test_resync_replaces_commits(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets", commits={"main": 4}))
        persist(store, make_snapshot("octo/widgets", commits={"main": 1}))

        (main,) = store.list_branches("octo/widgets")
        assert [c.message for c in main.commits] == ["main change 1"]
        with get_connection(store.db_path) as conn:
            count = conn.execute("SELECT COUNT(*) AS n FROM commits").fetchone()["n"]
        assert count == 1

    def test_vanished_branch_takes_its_commits(self, store, make_snapshot):
        persist(
            store,
            make_snapshot(
                "octo/widgets",
                branches=[("main", 0, 0), ("feature", 1, 0)],
                commits={"main": 1, "feature": 2},
            ),
        )
        persist(store, make_snapshot("octo/widgets", commits={"main": 1}))

        with get_connection(store.db_path) as conn:
            rows = conn.execute(
                "SELECT b.name FROM commits c JOIN branches b ON b.id = c.branch_id"
            ).fetchall()
        assert [row["name"] for row in rows] == ["main"]

    def test_commits_leave_other_repositories_alone(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets", commits={"main": 2}))
        persist(store, make_snapshot("octo/gears", commits={"main": 3}))

        persist(store, make_snapshot("octo/widgets", branches=[]))

        (gears_main,) = store.list_branches("octo/gears")
        assert len(gears_main.commits) == 3

    def test_failed_persist_keeps_previous_commits(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets", commits={"main": 2}))

        broken = make_snapshot(
            "octo/widgets",
            commits={"main": 5},
            prs=[(1, PRState.OPEN, None), (1, PRState.OPEN, None)],
        )
        with pytest.raises(PersistenceFailed):
            persist(store, broken)

        (main,) = store.list_branches("octo/widgets")
        assert [c.message for c in main.commits] == ["main change 2", "main change 1"]

    def test_groups_snapshot_carries_commits(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets", commits={"main": 2}))

        snapshot = store.list_groups_with_repos()

        (view,) = snapshot.ungrouped.repositories
        assert [c.message for c in view.branches[0].commits] == ["main change 2", "main change 1"]

    def test_database_error_becomes_persistence_failed(self, store, make_snapshot):
        with patch(
            "overall.core.store.store.replace_pull_requests",
            side_effect=sqlite3.OperationalError("disk I/O error"),
        ):
            with pytest.raises(PersistenceFailed, match="disk I/O error"):
                persist(store, make_snapshot("octo/widgets"))

        assert store.get_repository("octo/widgets") is None

    def test_upsert_keeps_group_membership(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets"))
        group = store.create_group("Tools")
        store.move_repository("octo/widgets", group.id)

        persist(store, make_snapshot("octo/widgets", pushed_hours_ago=5), Priority.STALE)

        assert store.list_repository_ids(group.id) == ["octo/widgets"]
        assert store.get_repository("octo/widgets").priority == Priority.STALE

    def test_upsert_clears_missing_flag(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets"))
        assert store.mark_missing("octo/widgets") is True
        assert store.get_repository("octo/widgets").is_missing is True

        persist(store, make_snapshot("octo/widgets"))

        assert store.get_repository("octo/widgets").is_missing is False

    def test_mark_missing_unknown_repository(self, store):
        assert store.mark_missing("octo/nothing") is False


class TestRepositoryReads:
    """Tests for read queries."""

    def test_list_repositories_orders_by_priority_then_push(self, store, make_snapshot):
        persist(store, make_snapshot("octo/complete"), Priority.COMPLETE)
        persist(store, make_snapshot("octo/old-urgent", pushed_hours_ago=48), Priority.NEEDS_SYNC)
        persist(store, make_snapshot("octo/new-urgent", pushed_hours_ago=1), Priority.NEEDS_SYNC)

        ids = [repo.id for repo in store.list_repositories()]

        assert ids == ["octo/new-urgent", "octo/old-urgent", "octo/complete"]

    def test_set_priority(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets"))
        store.set_priority("octo/widgets", Priority.LOCAL_CHANGES)
        assert store.get_repository("octo/widgets").priority == Priority.LOCAL_CHANGES

    def test_set_priority_unknown_repository(self, store):
        with pytest.raises(NotFound):
            store.set_priority("octo/nothing", Priority.STALE)

    def test_groups_snapshot(self, store, make_snapshot):
        persist(store, make_snapshot("octo/a"), Priority.COMPLETE)
        persist(store, make_snapshot("octo/b"), Priority.NEEDS_SYNC)
        persist(store, make_snapshot("octo/c"), Priority.STALE)
        group = store.create_group("Work")
        store.move_repository("octo/a", group.id)
        store.move_repository("octo/b", group.id)
        store.create_group("Empty")

        snapshot = store.list_groups_with_repos()

        work, empty = snapshot.groups
        assert work.group.name == "Work"
        assert [v.repository.id for v in work.repositories] == ["octo/b", "octo/a"]
        assert work.priority == Priority.NEEDS_SYNC
        assert empty.repositories == []
        assert empty.priority == Priority.COMPLETE
        assert [v.repository.id for v in snapshot.ungrouped.repositories] == ["octo/c"]

    def test_list_repository_ids_unknown_group(self, store):
        with pytest.raises(NotFound):
            store.list_repository_ids(999)

    def test_clear_repository_data_keeps_configuration(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets"))
        store.add_owner("octo")

        store.clear_repository_data()

        assert store.list_repositories() == []
        assert store.list_owners() == ["octo"]


class TestLocalStatus:
    """Tests for the local_status table."""

    def test_upsert_and_get(self, store, make_local_status):
        store.upsert_local_status(make_local_status("octo/widgets", "/src/widgets", uncommitted=2))

        status = store.get_local_status("octo/widgets")

        assert status.uncommitted_files == 2
        assert status.local_path == "/src/widgets"

    def test_upsert_replaces_row_for_same_repo(self, store, make_local_status):
        store.upsert_local_status(make_local_status("octo/widgets", "/old/widgets"))
        store.upsert_local_status(make_local_status("octo/widgets", "/new/widgets", unpushed=1))

        statuses = store.list_local_statuses()

        assert len(statuses) == 1
        assert statuses[0].local_path == "/new/widgets"
        assert statuses[0].unpushed_commits == 1


class TestGroups:
    """Tests for group management."""

    def test_create_assigns_increasing_display_order(self, store):
        first = store.create_group("One")
        second = store.create_group("Two")
        assert second.display_order == first.display_order + 1

    def test_create_strips_name(self, store):
        assert store.create_group("  Padded  ").name == "Padded"

    def test_create_blank_name(self, store):
        with pytest.raises(ValueError, match="cannot be empty"):
            store.create_group("   ")

    def test_create_duplicate(self, store):
        store.create_group("Tools")
        with pytest.raises(Conflict):
            store.create_group("Tools")

    def test_create_with_repositories(self, store, make_snapshot):
        persist(store, make_snapshot("octo/a"))
        persist(store, make_snapshot("octo/b"))

        group = store.create_group("Work", repo_ids=["octo/a", "octo/b"])

        assert store.list_repository_ids(group.id) == ["octo/a", "octo/b"]

    def test_create_with_unknown_repository_changes_nothing(self, store, make_snapshot):
        persist(store, make_snapshot("octo/a"))
        old = store.create_group("Old", repo_ids=["octo/a"])

        with pytest.raises(NotFound, match="octo/nothing"):
            store.create_group("Work", repo_ids=["octo/a", "octo/nothing"])

        assert [g.name for g in store.list_groups()] == ["Old"]
        assert store.list_repository_ids(old.id) == ["octo/a"]
        assert store.create_group("Work").name == "Work"

    def test_rename(self, store):
        group = store.create_group("Tools")
        assert store.rename_group(group.id, "Utilities").name == "Utilities"

    def test_rename_unknown(self, store):
        with pytest.raises(NotFound):
            store.rename_group(42, "Anything")

    def test_rename_to_existing_name(self, store):
        store.create_group("A")
        b = store.create_group("B")
        with pytest.raises(Conflict):
            store.rename_group(b.id, "A")

    def test_delete_ungroups_members(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets"))
        group = store.create_group("Tools")
        store.move_repository("octo/widgets", group.id)

        store.delete_group(group.id)

        snapshot = store.list_groups_with_repos()
        assert snapshot.groups == []
        assert [v.repository.id for v in snapshot.ungrouped.repositories] == ["octo/widgets"]

    def test_delete_unknown(self, store):
        with pytest.raises(NotFound):
            store.delete_group(42)

    def test_move_between_groups_keeps_single_membership(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets"))
        a = store.create_group("A")
        b = store.create_group("B")

        store.move_repository("octo/widgets", a.id)
        store.move_repository("octo/widgets", b.id)

        assert store.list_repository_ids(a.id) == []
        assert store.list_repository_ids(b.id) == ["octo/widgets"]

    def test_move_to_none_ungroups(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets"))
        group = store.create_group("A")
        store.move_repository("octo/widgets", group.id)

        store.move_repository("octo/widgets", None)

        assert store.list_repository_ids(group.id) == []

    def test_move_unknown_repository(self, store):
        group = store.create_group("A")
        with pytest.raises(NotFound, match="Repository not found"):
            store.move_repository("octo/nothing", group.id)

    def test_move_unknown_group(self, store, make_snapshot):
        persist(store, make_snapshot("octo/widgets"))
        with pytest.raises(NotFound, match="Group not found"):
            store.move_repository("octo/widgets", 42)


class TestOwners:
    """Tests for tracked owners."""

    def test_add_and_list(self, store):
        assert store.add_owner("octo") is True
        assert store.add_owner("octo") is False
        assert store.list_owners() == ["octo"]

    def test_add_invalid(self, store):
        with pytest.raises(InvalidOwner):
            store.add_owner("not valid!")

    def test_remove(self, store):
        store.add_owner("octo")
        assert store.remove_owner("octo") is True
        assert store.remove_owner("octo") is False

    def test_seed_only_when_empty(self, store):
        assert store.seed_owners(["octo", "acme"]) == 2
        assert store.seed_owners(["other"]) == 0
        assert sorted(store.list_owners()) == ["acme", "octo"]


class TestLocalRoots:
    """Tests for local root configuration."""

    def test_add_and_list(self, store, tmp_path):
        root = store.add_root(str(tmp_path))
        assert root.enabled is True
        assert [r.path for r in store.list_roots()] == [str(tmp_path)]

    def test_add_duplicate(self, store, tmp_path):
        store.add_root(str(tmp_path))
        with pytest.raises(Conflict):
            store.add_root(str(tmp_path))

    def test_disable_filters_enabled_only(self, store, tmp_path):
        store.add_root(str(tmp_path))
        store.set_root_enabled(str(tmp_path), False)

        assert store.list_roots(enabled_only=True) == []
        assert store.list_roots()[0].enabled is False

    def test_set_enabled_unknown(self, store, tmp_path):
        with pytest.raises(NotFound):
            store.set_root_enabled(str(tmp_path / "missing"), True)

    def test_remove(self, store, tmp_path):
        store.add_root(str(tmp_path))
        assert store.remove_root(str(tmp_path)) is True
        assert store.remove_root(str(tmp_path)) is False
