"""
Tests for PRService.
"""

import pytest

from overall.core.errors import NotFound, RemoteUnavailable
from overall.core.pr import PRService


@pytest.fixture
def synced(engine, remote, make_snapshot):
    remote.set(
        "octo/widgets",
        make_snapshot(
            "octo/widgets",
            branches=[("main", 0, 0), ("feature-a", 2, 0), ("feature-b", 1, 3), ("merged", 0, 0)],
        ),
    )
    engine.sync_repository("octo/widgets")


class TestCreate:
    """Tests for opening a single pull request."""

    def test_returns_url(self, store, remote):
        service = PRService(store, remote)

        url = service.create("octo/widgets", "feature-a", title="Feature A")

        assert url == "https://github.com/octo/widgets/pull/1"
        assert remote.created_prs == [("octo/widgets", "feature-a")]

    def test_remote_error_propagates(self, store, remote):
        remote.pr_errors["feature-a"] = RemoteUnavailable("gh failed")
        service = PRService(store, remote)

        with pytest.raises(RemoteUnavailable):
            service.create("octo/widgets", "feature-a")


class TestCreateForUnmerged:
    """Tests for opening PRs for every branch ahead of the default branch."""

    def test_only_branches_with_commits_ahead(self, store, remote, synced):
        results = PRService(store, remote).create_for_unmerged("octo/widgets")

        assert sorted(r.branch for r in results) == ["feature-a", "feature-b"]
        assert all(r.success for r in results)
        assert all(r.url.startswith("https://github.com/octo/widgets/pull/") for r in results)

    def test_one_failure_does_not_stop_the_rest(self, store, remote, synced):
        remote.pr_errors["feature-a"] = RemoteUnavailable("HTTP 502")

        results = {r.branch: r for r in PRService(store, remote).create_for_unmerged("octo/widgets")}

        assert results["feature-a"].success is False
        assert "HTTP 502" in results["feature-a"].error
        assert results["feature-b"].success is True

    def test_unknown_repository(self, store, remote):
        with pytest.raises(NotFound):
            PRService(store, remote).create_for_unmerged("octo/nothing")
