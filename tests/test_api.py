"""
Tests for the HTTP API.

Tests validate:
- Group listing, creation, rename, delete and repository moves
- Sync endpoints and the status code of each remote failure
- Owner and local root configuration
- PR creation
- Consistent error bodies with error codes
"""

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from overall.api import create_app
from overall.api.app import ErrorCode, map_error
from overall.core.errors import (
    ConfigError,
    Conflict,
    NotFound,
    PersistenceFailed,
    RemoteNotFound,
    RemoteRateLimited,
    RemoteTimeout,
    RemoteUnavailable,
)
from overall.core.facade import QueryFacade
from overall.core.github.models import PRState


@pytest.fixture
def client(services):
    return TestClient(create_app(services))


@pytest.fixture
def synced(services, remote, make_snapshot):
    """Two cached repositories, both ungrouped."""
    remote.set(
        "octo/widgets",
        make_snapshot(
            "octo/widgets",
            branches=[("main", 0, 0), ("feature", 3, 0)],
            prs=[(2, PRState.OPEN, "feature")],
        ),
    )
    remote.set("octo/gears", make_snapshot("octo/gears", pushed_hours_ago=2))
    services.engine.sync_many(["octo/widgets", "octo/gears"])


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestGroups:
    """Tests for group routes."""

    def test_empty(self, client):
        response = client.get("/api/groups")

        assert response.status_code == 200
        data = response.json()
        assert data["groups"] == []
        assert data["ungrouped"]["repos"] == []
        assert data["ungrouped"]["priority"] == "complete"

    def test_create_with_repos(self, client, synced):
        response = client.post("/api/groups", json={"name": "Work", "repoIds": ["octo/widgets"]})

        assert response.status_code == 201
        group = response.json()
        assert group["name"] == "Work"

        data = client.get("/api/groups").json()
        (work,) = data["groups"]
        assert work["id"] == group["id"]
        assert [r["id"] for r in work["repos"]] == ["octo/widgets"]
        assert work["priority"] == "needs-sync"
        assert [r["id"] for r in data["ungrouped"]["repos"]] == ["octo/gears"]

    def test_create_with_unknown_repo_leaves_nothing_behind(self, client, synced):
        response = client.post(
            "/api/groups", json={"name": "Work", "repoIds": ["octo/widgets", "octo/nope"]}
        )

        assert response.status_code == 404
        data = client.get("/api/groups").json()
        assert data["groups"] == []
        assert {r["id"] for r in data["ungrouped"]["repos"]} == {"octo/widgets", "octo/gears"}

        retry = client.post("/api/groups", json={"name": "Work", "repoIds": ["octo/widgets"]})
        assert retry.status_code == 201

    def test_create_duplicate_is_conflict(self, client):
        client.post("/api/groups", json={"name": "Work"})

        response = client.post("/api/groups", json={"name": "Work"})

        assert response.status_code == 409
        assert response.json()["error_code"] == ErrorCode.CONFLICT

    def test_create_blank_name(self, client):
        response = client.post("/api/groups", json={"name": "   "})

        assert response.status_code == 422
        assert response.json()["error_code"] == ErrorCode.VALIDATION_ERROR

    def test_create_missing_name(self, client):
        response = client.post("/api/groups", json={})

        assert response.status_code == 422
        data = response.json()
        assert data["message"] == "Request validation failed"
        assert "name" in data["detail"]

    def test_rename(self, client):
        group_id = client.post("/api/groups", json={"name": "Old"}).json()["id"]

        response = client.post(f"/api/groups/{group_id}/rename", json={"name": "New"})

        assert response.status_code == 200
        assert response.json()["name"] == "New"

    def test_rename_unknown(self, client):
        response = client.post("/api/groups/999/rename", json={"name": "New"})

        assert response.status_code == 404
        assert response.json()["error_code"] == ErrorCode.NOT_FOUND

    def test_delete(self, client, synced):
        group_id = client.post(
            "/api/groups", json={"name": "Work", "repoIds": ["octo/widgets"]}
        ).json()["id"]

        response = client.delete(f"/api/groups/{group_id}")

        assert response.json() == {"success": True}
        data = client.get("/api/groups").json()
        assert data["groups"] == []
        assert len(data["ungrouped"]["repos"]) == 2

    def test_move_and_ungroup(self, client, synced):
        group_id = client.post("/api/groups", json={"name": "Work"}).json()["id"]

        moved = client.post("/api/repos/move", json={"repoId": "octo/gears", "groupId": group_id})
        assert moved.json() == {"success": True, "repoId": "octo/gears", "groupId": group_id}
        assert [r["id"] for r in client.get("/api/groups").json()["groups"][0]["repos"]] == [
            "octo/gears"
        ]

        client.post("/api/repos/move", json={"repoId": "octo/gears", "groupId": None})
        assert client.get("/api/groups").json()["groups"][0]["repos"] == []

    def test_move_unknown_repository(self, client):
        response = client.post("/api/repos/move", json={"repoId": "octo/nothing"})
        assert response.status_code == 404

    def test_mutation_regenerates_configured_export(self, services, synced, tmp_path):
        export_path = tmp_path / "site" / "repos.json"
        services.facade = QueryFacade(services.store, export_path)
        client = TestClient(create_app(services))

        client.post("/api/groups", json={"name": "Work", "repoIds": ["octo/gears"]})

        document = json.loads(export_path.read_text())
        assert document["groups"][0]["repos"][0]["id"] == "octo/gears"


class TestExport:
    """Tests for POST /api/export."""

    def test_returns_document_without_path(self, client, synced):
        data = client.post("/api/export").json()

        assert data["path"] is None
        assert {r["id"] for r in data["data"]["ungrouped"]} == {"octo/widgets", "octo/gears"}

    def test_writes_configured_path(self, services, synced, tmp_path):
        export_path = tmp_path / "site" / "repos.json"
        services.facade = QueryFacade(services.store, export_path)
        client = TestClient(create_app(services))

        data = client.post("/api/export").json()

        assert data == {"success": True, "path": str(export_path)}
        assert len(json.loads(export_path.read_text())["ungrouped"]) == 2

    def test_ignores_path_in_body(self, client, synced, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        victim = outside / "victim.txt"
        victim.write_text("keep me")

        response = client.post("/api/export", json={"path": str(victim)})

        assert response.status_code == 200
        assert response.json()["path"] is None
        assert victim.read_text() == "keep me"
        assert list(outside.iterdir()) == [victim]

    def test_cors_allows_only_local_ui(self, client):
        allowed = client.get("/health", headers={"Origin": "http://localhost:5173"})
        foreign = client.get("/health", headers={"Origin": "https://evil.example"})

        assert allowed.headers["access-control-allow-origin"] == "http://localhost:5173"
        assert "access-control-allow-origin" not in foreign.headers


class TestSync:
    """Tests for sync routes."""

    def test_sync_repository(self, client, remote, make_snapshot):
        remote.set("octo/widgets", make_snapshot("octo/widgets"))

        response = client.post("/api/repos/octo/widgets/sync")

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "Done"
        assert data["transitions"] == ["Idle", "Fetching", "Classifying", "Persisting", "Done"]
        assert data["priority"] == "complete"

    def test_not_found(self, client):
        response = client.post("/api/repos/octo/nothing/sync")

        assert response.status_code == 404
        assert response.json()["detail"] == "RemoteNotFound"

    def test_rate_limited_sets_retry_after(self, client, remote):
        remote.set("octo/widgets", RemoteRateLimited("API rate limit exceeded", retry_after=120))

        response = client.post("/api/repos/octo/widgets/sync")

        assert response.status_code == 429
        assert response.headers["Retry-After"] == "120"
        assert response.json()["error_code"] == ErrorCode.RATE_LIMITED

    def test_unavailable_is_bad_gateway(self, client, remote):
        remote.set("octo/widgets", RemoteUnavailable("HTTP 502"))

        response = client.post("/api/repos/octo/widgets/sync")

        assert response.status_code == 502
        assert response.json()["error_code"] == ErrorCode.REMOTE_UNAVAILABLE

    def test_persist_failure_is_server_error(self, client, services, remote, make_snapshot):
        remote.set("octo/widgets", make_snapshot("octo/widgets"))

        with patch.object(
            services.store, "persist_generation", side_effect=PersistenceFailed("disk full")
        ):
            response = client.post("/api/repos/octo/widgets/sync")

        assert response.status_code == 500
        assert response.json()["error_code"] == ErrorCode.PERSISTENCE_ERROR

    def test_sync_group(self, client, remote, synced):
        group_id = client.post(
            "/api/groups", json={"name": "Work", "repoIds": ["octo/widgets"]}
        ).json()["id"]
        remote.fetch_calls.clear()

        data = client.post(f"/api/groups/{group_id}/sync").json()

        assert data["succeeded"] == 1
        assert remote.fetch_calls == ["octo/widgets"]

    def test_sync_unknown_group(self, client):
        assert client.post("/api/groups/999/sync").status_code == 404

    def test_sync_all(self, client, services, remote, make_repo, make_snapshot):
        services.store.add_owner("octo")
        services.store.add_owner("acme")
        remote.listings["octo"] = [make_repo("octo/widgets")]
        remote.listings["acme"] = RemoteUnavailable("gh: connection refused")
        remote.set("octo/widgets", make_snapshot("octo/widgets"))

        data = client.post("/api/sync").json()

        assert data["succeeded"] == 1
        assert data["failed"] == 0
        assert list(data["listingErrors"]) == ["acme"]


class TestLocal:
    """Tests for local scan routes."""

    def test_scan_and_status(self, client, services, scanner, tmp_path, make_local_status):
        clone = tmp_path / "octo" / "widgets"
        (clone / ".git").mkdir(parents=True)
        services.store.add_root(str(tmp_path / "octo"))
        scanner.results[str(clone)] = make_local_status("octo/widgets", str(clone), unpushed=2)

        scan = client.post("/api/local/scan").json()

        assert scan["scanned"] == 1
        assert scan["repos"][0]["repoId"] == "octo/widgets"
        assert scan["repos"][0]["unpushedCommits"] == 2

        status = client.get("/api/local/status").json()
        assert [r["path"] for r in status["repos"]] == [str(clone)]


class TestSettings:
    """Tests for owner and root configuration routes."""

    def test_owner_lifecycle(self, client):
        assert client.post("/api/config/owners", json={"owner": "octo"}).status_code == 201
        assert client.get("/api/config/owners").json() == {"owners": ["octo"]}

        assert client.delete("/api/config/owners", params={"owner": "octo"}).json() == {
            "success": True
        }
        assert client.get("/api/config/owners").json() == {"owners": []}

    def test_add_existing_owner(self, client):
        client.post("/api/config/owners", json={"owner": "octo"})

        response = client.post("/api/config/owners", json={"owner": "octo"})

        assert response.json() == {"owner": "octo", "added": False}

    def test_invalid_owner(self, client):
        response = client.post("/api/config/owners", json={"owner": "no spaces allowed"})

        assert response.status_code == 422
        assert response.json()["detail"] == "InvalidOwner"

    def test_remove_untracked_owner(self, client):
        response = client.delete("/api/config/owners", params={"owner": "octo"})
        assert response.status_code == 404

    def test_root_lifecycle(self, client, tmp_path):
        path = str(tmp_path)

        created = client.post("/api/config/roots", json={"path": path})
        assert created.status_code == 201
        assert created.json()["enabled"] is True

        client.patch("/api/config/roots", json={"path": path, "enabled": False})
        (root,) = client.get("/api/config/roots").json()["roots"]
        assert root["enabled"] is False

        assert client.delete("/api/config/roots", params={"path": path}).status_code == 200
        assert client.get("/api/config/roots").json() == {"roots": []}

    def test_duplicate_root(self, client, tmp_path):
        client.post("/api/config/roots", json={"path": str(tmp_path)})
        assert client.post("/api/config/roots", json={"path": str(tmp_path)}).status_code == 409


class TestPullRequests:
    """Tests for PR routes."""

    def test_create(self, client, remote):
        response = client.post(
            "/api/pr/create",
            json={"repoId": "octo/widgets", "branchName": "feature", "title": "Feature"},
        )

        assert response.json() == {
            "success": True,
            "prUrl": "https://github.com/octo/widgets/pull/1",
        }

    def test_create_failure(self, client, remote):
        remote.pr_errors["feature"] = RemoteUnavailable("HTTP 502")

        response = client.post(
            "/api/pr/create", json={"repoId": "octo/widgets", "branchName": "feature"}
        )

        assert response.status_code == 502

    def test_create_all(self, client, synced):
        data = client.post("/api/pr/create-all", json={"repoId": "octo/widgets"}).json()

        assert data["message"] == "Created 1 of 1 PRs"
        assert data["results"][0]["branch"] == "feature"


class TestErrorMapping:
    """Tests for the exception to status mapping."""

    @pytest.mark.parametrize(
        "error,expected",
        [
            (RemoteNotFound("x"), (404, ErrorCode.NOT_FOUND)),
            (NotFound("x"), (404, ErrorCode.NOT_FOUND)),
            (RemoteRateLimited("x"), (429, ErrorCode.RATE_LIMITED)),
            (RemoteTimeout("x"), (502, ErrorCode.REMOTE_UNAVAILABLE)),
            (PersistenceFailed("x"), (500, ErrorCode.PERSISTENCE_ERROR)),
            (Conflict("x"), (409, ErrorCode.CONFLICT)),
            (ConfigError("x"), (500, ErrorCode.CONFIG_ERROR)),
        ],
    )
    def test_map_error(self, error, expected):
        assert map_error(error) == expected

    def test_unexpected_exception_is_clean_500(self, services):
        client = TestClient(create_app(services), raise_server_exceptions=False)

        with patch.object(services.facade, "groups", side_effect=RuntimeError("kaboom")):
            response = client.get("/api/groups")

        assert response.status_code == 500
        data = response.json()
        assert data["error_code"] == ErrorCode.INTERNAL_ERROR
        assert "Traceback" not in json.dumps(data)
