"""Tests for the HTTP endpoints."""

import base64

import pytest
from flask import Flask
from flask.testing import FlaskClient

from sharepoint_docsync.models import SyncConfig, SyncLog
from sharepoint_docsync.services.sharepoint import SharePointClient

from conftest import DRIVE_ID, SITE_ID, FakeGraph, graph_item, graph_url

ORG = "org-1"
LATEST_LINK = graph_url(f"/drives/{DRIVE_ID}/root/delta?token=L1")


@pytest.fixture
def client(app: Flask, sharepoint: SharePointClient, monkeypatch: pytest.MonkeyPatch) -> FlaskClient:
    monkeypatch.setattr(
        SharePointClient, "from_app_config", classmethod(lambda cls, config: sharepoint)
    )
    return app.test_client()


@pytest.fixture
def configured(app: Flask) -> int:
    with app.app_context():
        return SyncConfig.create(
            organization_id=ORG, site_id=SITE_ID, drive_id=DRIVE_ID, root_folder_path="/"
        ).id


def _serve_root(graph: FakeGraph) -> None:
    graph.get(f"/sites/{SITE_ID}", {"id": SITE_ID, "displayName": "Legal"})
    graph.children(
        f"/drives/{DRIVE_ID}/root/children",
        [graph_item("F1", "Contracts", folder=True), graph_item("a", "a.pdf")],
    )
    graph.children(
        f"/drives/{DRIVE_ID}/items/F1/children",
        [graph_item("b", "b.pdf", parent="/Contracts")],
    )
    graph.get(
        f"/drives/{DRIVE_ID}/root/delta?token=latest",
        {"value": [], "@odata.deltaLink": LATEST_LINK},
    )


class TestDispatch:
    def test_requires_json_object(self, client: FlaskClient) -> None:
        response = client.post("/api/sharepoint", json=["sync"])

        assert response.status_code == 400
        assert response.get_json()["success"] is False

    def test_requires_organization(self, client: FlaskClient) -> None:
        response = client.post("/api/sharepoint", json={"action": "sync"})

        assert response.status_code == 400
        assert "organization_id" in response.get_json()["error"]

    def test_unknown_action(self, client: FlaskClient) -> None:
        response = client.post("/api/sharepoint", json={"action": "nuke", "organization_id": ORG})

        assert response.status_code == 400
        assert response.get_json()["error"] == "Unknown action: nuke"

    def test_sync_without_config(self, client: FlaskClient) -> None:
        response = client.post("/api/sharepoint", json={"organization_id": ORG})

        assert response.status_code == 404

    def test_sync_is_default_action(
        self, client: FlaskClient, graph: FakeGraph, configured: int
    ) -> None:
        _serve_root(graph)

        response = client.post("/api/sharepoint", json={"organization_id": ORG})

        body = response.get_json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["data"]["items_found"] == 3
        assert body["data"]["items_added"] == 3
        assert body["data"]["site_name"] == "Legal"

    def test_sync_conflict(self, app: Flask, client: FlaskClient, configured: int) -> None:
        with app.app_context():
            SyncLog.create(organization_id=ORG, config_id=configured)

        response = client.post("/api/sharepoint", json={"organization_id": ORG})

        assert response.status_code == 409

    def test_graph_failure_is_bad_gateway(
        self, client: FlaskClient, graph: FakeGraph, configured: int
    ) -> None:
        graph.get(f"/sites/{SITE_ID}", status=503, text="unavailable")

        response = client.post("/api/sharepoint", json={"organization_id": ORG})

        assert response.status_code == 502
        assert "503" in response.get_json()["error"]


class TestActions:
    def test_save_and_delete_config(self, client: FlaskClient, graph: FakeGraph) -> None:
        graph.get(f"/sites/{SITE_ID}", {"id": SITE_ID, "displayName": "Legal", "webUrl": "u"})

        saved = client.post(
            "/api/sharepoint",
            json={
                "action": "save_config",
                "organization_id": ORG,
                "config": {"site_id": SITE_ID, "drive_id": DRIVE_ID, "root_folder_path": "/Contracts"},
            },
        )
        deleted = client.post(
            "/api/sharepoint", json={"action": "delete_config", "organization_id": ORG}
        )

        assert saved.status_code == 200
        assert saved.get_json() == {"success": True, "site_name": "Legal", "site_url": "u"}
        assert deleted.get_json() == {"success": True, "deleted": True}

    def test_browse_folders(self, client: FlaskClient, graph: FakeGraph, configured: int) -> None:
        graph.children(
            f"/drives/{DRIVE_ID}/root/children",
            [graph_item("F1", "Contracts", folder=True, child_count=2)],
        )

        response = client.post(
            "/api/sharepoint", json={"action": "browse_folders", "organization_id": ORG}
        )

        body = response.get_json()
        assert body["path"] == "/"
        assert body["items"][0]["isFolder"] is True

    def test_upload_file(self, client: FlaskClient, graph: FakeGraph, configured: int) -> None:
        url = graph_url(f"/drives/{DRIVE_ID}/root:/Contracts/a.pdf:/content")
        graph.add("PUT", url, graph_item("U1", "a.pdf", parent="/Contracts"))

        response = client.post(
            "/api/sharepoint",
            json={
                "action": "upload_file",
                "organization_id": ORG,
                "file_name": "a.pdf",
                "folder_path": "/Contracts",
                "file_base64": base64.b64encode(b"%PDF-1.4").decode(),
            },
        )

        assert response.status_code == 200
        assert response.get_json()["item"]["id"] == "U1"
        assert graph.calls("PUT", url)[0].content == b"%PDF-1.4"

    def test_upload_rejects_bad_base64(self, client: FlaskClient, configured: int) -> None:
        response = client.post(
            "/api/sharepoint",
            json={
                "action": "upload_file",
                "organization_id": ORG,
                "file_name": "a.pdf",
                "file_base64": "not base64!",
            },
        )

        assert response.status_code == 400


class TestTokenAuth:
    def test_rejects_missing_token(self, app: Flask, client: FlaskClient) -> None:
        app.config["API_TOKEN"] = "s3cret"

        response = client.post("/api/sharepoint", json={"organization_id": ORG})

        assert response.status_code == 401

    def test_accepts_bearer_token(self, app: Flask, client: FlaskClient) -> None:
        app.config["API_TOKEN"] = "s3cret"

        response = client.post(
            "/api/sharepoint",
            json={"organization_id": ORG},
            headers={"Authorization": "Bearer s3cret"},
        )

        assert response.status_code == 404


class TestReadEndpoints:
    def test_documents_and_logs_after_sync(
        self, client: FlaskClient, graph: FakeGraph, configured: int
    ) -> None:
        _serve_root(graph)
        client.post("/api/sharepoint", json={"organization_id": ORG})

        docs = client.get("/documents/", query_string={"organization_id": ORG, "folder_path": "/"})
        logs = client.get("/sync/logs", query_string={"organization_id": ORG})
        status = client.get("/sync/status", query_string={"organization_id": ORG})

        assert [d["name"] for d in docs.get_json()["documents"]] == ["Contracts", "a.pdf"]
        assert logs.get_json()["logs"][0]["status"] == "success"
        assert status.get_json()["total_documents"] == 3
        assert status.get_json()["last_sync_status"] == "success"

    def test_documents_require_organization(self, client: FlaskClient) -> None:
        response = client.get("/documents/")

        assert response.status_code == 400
        assert response.get_json()["success"] is False

    def test_status_without_config(self, client: FlaskClient) -> None:
        response = client.get("/sync/status", query_string={"organization_id": ORG})

        assert response.status_code == 404

    def test_catalog_export(self, client: FlaskClient, configured: int) -> None:
        response = client.get("/documents/catalog.xlsx", query_string={"organization_id": ORG})

        assert response.status_code == 200
        assert response.data[:2] == b"PK"

    def test_health(self, client: FlaskClient) -> None:
        assert client.get("/health").get_json() == {"status": "ok"}
