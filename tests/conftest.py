"""Shared test fixtures for SharePoint DocSync."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from sharepoint_docsync import create_app
from sharepoint_docsync.db import init_db
from sharepoint_docsync.services.sharepoint import GRAPH_BASE_URL, SharePointClient

if TYPE_CHECKING:
    from pathlib import Path

    from flask import Flask

DRIVE_ID = "drive-1"
SITE_ID = "site-1"
TOKEN_URL = "https://login.microsoftonline.com/tenant/oauth2/v2.0/token"


def graph_url(path: str) -> str:
    return f"{GRAPH_BASE_URL}{path}"


def graph_item(
    item_id: str,
    name: str,
    parent: str | None = "/",
    folder: bool = False,
    deleted: bool = False,
    drive_id: str = DRIVE_ID,
    **extra: Any,
) -> dict[str, Any]:
    """Build a driveItem resource as Graph returns it."""
    item: dict[str, Any] = {"id": item_id, "name": name}
    if parent is not None:
        suffix = "" if parent == "/" else parent
        item["parentReference"] = {"driveId": drive_id, "path": f"/drives/{drive_id}/root:{suffix}"}
    if deleted:
        item["deleted"] = {"state": "deleted"}
        return item
    if folder:
        item["folder"] = {"childCount": extra.pop("child_count", 0)}
    else:
        item["file"] = {"mimeType": extra.pop("mime_type", "application/pdf")}
        item["size"] = extra.pop("size", 1024)
    item["webUrl"] = f"https://contoso.sharepoint.com/{name}"
    item["lastModifiedDateTime"] = extra.pop("modified", "2024-05-01T10:00:00Z")
    item["lastModifiedBy"] = {"user": {"displayName": "Ana Silva"}}
    item["eTag"] = f'"{item_id},1"'
    item.update(extra)
    return item


class FakeGraph:
    """In-memory stand-in for Microsoft Graph behind httpx.MockTransport.

    Responses are queued per (method, url). When several are queued they are
    served in order and the last one keeps being served.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[httpx.Response]] = {}
        self.requests: list[httpx.Request] = []
        self.add("POST", TOKEN_URL, {"access_token": "test-token", "expires_in": 3600})

    def add(
        self,
        method: str,
        url: str,
        json_body: Any = None,
        status: int = 200,
        text: str | None = None,
    ) -> None:
        if text is not None:
            response = httpx.Response(status, text=text)
        else:
            response = httpx.Response(status, json=json_body if json_body is not None else {})
        self.routes.setdefault((method, url), []).append(response)

    def get(self, path: str, json_body: Any = None, status: int = 200, text: str | None = None):
        self.add("GET", graph_url(path), json_body, status, text)

    def children(self, path: str, items: list[dict[str, Any]], next_link: str | None = None):
        body: dict[str, Any] = {"value": items}
        if next_link:
            body["@odata.nextLink"] = next_link
        self.get(path, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, str(request.url))
        queue = self.routes.get(key)
        if not queue:
            raise AssertionError(f"Unexpected Graph request: {key}")
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        return response

    def calls(self, method: str, url: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and str(r.url) == url]


@pytest.fixture
def graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def sharepoint(graph: FakeGraph, sleeps: list[float]) -> Iterator[SharePointClient]:
    client = SharePointClient(
        tenant_id="tenant",
        client_id="client",
        client_secret="secret",
        http=httpx.Client(transport=httpx.MockTransport(graph.handler)),
        sleep=sleeps.append,
    )
    yield client
    client.close()


@pytest.fixture
def app(tmp_path: Path) -> Flask:
    app = create_app(
        {
            "TESTING": True,
            "DATABASE_PATH": str(tmp_path / "docsync.sqlite3"),
            "SHAREPOINT_TENANT_ID": "tenant",
            "SHAREPOINT_CLIENT_ID": "client",
            "SHAREPOINT_CLIENT_SECRET": "secret",
            "SYNC_PATH_RETRY_DELAY": 0,
        }
    )
    with app.app_context():
        init_db()
    return app


@pytest.fixture
def ctx(app: Flask) -> Iterator[None]:
    with app.app_context():
        yield
