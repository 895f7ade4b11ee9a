"""SharePoint client using Microsoft Graph API."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from sharepoint_docsync.errors import ConfigurationError, FolderNotFoundError, GraphError
from sharepoint_docsync.paths import ROOT, encode_path, normalize_folder_path, split_segments

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
AUTH_URL = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"

# Marker accepted by list_children for the drive root folder
ROOT_FOLDER_ID = "root"


@dataclass
class DriveItem:
    """Represents a SharePoint drive item (file or folder)."""

    id: str
    name: str
    parent_path: str | None
    is_folder: bool
    child_count: int | None
    size: int | None
    mime_type: str | None
    web_url: str | None
    download_url: str | None
    modified_at: str | None
    modified_by: str | None
    etag: str | None
    # For delta queries
    is_deleted: bool = False

    @classmethod
    def from_graph(cls, item: Mapping[str, Any]) -> DriveItem:
        """Parse a drive item from a Graph API response."""
        modified_by = None
        if "lastModifiedBy" in item and "user" in item["lastModifiedBy"]:
            modified_by = item["lastModifiedBy"]["user"].get("displayName")

        folder = item.get("folder")
        return cls(
            id=item["id"],
            # Deleted items may come back without a name
            name=item.get("name", ""),
            parent_path=item.get("parentReference", {}).get("path"),
            is_folder=folder is not None,
            child_count=folder.get("childCount") if folder is not None else None,
            size=item.get("size"),
            mime_type=item.get("file", {}).get("mimeType"),
            web_url=item.get("webUrl"),
            download_url=item.get("@microsoft.graph.downloadUrl"),
            modified_at=item.get("lastModifiedDateTime"),
            modified_by=modified_by,
            etag=item.get("eTag"),
            is_deleted="deleted" in item,
        )


@dataclass
class Drive:
    """Represents a SharePoint document library (drive)."""

    id: str
    name: str
    web_url: str | None
    drive_type: str | None = None


@dataclass
class Site:
    """Display information for a SharePoint site."""

    id: str
    name: str
    web_url: str | None


@dataclass
class FolderRef:
    """A folder resolved from a path."""

    id: str
    name: str


@dataclass(frozen=True)
class DeltaLink:
    """Opaque continuation link returned by a Graph delta query.

    The value is an absolute URL owned by Graph and is only ever followed,
    never parsed.
    """

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass
class DeltaPage:
    """Items changed since a delta link, plus the link for the next call."""

    items: list[DriveItem]
    delta_link: DeltaLink | None


def request_access_token(
    http: httpx.Client,
    tenant_id: str,
    client_id: str,
    client_secret: str,
) -> tuple[str, int]:
    """Exchange client credentials for a Graph bearer token.

    Returns (access_token, expires_in_seconds).
    """
    response = http.post(
        AUTH_URL.format(tenant_id=tenant_id),
        data={
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
            "scope": GRAPH_SCOPE,
        },
    )
    if response.is_error:
        logger.error("Token error: %s", response.text)
        raise GraphError(
            f"Failed to get access token: {response.status_code}",
            http_status=response.status_code,
            body=response.text,
        )
    result = response.json()
    return result["access_token"], int(result.get("expires_in", 3600))


class SharePointClient:
    """Client for Microsoft Graph API SharePoint operations."""

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        http: httpx.Client | None = None,
        timeout: float = 30,
        path_retry_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize SharePoint client."""
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.http = http or httpx.Client(timeout=timeout)
        self.path_retry_delay = path_retry_delay
        self.sleep = sleep

        self._access_token: str | None = None
        self._token_expires_at: datetime | None = None

    @classmethod
    def from_app_config(cls, config: Mapping[str, Any]) -> SharePointClient:
        """Build a client from Flask app configuration."""
        tenant_id = config.get("SHAREPOINT_TENANT_ID", "")
        client_id = config.get("SHAREPOINT_CLIENT_ID", "")
        client_secret = config.get("SHAREPOINT_CLIENT_SECRET", "")
        if not tenant_id or not client_id or not client_secret:
            raise ConfigurationError(
                "SharePoint credentials not configured. Please set SHAREPOINT_TENANT_ID, "
                "SHAREPOINT_CLIENT_ID and SHAREPOINT_CLIENT_SECRET."
            )
        return cls(
            tenant_id=tenant_id,
            client_id=client_id,
            client_secret=client_secret,
            timeout=config.get("SYNC_REQUEST_TIMEOUT", 30),
            path_retry_delay=config.get("SYNC_PATH_RETRY_DELAY", 1.0),
        )

    def close(self) -> None:
        self.http.close()

    def __enter__(self) -> SharePointClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _get_access_token(self) -> str:
        """Get or refresh access token using client credentials flow."""
        # Check if we have a valid token
        if (
            self._access_token
            and self._token_expires_at
            and datetime.now(UTC) < self._token_expires_at - timedelta(minutes=5)
        ):
            return self._access_token

        token, expires_in = request_access_token(
            self.http, self.tenant_id, self.client_id, self.client_secret
        )
        self._access_token = token
        self._token_expires_at = datetime.now(UTC) + timedelta(seconds=expires_in)
        return token

    def _request(
        self,
        method: str,
        url: str,
        error_prefix: str,
        **kwargs,
    ) -> httpx.Response:
        """Make an authenticated request to Graph API.

        Error responses raise GraphError with the status and body text.
        """
        token = self._get_access_token()
        headers = kwargs.pop("headers", {})
        headers["Authorization"] = f"Bearer {token}"

        response = self.http.request(method, url, headers=headers, **kwargs)
        if response.is_error:
            raise GraphError(
                f"{error_prefix}: {response.status_code} - {response.text}",
                http_status=response.status_code,
                body=response.text,
            )
        return response

    def _paginate(self, url: str, error_prefix: str) -> Iterator[dict]:
        """Yield raw items across pages, following @odata.nextLink."""
        next_url: str | None = url
        while next_url:
            data = self._request("GET", next_url, error_prefix).json()
            yield from data.get("value", [])
            next_url = data.get("@odata.nextLink")

    def get_site_info(self, site_id: str) -> Site:
        """Get display information for a site, validating that it exists."""
        url = f"{GRAPH_BASE_URL}/sites/{site_id}"
        data = self._request("GET", url, "Failed to get site info").json()
        return Site(
            id=data.get("id", site_id),
            name=data.get("displayName") or data.get("name", ""),
            web_url=data.get("webUrl"),
        )

    def get_default_drive_id(self, site_id: str) -> str:
        """Get the default document library drive ID for a site."""
        url = f"{GRAPH_BASE_URL}/sites/{site_id}/drive"
        return self._request("GET", url, "Failed to get drive").json()["id"]

    def get_drives(self, site_id: str) -> list[Drive]:
        """Get all document libraries (drives) for the site."""
        url = f"{GRAPH_BASE_URL}/sites/{site_id}/drives"
        return [
            Drive(
                id=item["id"],
                name=item["name"],
                web_url=item.get("webUrl"),
                drive_type=item.get("driveType"),
            )
            for item in self._paginate(url, "Drives query failed")
        ]

    def resolve_folder_path(self, drive_id: str, folder_path: str) -> FolderRef:
        """
        Resolve a folder path to its item ID.

        Tries direct path addressing, retries once on 404 after a short
        delay, then walks the path segment by segment through folder listings.
        """
        url = f"{GRAPH_BASE_URL}/drives/{drive_id}/root:{encode_path(folder_path)}"
        logger.info("Resolving folder path: %s", url)
        error_prefix = f'Folder not found at path "{folder_path}"'

        try:
            data = self._request("GET", url, error_prefix).json()
            return FolderRef(id=data["id"], name=data["name"])
        except GraphError as e:
            if e.http_status != 404:
                logger.error("Resolve folder error (non-404): %s", e.body)
                raise
            first_error = e

        logger.warning(
            "Path resolution returned 404, retrying once after %ss", self.path_retry_delay
        )
        self.sleep(self.path_retry_delay)

        try:
            data = self._request("GET", url, error_prefix).json()
            logger.info("Resolved folder (retry): id=%s, name=%s", data["id"], data["name"])
            return FolderRef(id=data["id"], name=data["name"])
        except GraphError as e:
            if e.http_status != 404:
                raise
            logger.warning(
                "Retry also returned %s, falling back to children listing", e.http_status
            )

        segments = split_segments(folder_path)
        if not segments:
            raise first_error

        current = FolderRef(id=ROOT_FOLDER_ID, name="root")
        for segment in segments:
            children = self.list_children(drive_id, current.id)
            match = next(
                (
                    child
                    for child in children
                    if child.is_folder and child.name.lower() == segment.lower()
                ),
                None,
            )
            if match is None:
                available = ", ".join(child.name for child in children if child.is_folder)
                raise FolderNotFoundError(
                    f'Folder "{segment}" not found among children of "{current.name}". '
                    f"Available folders: [{available}]",
                    http_status=404,
                )
            current = FolderRef(id=match.id, name=match.name)
            logger.debug("Fallback resolved segment %r -> id=%s", segment, current.id)

        logger.info("Resolved folder (fallback): id=%s, name=%s", current.id, current.name)
        return current

    def list_children(self, drive_id: str, folder_id: str) -> list[DriveItem]:
        """Fetch all immediate children of a folder, following pagination."""
        if folder_id == ROOT_FOLDER_ID:
            url = f"{GRAPH_BASE_URL}/drives/{drive_id}/root/children"
        else:
            url = f"{GRAPH_BASE_URL}/drives/{drive_id}/items/{folder_id}/children"

        items = [
            DriveItem.from_graph(item) for item in self._paginate(url, "Children query failed")
        ]
        logger.debug("Found %d children in %s", len(items), folder_id)
        return items

    def collect_recursive(self, drive_id: str, folder_path: str) -> list[DriveItem]:
        """
        Collect every file and folder below folder_path.

        Walks depth-first with an explicit stack: a folder's children are
        emitted, then each child folder's subtree in listing order.
        """
        folder_path = normalize_folder_path(folder_path)
        logger.info("Starting recursive listing for path: %s", folder_path)

        if folder_path == ROOT:
            start_id = ROOT_FOLDER_ID
        else:
            start_id = self.resolve_folder_path(drive_id, folder_path).id

        items: list[DriveItem] = []
        stack = [start_id]
        while stack:
            children = self.list_children(drive_id, stack.pop())
            items.extend(children)
            subfolders = [child.id for child in children if child.is_folder]
            stack.extend(reversed(subfolders))

        logger.info("Total items found recursively: %d", len(items))
        return items

    def get_delta(self, delta_link: DeltaLink) -> DeltaPage:
        """
        Get items changed since delta_link was issued.
        Returns the changed items and the new delta link.
        """
        url: str | None = delta_link.value
        items: list[DriveItem] = []
        new_link: DeltaLink | None = None
        while url:
            data = self._request("GET", url, "Delta query failed").json()
            items.extend(DriveItem.from_graph(item) for item in data.get("value", []))

            # Check for next page or delta link
            url = data.get("@odata.nextLink")
            if not url and data.get("@odata.deltaLink"):
                new_link = DeltaLink(data["@odata.deltaLink"])

        logger.info("Received %d items from delta query", len(items))
        return DeltaPage(items=items, delta_link=new_link)

    def get_latest_delta_link(self, drive_id: str) -> DeltaLink | None:
        """Get a delta link for the drive's current state without listing items."""
        url = f"{GRAPH_BASE_URL}/drives/{drive_id}/root/delta?token=latest"
        data = self._request("GET", url, "Failed to get delta token").json()
        link = data.get("@odata.deltaLink")
        return DeltaLink(link) if link else None

    def browse_folder(self, drive_id: str, folder_path: str) -> list[DriveItem]:
        """List the immediate children of a folder addressed by path."""
        folder_path = normalize_folder_path(folder_path)
        if folder_path == ROOT:
            url = f"{GRAPH_BASE_URL}/drives/{drive_id}/root/children"
        else:
            url = f"{GRAPH_BASE_URL}/drives/{drive_id}/root:{encode_path(folder_path)}:/children"
        return [DriveItem.from_graph(item) for item in self._paginate(url, "Browse failed")]

    def upload_file(self, drive_id: str, file_path: str, content: bytes) -> DriveItem:
        """Upload a small file with a single PUT (Graph limits this to 4 MB)."""
        url = f"{GRAPH_BASE_URL}/drives/{drive_id}/root:{encode_path(file_path)}:/content"
        logger.info("Uploading file to: %s", url)
        response = self._request(
            "PUT",
            url,
            "Upload failed",
            headers={"Content-Type": "application/octet-stream"},
            content=content,
        )
        return DriveItem.from_graph(response.json())

    def test_connection(self, site_id: str) -> dict:
        """Test the connection and return site info."""
        site = self.get_site_info(site_id)
        drives = self.get_drives(site_id)

        return {
            "site_id": site.id,
            "site_name": site.name,
            "site_url": site.web_url,
            "drives": [{"id": d.id, "name": d.name} for d in drives],
        }
