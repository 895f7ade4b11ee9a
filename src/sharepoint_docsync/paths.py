"""Folder path helpers for Graph drive items.

Graph addresses items by path as ``/drives/{drive-id}/root:/Some/Folder``.
Documents store their folder relative to the configured root folder, so a
root of ``/Contracts`` turns ``/Contracts/2024`` into ``/2024``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote, unquote

if TYPE_CHECKING:
    from sharepoint_docsync.services.sharepoint import DriveItem

ROOT = "/"


def encode_path(path: str) -> str:
    """Percent-encode each segment of a slash-separated path."""
    return "/".join(quote(segment, safe="!~*'()") if segment else "" for segment in path.split("/"))


def normalize_folder_path(path: str | None) -> str:
    """Return path with a leading slash and no trailing slash ("/" for empty)."""
    path = (path or "").strip()
    if not path or path == ROOT:
        return ROOT
    path = path.rstrip("/")
    if not path.startswith("/"):
        path = "/" + path
    return path or ROOT


def split_segments(path: str) -> list[str]:
    """Split a folder path into its non-empty segments."""
    return [segment for segment in path.split("/") if segment]


def extract_folder_path(parent_path: str | None) -> str:
    """Extract the drive-relative folder from a parentReference.path value."""
    if not parent_path:
        return ROOT
    if "root:" in parent_path:
        # Remove the drive root prefix (e.g., "/drives/{drive-id}/root:")
        folder = unquote(parent_path.split("root:", 1)[1])
        return normalize_folder_path(folder)
    return ROOT


def _is_within(path: str, root_path: str) -> bool:
    """Boundary-aware, case-insensitive prefix check."""
    path_lower = path.lower()
    root_lower = root_path.lower()
    return path_lower == root_lower or path_lower.startswith(root_lower + "/")


def relative_folder_path(folder_path: str, root_path: str) -> str:
    """Make folder_path relative to root_path.

    Paths outside the root are returned unchanged.
    """
    root_path = normalize_folder_path(root_path)
    if root_path == ROOT:
        return folder_path
    if _is_within(folder_path, root_path):
        return folder_path[len(root_path) :] or ROOT
    return folder_path


def join_folder_path(parent: str, name: str) -> str:
    """Join a folder path and a child name."""
    if parent == ROOT:
        return ROOT + name
    return f"{parent}/{name}"


def in_root_scope(item: DriveItem, root_path: str) -> bool:
    """Check whether a delta item belongs under the configured root folder.

    Deletions always pass since they carry no path. The root folder item
    itself is kept so its metadata stays current.
    """
    if item.is_deleted:
        return True

    root_path = normalize_folder_path(root_path)
    if root_path == ROOT:
        return True

    parent = extract_folder_path(item.parent_path)
    if _is_within(parent, root_path):
        return True

    if item.is_folder:
        return join_folder_path(parent, item.name).lower() == root_path.lower()

    return False


def get_file_extension(filename: str) -> str | None:
    """Return the lower-cased extension of filename without the dot."""
    last_dot = filename.rfind(".")
    if last_dot <= 0:
        return None
    return filename[last_dot + 1 :].lower() or None
