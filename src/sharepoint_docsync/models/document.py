"""Document model for SharePoint files and folders."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from sharepoint_docsync.db import get_db, transaction

_COLUMNS = """
    id, organization_id, config_id, sharepoint_item_id, sharepoint_drive_id,
    name, file_extension, mime_type, size_bytes, web_url, download_url,
    folder_path, is_folder, sharepoint_modified_at, sharepoint_modified_by,
    etag, is_deleted, deleted_at, synced_at, created_at, updated_at
"""

# Columns written from Graph metadata on insert and update
_FIELDS = (
    "sharepoint_drive_id",
    "name",
    "file_extension",
    "mime_type",
    "size_bytes",
    "web_url",
    "download_url",
    "folder_path",
    "is_folder",
    "sharepoint_modified_at",
    "sharepoint_modified_by",
    "etag",
)


@dataclass
class Document:
    """Represents the mirrored metadata of a SharePoint drive item."""

    id: int
    organization_id: str
    config_id: int
    sharepoint_item_id: str
    sharepoint_drive_id: str
    name: str
    file_extension: str | None
    mime_type: str | None
    size_bytes: int | None
    web_url: str | None
    download_url: str | None
    folder_path: str
    is_folder: bool
    sharepoint_modified_at: str | None
    sharepoint_modified_by: str | None
    etag: str | None
    is_deleted: bool
    deleted_at: str | None
    synced_at: str
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: tuple) -> Document:
        """Create a Document from a database row."""
        return cls(
            id=row[0],
            organization_id=row[1],
            config_id=row[2],
            sharepoint_item_id=row[3],
            sharepoint_drive_id=row[4],
            name=row[5],
            file_extension=row[6],
            mime_type=row[7],
            size_bytes=row[8],
            web_url=row[9],
            download_url=row[10],
            folder_path=row[11],
            is_folder=bool(row[12]),
            sharepoint_modified_at=row[13],
            sharepoint_modified_by=row[14],
            etag=row[15],
            is_deleted=bool(row[16]),
            deleted_at=row[17],
            synced_at=row[18],
            created_at=row[19],
            updated_at=row[20],
        )

    def to_dict(self) -> dict:
        """Serialize for JSON responses."""
        return {
            "id": self.id,
            "organization_id": self.organization_id,
            "config_id": self.config_id,
            "sharepoint_item_id": self.sharepoint_item_id,
            "name": self.name,
            "file_extension": self.file_extension,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "web_url": self.web_url,
            "folder_path": self.folder_path,
            "is_folder": self.is_folder,
            "sharepoint_modified_at": self.sharepoint_modified_at,
            "sharepoint_modified_by": self.sharepoint_modified_by,
            "synced_at": self.synced_at,
            "is_deleted": self.is_deleted,
        }

    @classmethod
    def get_by_id(cls, doc_id: int) -> Document | None:
        """Get a document by ID."""
        cursor = get_db().cursor()
        cursor.execute(f"SELECT {_COLUMNS} FROM sharepoint_document WHERE id = ?", (doc_id,))
        row = cursor.fetchone()
        return cls.from_row(row) if row else None

    @classmethod
    def get_by_item_id(cls, config_id: int, sharepoint_item_id: str) -> Document | None:
        """Get a document by configuration and SharePoint item ID."""
        cursor = get_db().cursor()
        cursor.execute(
            f"""
            SELECT {_COLUMNS} FROM sharepoint_document
            WHERE config_id = ? AND sharepoint_item_id = ?
            """,
            (config_id, sharepoint_item_id),
        )
        row = cursor.fetchone()
        return cls.from_row(row) if row else None

    @classmethod
    def create(
        cls,
        organization_id: str,
        config_id: int,
        sharepoint_item_id: str,
        fields: dict,
    ) -> Document:
        """Create a new document from item metadata."""
        now = datetime.now(UTC).isoformat()
        values = [fields.get(name) for name in _FIELDS]

        with transaction() as cursor:
            cursor.execute(
                f"""
                INSERT INTO sharepoint_document (
                    organization_id, config_id, sharepoint_item_id, {", ".join(_FIELDS)},
                    is_deleted, deleted_at, synced_at, created_at, updated_at
                ) VALUES (?, ?, ?, {", ".join("?" for _ in _FIELDS)}, 0, NULL, ?, ?, ?)
                """,
                (organization_id, config_id, sharepoint_item_id, *values, now, now, now),
            )
            row = cursor.execute("SELECT last_insert_rowid()").fetchone()
            assert row is not None
            doc_id = row[0]

        result = cls.get_by_id(doc_id)
        assert result is not None
        return result

    def update(self, fields: dict) -> Document:
        """Overwrite item metadata and clear any deletion flag."""
        now = datetime.now(UTC).isoformat()
        assignments = ", ".join(f"{name} = ?" for name in _FIELDS)
        values = [fields.get(name) for name in _FIELDS]

        with transaction() as cursor:
            cursor.execute(
                f"""
                UPDATE sharepoint_document SET {assignments},
                    is_deleted = 0, deleted_at = NULL, synced_at = ?, updated_at = ?
                WHERE id = ?
                """,
                (*values, now, now, self.id),
            )

        return self.get_by_id(self.id)  # type: ignore

    @classmethod
    def mark_deleted(cls, config_id: int, sharepoint_item_id: str) -> bool:
        """
        Soft-delete the active document for an item.

        Returns True if a row was flagged. The row itself is kept.
        """
        now = datetime.now(UTC).isoformat()
        with transaction() as cursor:
            cursor.execute(
                """
                UPDATE sharepoint_document SET
                    is_deleted = 1, deleted_at = ?, synced_at = ?, updated_at = ?
                WHERE config_id = ? AND sharepoint_item_id = ? AND is_deleted = 0
                """,
                (now, now, now, config_id, sharepoint_item_id),
            )
            changed = cursor.connection.changes()
        return changed > 0

    @classmethod
    def delete_by_config(cls, config_id: int) -> None:
        """Physically remove every document of a configuration."""
        with transaction() as cursor:
            cursor.execute("DELETE FROM sharepoint_document WHERE config_id = ?", (config_id,))

    @classmethod
    def list_folder(cls, organization_id: str, folder_path: str) -> list[Document]:
        """List active items of one folder, folders first, then by name."""
        cursor = get_db().cursor()
        cursor.execute(
            f"""
            SELECT {_COLUMNS} FROM sharepoint_document
            WHERE organization_id = ? AND folder_path = ? AND is_deleted = 0
            ORDER BY is_folder DESC, name COLLATE NOCASE
            """,
            (organization_id, folder_path),
        )
        return [cls.from_row(row) for row in cursor.fetchall()]

    @classmethod
    def get_all(
        cls,
        config_id: int,
        include_deleted: bool = False,
        search: str | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Document]:
        """Get documents of a configuration with optional name filtering."""
        query = f"SELECT {_COLUMNS} FROM sharepoint_document WHERE config_id = ?"
        params: list = [config_id]
        if not include_deleted:
            query += " AND is_deleted = 0"
        if search:
            query += " AND (name LIKE ? OR folder_path LIKE ?)"
            params.extend([f"%{search}%", f"%{search}%"])
        query += " ORDER BY folder_path, name"

        if limit:
            query += " LIMIT ? OFFSET ?"
            params.extend([limit, offset])

        cursor = get_db().cursor()
        cursor.execute(query, params)
        return [cls.from_row(row) for row in cursor.fetchall()]

    @classmethod
    def count_all(cls, config_id: int, include_deleted: bool = False) -> int:
        """Count documents of a configuration."""
        query = "SELECT COUNT(*) FROM sharepoint_document WHERE config_id = ?"
        if not include_deleted:
            query += " AND is_deleted = 0"
        cursor = get_db().cursor()
        cursor.execute(query, (config_id,))
        row = cursor.fetchone()
        assert row is not None
        return int(row[0])

    @classmethod
    def total_size(cls, config_id: int) -> int:
        """Get total size of the active documents of a configuration."""
        cursor = get_db().cursor()
        cursor.execute(
            """
            SELECT COALESCE(SUM(size_bytes), 0) FROM sharepoint_document
            WHERE config_id = ? AND is_deleted = 0 AND is_folder = 0
            """,
            (config_id,),
        )
        row = cursor.fetchone()
        assert row is not None
        return int(row[0])
