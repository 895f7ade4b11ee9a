"""Map fetched drive items onto stored document records."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

import apsw

from sharepoint_docsync.models import Document, SyncConfig
from sharepoint_docsync.paths import extract_folder_path, get_file_extension, relative_folder_path
from sharepoint_docsync.services.sharepoint import DriveItem

logger = logging.getLogger(__name__)


@dataclass
class ReconcileStats:
    """Counts of document changes applied in one pass."""

    added: int = 0
    updated: int = 0
    deleted: int = 0


class DocumentReconciler:
    """Upserts and soft-deletes Documents for one configuration."""

    def __init__(self, config: SyncConfig, drive_id: str):
        self.config = config
        self.drive_id = drive_id

    def apply(self, items: Iterable[DriveItem]) -> ReconcileStats:
        """Apply every item, one write per item."""
        stats = ReconcileStats()
        for item in items:
            if item.is_deleted:
                if self.mark_deleted(item):
                    stats.deleted += 1
                continue

            if self.upsert(item):
                stats.added += 1
            else:
                stats.updated += 1
        return stats

    def mark_deleted(self, item: DriveItem) -> bool:
        """Soft-delete the record of a removed item.

        Every deletion marker counts, known or not. Storage errors are logged
        and reported as "not deleted" rather than aborting the run.
        """
        try:
            Document.mark_deleted(self.config.id, item.id)
        except apsw.Error as e:
            logger.warning("Failed to mark item %s as deleted: %s", item.id, e)
            return False
        return True

    def folder_path_for(self, item: DriveItem) -> str:
        """Folder path of an item relative to the configured root."""
        folder_path = extract_folder_path(item.parent_path)
        return relative_folder_path(folder_path, self.config.root_folder_path)

    def upsert(self, item: DriveItem, folder_path: str | None = None) -> bool:
        """Insert or update the record for an item. Returns True if inserted."""
        fields = {
            "sharepoint_drive_id": self.drive_id,
            "name": item.name,
            "file_extension": None if item.is_folder else get_file_extension(item.name),
            "mime_type": item.mime_type,
            "size_bytes": item.size,
            "web_url": item.web_url,
            "download_url": item.download_url,
            "folder_path": folder_path or self.folder_path_for(item),
            "is_folder": 1 if item.is_folder else 0,
            "sharepoint_modified_at": item.modified_at,
            "sharepoint_modified_by": item.modified_by,
            "etag": item.etag,
        }

        existing = Document.get_by_item_id(self.config.id, item.id)
        if existing:
            existing.update(fields)
            return False

        Document.create(
            organization_id=self.config.organization_id,
            config_id=self.config.id,
            sharepoint_item_id=item.id,
            fields=fields,
        )
        return True
