"""Sync service for orchestrating SharePoint synchronization."""

import logging
from dataclasses import dataclass

from flask import current_app

from sharepoint_docsync.errors import InvalidRequestError, NotConfiguredError, SyncInProgressError
from sharepoint_docsync.models import Document, SyncConfig, SyncLog
from sharepoint_docsync.paths import ROOT, in_root_scope, join_folder_path, normalize_folder_path
from sharepoint_docsync.services.reconcile import DocumentReconciler
from sharepoint_docsync.services.sharepoint import (
    DeltaLink,
    DriveItem,
    SharePointClient,
    Site,
)

logger = logging.getLogger(__name__)


@dataclass
class SyncOutcome:
    """Result of a completed sync run."""

    log: SyncLog
    site_name: str
    site_url: str | None

    def to_dict(self) -> dict:
        return {
            "items_found": self.log.items_found,
            "items_added": self.log.items_added,
            "items_updated": self.log.items_updated,
            "items_deleted": self.log.items_deleted,
            "site_name": self.site_name,
            "site_url": self.site_url,
        }


def detect_mime_type(content: bytes) -> str:
    """Sniff a MIME type from file content with libmagic."""
    import magic

    return magic.from_buffer(content, mime=True)


class SyncService:
    """Orchestrates SharePoint document synchronization."""

    def __init__(self, sharepoint_client: SharePointClient | None = None):
        """Initialize sync service."""
        self._sharepoint = sharepoint_client

    @property
    def sharepoint(self) -> SharePointClient:
        """Graph client, built from app config on first use."""
        if self._sharepoint is None:
            self._sharepoint = SharePointClient.from_app_config(current_app.config)
        return self._sharepoint

    def _get_config(self, organization_id: str, enabled_only: bool = False) -> SyncConfig:
        config = SyncConfig.get_by_organization(organization_id)
        if config is None or (enabled_only and not config.sync_enabled):
            raise NotConfiguredError(
                "No SharePoint configuration found. "
                "Please configure SharePoint integration first."
            )
        return config

    def _ensure_drive(self, config: SyncConfig, site: Site | None = None) -> tuple[SyncConfig, str]:
        """Return the configured drive, detecting and storing the default one if unset."""
        if config.drive_id:
            return config, config.drive_id

        logger.info("Getting document library drive ID for site %s", config.site_id)
        drive_id = self.sharepoint.get_default_drive_id(config.site_id)
        config = config.update(
            drive_id=drive_id,
            site_name=site.name if site else None,
            site_url=site.web_url if site else None,
        )
        return config, drive_id

    def run_sync(self, organization_id: str, full_sync: bool = False) -> SyncOutcome:
        """
        Run a sync operation for an organization.

        Args:
            organization_id: Organization whose configuration is synced
            full_sync: If True, ignore the stored delta link and list everything
        """
        # Fail on missing credentials before touching any state
        sharepoint = self.sharepoint

        config = self._get_config(organization_id, enabled_only=True)
        if SyncLog.is_sync_in_progress(config.id):
            raise SyncInProgressError("A sync is already in progress")

        # No stored link (or a forced run) means a full listing
        delta_link = None if full_sync else config.last_delta_link or None

        # Create sync log record
        sync_log = SyncLog.create(
            organization_id=config.organization_id,
            config_id=config.id,
            is_full_sync=delta_link is None,
            delta_link_used=delta_link,
        )

        try:
            logger.info("Validating SharePoint site %s", config.site_id)
            site = sharepoint.get_site_info(config.site_id)
            config, drive_id = self._ensure_drive(config, site)

            root_path = normalize_folder_path(config.root_folder_path)
            if delta_link is None:
                logger.info("Full sync: listing contents recursively from %s", root_path)
                items = sharepoint.collect_recursive(drive_id, root_path)
                # Recursive listing yields no delta link, so fetch a fresh one
                new_link = sharepoint.get_latest_delta_link(drive_id)
                Document.delete_by_config(config.id)
                to_process = items
            else:
                logger.info("Incremental sync: using delta query")
                page = sharepoint.get_delta(DeltaLink(delta_link))
                items = page.items
                new_link = page.delta_link
                to_process = items
                if root_path != ROOT:
                    to_process = [item for item in items if in_root_scope(item, root_path)]
                    logger.info(
                        "Filtered to %d items within root folder %s", len(to_process), root_path
                    )

            logger.info("Found %d items to process", len(to_process))
            stats = DocumentReconciler(config, drive_id).apply(to_process)

            new_link_value = new_link.value if new_link else None
            config.record_success(new_link_value)
            sync_log = sync_log.complete(
                items_found=len(items),
                items_added=stats.added,
                items_updated=stats.updated,
                items_deleted=stats.deleted,
                delta_link_new=new_link_value,
            )

            logger.info(
                "Sync completed: added=%d, updated=%d, deleted=%d",
                stats.added,
                stats.updated,
                stats.deleted,
            )
            return SyncOutcome(log=sync_log, site_name=site.name, site_url=site.web_url)

        except Exception as e:
            logger.error("Sync failed for organization %s: %s", organization_id, e)
            config.record_error(str(e))
            sync_log.fail(str(e))
            raise

    def browse_folders(
        self,
        organization_id: str,
        folder_path: str | None = None,
        drive_id: str | None = None,
    ) -> dict:
        """List one folder level of the drive for folder pickers."""
        config = self._get_config(organization_id)
        browse_path = normalize_folder_path(folder_path)
        browse_drive_id = drive_id or config.drive_id
        if not browse_drive_id:
            config, browse_drive_id = self._ensure_drive(config)

        items = self.sharepoint.browse_folder(browse_drive_id, browse_path)
        return {
            "path": browse_path,
            "items": [
                {
                    "name": item.name,
                    "isFolder": item.is_folder,
                    "childCount": item.child_count,
                    "size": item.size,
                    "webUrl": item.web_url,
                }
                for item in items
            ],
        }

    def upload_file(
        self,
        organization_id: str,
        file_name: str,
        content: bytes,
        folder_path: str | None = None,
    ) -> DriveItem:
        """
        Upload a small file into the configured root and record it immediately.

        folder_path is relative to the configured root folder.
        """
        if not file_name or "/" in file_name:
            raise InvalidRequestError("file_name must be a plain file name")

        config = self._get_config(organization_id)
        config, drive_id = self._ensure_drive(config)

        current_folder = normalize_folder_path(folder_path)
        root_path = normalize_folder_path(config.root_folder_path)
        if current_folder == ROOT:
            target_folder = root_path
        else:
            target_folder = root_path.rstrip("/") + current_folder
        full_path = join_folder_path(normalize_folder_path(target_folder), file_name)

        uploaded = self.sharepoint.upload_file(drive_id, full_path, content)
        logger.info("File uploaded: id=%s, name=%s", uploaded.id, uploaded.name)

        if not uploaded.mime_type:
            uploaded.mime_type = detect_mime_type(content)

        DocumentReconciler(config, drive_id).upsert(uploaded, folder_path=current_folder)
        return uploaded

    def get_status(self, organization_id: str) -> dict:
        """Get current sync status of an organization."""
        config = self._get_config(organization_id)
        running = SyncLog.get_running(config.id)

        return {
            "is_running": running is not None,
            "current_run": running,
            "last_completed_run": SyncLog.get_latest(config.id, finished_only=True),
            "config": config,
            "total_documents": Document.count_all(config.id),
            "total_size": Document.total_size(config.id),
        }
