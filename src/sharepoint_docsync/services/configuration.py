"""Configuration management for per-organization SharePoint integration."""

import logging
from collections.abc import Mapping
from typing import Any

from flask import current_app

from sharepoint_docsync.errors import InvalidRequestError, NotConfiguredError
from sharepoint_docsync.models import Document, SyncConfig
from sharepoint_docsync.paths import normalize_folder_path
from sharepoint_docsync.services.sharepoint import SharePointClient

logger = logging.getLogger(__name__)


class ConfigurationService:
    """Creates, updates and removes SharePoint configurations."""

    def __init__(self, sharepoint_client: SharePointClient | None = None):
        self._sharepoint = sharepoint_client

    @property
    def sharepoint(self) -> SharePointClient:
        """Graph client, built from app config on first use."""
        if self._sharepoint is None:
            self._sharepoint = SharePointClient.from_app_config(current_app.config)
        return self._sharepoint

    def save_config(self, organization_id: str, payload: Mapping[str, Any]) -> dict:
        """
        Create or update the configuration of an organization.

        The site is validated against Graph first. Changing the root folder
        discards every mirrored document and the stored delta link so the
        next run is a full sync of the new scope.
        """
        site_id = payload.get("site_id")
        if not site_id:
            raise InvalidRequestError("site_id is required")

        interval = payload.get("sync_interval_minutes")
        if interval is None:
            interval = current_app.config.get("SYNC_DEFAULT_INTERVAL_MINUTES", 5)
        try:
            interval = int(interval)
        except (TypeError, ValueError) as e:
            raise InvalidRequestError("sync_interval_minutes must be an integer") from e
        if interval < 1:
            raise InvalidRequestError("sync_interval_minutes must be at least 1")

        site = self.sharepoint.get_site_info(site_id)

        # Use explicit drive_id from the admin selector if provided, otherwise auto-detect
        drive_id = payload.get("drive_id")
        if drive_id:
            logger.info("Using explicit drive_id: %s", drive_id)
        else:
            drive_id = self.sharepoint.get_default_drive_id(site_id)
            logger.info("Auto-detected drive_id: %s", drive_id)

        root_folder_path = normalize_folder_path(payload.get("root_folder_path"))
        sync_enabled = payload.get("sync_enabled")
        sync_enabled = True if sync_enabled is None else bool(sync_enabled)

        existing = SyncConfig.get_by_organization(organization_id)
        if existing:
            root_changed = normalize_folder_path(existing.root_folder_path) != root_folder_path
            if root_changed:
                logger.info(
                    "root_folder_path changed from %r to %r, clearing delta link and documents",
                    existing.root_folder_path,
                    root_folder_path,
                )
                Document.delete_by_config(existing.id)

            existing.update(
                site_id=site_id,
                site_name=site.name,
                site_url=site.web_url,
                drive_id=drive_id,
                root_folder_path=root_folder_path,
                sync_enabled=sync_enabled,
                sync_interval_minutes=interval,
                clear_delta_link=root_changed,
            )
        else:
            SyncConfig.create(
                organization_id=organization_id,
                site_id=site_id,
                site_name=site.name,
                site_url=site.web_url,
                drive_id=drive_id,
                root_folder_path=root_folder_path,
                sync_enabled=sync_enabled,
                sync_interval_minutes=interval,
            )

        return {"site_name": site.name, "site_url": site.web_url}

    def delete_config(self, organization_id: str) -> bool:
        """Delete the configuration with its documents and logs.

        Returns False when there was nothing to delete.
        """
        config = SyncConfig.get_by_organization(organization_id)
        if config is None:
            return False
        config.delete()
        logger.info("Deleted SharePoint configuration of %s", organization_id)
        return True

    def list_drives(self, organization_id: str) -> dict:
        """List the document libraries of the configured site."""
        config = SyncConfig.get_by_organization(organization_id)
        if config is None:
            raise NotConfiguredError("No SharePoint config found")

        drives = self.sharepoint.get_drives(config.site_id)
        return {
            "drives": [
                {"id": d.id, "name": d.name, "webUrl": d.web_url, "driveType": d.drive_type}
                for d in drives
            ],
            "current_drive_id": config.drive_id,
        }
