"""Database models for SharePoint DocSync."""

from sharepoint_docsync.models.document import Document
from sharepoint_docsync.models.sync_config import SyncConfig
from sharepoint_docsync.models.sync_log import SyncLog

__all__ = ["Document", "SyncConfig", "SyncLog"]
