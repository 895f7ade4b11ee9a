"""Services for SharePoint DocSync."""

from sharepoint_docsync.services.configuration import ConfigurationService
from sharepoint_docsync.services.reconcile import DocumentReconciler
from sharepoint_docsync.services.sharepoint import SharePointClient
from sharepoint_docsync.services.sync import SyncService

__all__ = ["ConfigurationService", "DocumentReconciler", "SharePointClient", "SyncService"]
