"""Exception types raised by SharePoint DocSync."""


class DocSyncError(Exception):
    """Base class for errors surfaced to API and CLI callers."""

    status_code = 500


class InvalidRequestError(DocSyncError):
    """A request is missing required fields or carries bad values."""

    status_code = 400


class NotConfiguredError(DocSyncError):
    """No SharePoint configuration exists for the organization."""

    status_code = 404


class SyncInProgressError(DocSyncError):
    """A sync run is already marked as running for the configuration."""

    status_code = 409


class ConfigurationError(DocSyncError):
    """Service credentials or settings are missing."""


class GraphError(DocSyncError):
    """Microsoft Graph or the identity endpoint returned an error response."""

    status_code = 502

    def __init__(self, message: str, http_status: int | None = None, body: str = ""):
        super().__init__(message)
        self.http_status = http_status
        self.body = body


class FolderNotFoundError(GraphError):
    """A folder path could not be resolved, even by walking its segments."""
