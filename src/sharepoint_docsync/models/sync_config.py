"""Per-organization SharePoint sync configuration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sharepoint_docsync.db import get_db, transaction

_COLUMNS = """
    id, organization_id, site_id, site_name, site_url, drive_id,
    root_folder_path, sync_enabled, sync_interval_minutes, last_delta_link,
    last_sync_at, last_sync_status, last_sync_error, created_at, updated_at
"""


@dataclass
class SyncConfig:
    """SharePoint site/drive scope and sync state for one organization."""

    id: int
    organization_id: str
    site_id: str
    site_name: str | None
    site_url: str | None
    drive_id: str | None
    root_folder_path: str
    sync_enabled: bool
    sync_interval_minutes: int
    last_delta_link: str | None
    last_sync_at: str | None
    last_sync_status: str | None
    last_sync_error: str | None
    created_at: str
    updated_at: str

    @classmethod
    def from_row(cls, row: tuple) -> SyncConfig:
        """Create a SyncConfig from a database row."""
        return cls(
            id=row[0],
            organization_id=row[1],
            site_id=row[2],
            site_name=row[3],
            site_url=row[4],
            drive_id=row[5],
            root_folder_path=row[6] or "/",
            sync_enabled=bool(row[7]),
            sync_interval_minutes=row[8],
            last_delta_link=row[9],
            last_sync_at=row[10],
            last_sync_status=row[11],
            last_sync_error=row[12],
            created_at=row[13],
            updated_at=row[14],
        )

    @classmethod
    def get_by_id(cls, config_id: int) -> SyncConfig | None:
        """Get a configuration by ID."""
        cursor = get_db().cursor()
        cursor.execute(f"SELECT {_COLUMNS} FROM sharepoint_config WHERE id = ?", (config_id,))
        row = cursor.fetchone()
        return cls.from_row(row) if row else None

    @classmethod
    def get_by_organization(cls, organization_id: str) -> SyncConfig | None:
        """Get the configuration for an organization."""
        cursor = get_db().cursor()
        cursor.execute(
            f"SELECT {_COLUMNS} FROM sharepoint_config WHERE organization_id = ?",
            (organization_id,),
        )
        row = cursor.fetchone()
        return cls.from_row(row) if row else None

    @classmethod
    def get_all(cls, enabled_only: bool = False) -> list[SyncConfig]:
        """Get all configurations."""
        query = f"SELECT {_COLUMNS} FROM sharepoint_config"
        if enabled_only:
            query += " WHERE sync_enabled = 1"
        query += " ORDER BY organization_id"
        cursor = get_db().cursor()
        cursor.execute(query)
        return [cls.from_row(row) for row in cursor.fetchall()]

    @classmethod
    def create(
        cls,
        organization_id: str,
        site_id: str,
        site_name: str | None = None,
        site_url: str | None = None,
        drive_id: str | None = None,
        root_folder_path: str = "/",
        sync_enabled: bool = True,
        sync_interval_minutes: int = 5,
    ) -> SyncConfig:
        """Create a new configuration."""
        now = datetime.now(UTC).isoformat()

        with transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO sharepoint_config (
                    organization_id, site_id, site_name, site_url, drive_id,
                    root_folder_path, sync_enabled, sync_interval_minutes,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    organization_id,
                    site_id,
                    site_name,
                    site_url,
                    drive_id,
                    root_folder_path,
                    1 if sync_enabled else 0,
                    sync_interval_minutes,
                    now,
                    now,
                ),
            )
            row = cursor.execute("SELECT last_insert_rowid()").fetchone()
            assert row is not None
            config_id = row[0]

        result = cls.get_by_id(config_id)
        assert result is not None
        return result

    def update(
        self,
        site_id: str | None = None,
        site_name: str | None = None,
        site_url: str | None = None,
        drive_id: str | None = None,
        root_folder_path: str | None = None,
        sync_enabled: bool | None = None,
        sync_interval_minutes: int | None = None,
        clear_delta_link: bool = False,
    ) -> SyncConfig:
        """Update configuration fields."""
        updates = []
        params: list = []

        if site_id is not None:
            updates.append("site_id = ?")
            params.append(site_id)
        if site_name is not None:
            updates.append("site_name = ?")
            params.append(site_name)
        if site_url is not None:
            updates.append("site_url = ?")
            params.append(site_url)
        if drive_id is not None:
            updates.append("drive_id = ?")
            params.append(drive_id)
        if root_folder_path is not None:
            updates.append("root_folder_path = ?")
            params.append(root_folder_path)
        if sync_enabled is not None:
            updates.append("sync_enabled = ?")
            params.append(1 if sync_enabled else 0)
        if sync_interval_minutes is not None:
            updates.append("sync_interval_minutes = ?")
            params.append(sync_interval_minutes)
        if clear_delta_link:
            updates.append("last_delta_link = NULL")

        updates.append("updated_at = ?")
        params.append(datetime.now(UTC).isoformat())
        params.append(self.id)

        with transaction() as cursor:
            cursor.execute(
                f"UPDATE sharepoint_config SET {', '.join(updates)} WHERE id = ?",
                params,
            )

        return self.get_by_id(self.id)  # type: ignore

    def record_success(self, delta_link: str | None) -> SyncConfig:
        """Store the new delta link after a completed run."""
        now = datetime.now(UTC).isoformat()
        with transaction() as cursor:
            cursor.execute(
                """
                UPDATE sharepoint_config SET
                    last_delta_link = ?,
                    last_sync_at = ?,
                    last_sync_status = 'success',
                    last_sync_error = NULL,
                    updated_at = ?
                WHERE id = ?
                """,
                (delta_link, now, now, self.id),
            )
        return self.get_by_id(self.id)  # type: ignore

    def record_error(self, error_message: str) -> SyncConfig:
        """Record a failed run; the stored delta link is left untouched."""
        now = datetime.now(UTC).isoformat()
        with transaction() as cursor:
            cursor.execute(
                """
                UPDATE sharepoint_config SET
                    last_sync_at = ?,
                    last_sync_status = 'error',
                    last_sync_error = ?,
                    updated_at = ?
                WHERE id = ?
                """,
                (now, error_message, now, self.id),
            )
        return self.get_by_id(self.id)  # type: ignore

    def delete(self) -> None:
        """Delete the configuration with its documents and sync logs."""
        with transaction() as cursor:
            cursor.execute("DELETE FROM sharepoint_document WHERE config_id = ?", (self.id,))
            cursor.execute("DELETE FROM sharepoint_sync_log WHERE config_id = ?", (self.id,))
            cursor.execute("DELETE FROM sharepoint_config WHERE id = ?", (self.id,))

    @classmethod
    def clear_all_delta_links(cls) -> None:
        """Clear every stored delta link (forces full sync everywhere)."""
        with transaction() as cursor:
            cursor.execute("UPDATE sharepoint_config SET last_delta_link = NULL")

    def is_due(self, now: datetime | None = None) -> bool:
        """Check whether the sync interval has elapsed since the last run."""
        if not self.sync_enabled:
            return False
        if not self.last_sync_at:
            return True
        now = now or datetime.now(UTC)
        last = datetime.fromisoformat(self.last_sync_at)
        if last.tzinfo is None:
            last = last.replace(tzinfo=UTC)
        return now >= last + timedelta(minutes=self.sync_interval_minutes)
