"""Sync log model for tracking sync runs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from sharepoint_docsync.db import get_db, transaction

_COLUMNS = """
    id, organization_id, config_id, status, is_full_sync, items_found,
    items_added, items_updated, items_deleted, delta_link_used,
    delta_link_new, error_message, started_at, completed_at
"""


@dataclass
class SyncLog:
    """Represents one sync run of a configuration."""

    id: int
    organization_id: str
    config_id: int
    status: str  # running, success, error
    is_full_sync: bool
    items_found: int
    items_added: int
    items_updated: int
    items_deleted: int
    delta_link_used: str | None
    delta_link_new: str | None
    error_message: str | None
    started_at: str
    completed_at: str | None

    @classmethod
    def from_row(cls, row: tuple) -> SyncLog:
        """Create a SyncLog from a database row."""
        return cls(
            id=row[0],
            organization_id=row[1],
            config_id=row[2],
            status=row[3],
            is_full_sync=bool(row[4]),
            items_found=row[5],
            items_added=row[6],
            items_updated=row[7],
            items_deleted=row[8],
            delta_link_used=row[9],
            delta_link_new=row[10],
            error_message=row[11],
            started_at=row[12],
            completed_at=row[13],
        )

    def to_dict(self) -> dict:
        """Serialize for JSON responses (delta links stay server-side)."""
        return {
            "id": self.id,
            "config_id": self.config_id,
            "status": self.status,
            "is_full_sync": self.is_full_sync,
            "items_found": self.items_found,
            "items_added": self.items_added,
            "items_updated": self.items_updated,
            "items_deleted": self.items_deleted,
            "error_message": self.error_message,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def get_by_id(cls, log_id: int) -> SyncLog | None:
        """Get a sync log by ID."""
        cursor = get_db().cursor()
        cursor.execute(f"SELECT {_COLUMNS} FROM sharepoint_sync_log WHERE id = ?", (log_id,))
        row = cursor.fetchone()
        return cls.from_row(row) if row else None

    @classmethod
    def create(
        cls,
        organization_id: str,
        config_id: int,
        is_full_sync: bool = False,
        delta_link_used: str | None = None,
    ) -> SyncLog:
        """Create a new sync log in running state."""
        now = datetime.now(UTC).isoformat()

        with transaction() as cursor:
            cursor.execute(
                """
                INSERT INTO sharepoint_sync_log (
                    organization_id, config_id, status, is_full_sync,
                    delta_link_used, started_at
                ) VALUES (?, ?, 'running', ?, ?, ?)
                """,
                (organization_id, config_id, 1 if is_full_sync else 0, delta_link_used, now),
            )
            row = cursor.execute("SELECT last_insert_rowid()").fetchone()
            assert row is not None
            log_id = row[0]

        result = cls.get_by_id(log_id)
        assert result is not None
        return result

    def complete(
        self,
        items_found: int = 0,
        items_added: int = 0,
        items_updated: int = 0,
        items_deleted: int = 0,
        delta_link_new: str | None = None,
    ) -> SyncLog:
        """Mark sync run as successful."""
        now = datetime.now(UTC).isoformat()

        with transaction() as cursor:
            cursor.execute(
                """
                UPDATE sharepoint_sync_log SET
                    status = 'success',
                    completed_at = ?,
                    items_found = ?,
                    items_added = ?,
                    items_updated = ?,
                    items_deleted = ?,
                    delta_link_new = ?
                WHERE id = ?
                """,
                (
                    now,
                    items_found,
                    items_added,
                    items_updated,
                    items_deleted,
                    delta_link_new,
                    self.id,
                ),
            )

        result = self.get_by_id(self.id)
        assert result is not None
        return result

    def fail(self, error_message: str) -> SyncLog:
        """Mark sync run as failed."""
        now = datetime.now(UTC).isoformat()

        with transaction() as cursor:
            cursor.execute(
                """
                UPDATE sharepoint_sync_log SET
                    status = 'error',
                    completed_at = ?,
                    error_message = ?
                WHERE id = ?
                """,
                (now, error_message, self.id),
            )

        result = self.get_by_id(self.id)
        assert result is not None
        return result

    @classmethod
    def get_latest(cls, config_id: int, finished_only: bool = False) -> SyncLog | None:
        """Get the most recent sync log of a configuration."""
        query = f"SELECT {_COLUMNS} FROM sharepoint_sync_log WHERE config_id = ?"
        if finished_only:
            query += " AND status != 'running'"
        query += " ORDER BY started_at DESC, id DESC LIMIT 1"
        cursor = get_db().cursor()
        cursor.execute(query, (config_id,))
        row = cursor.fetchone()
        return cls.from_row(row) if row else None

    @classmethod
    def get_running(cls, config_id: int) -> SyncLog | None:
        """Get the currently running sync log of a configuration, if any."""
        cursor = get_db().cursor()
        cursor.execute(
            f"""
            SELECT {_COLUMNS} FROM sharepoint_sync_log
            WHERE config_id = ? AND status = 'running'
            ORDER BY started_at DESC LIMIT 1
            """,
            (config_id,),
        )
        row = cursor.fetchone()
        return cls.from_row(row) if row else None

    @classmethod
    def get_recent(cls, organization_id: str, limit: int = 10, offset: int = 0) -> list[SyncLog]:
        """Get recent sync logs of an organization."""
        cursor = get_db().cursor()
        cursor.execute(
            f"""
            SELECT {_COLUMNS} FROM sharepoint_sync_log
            WHERE organization_id = ?
            ORDER BY started_at DESC, id DESC LIMIT ? OFFSET ?
            """,
            (organization_id, limit, offset),
        )
        return [cls.from_row(row) for row in cursor.fetchall()]

    @classmethod
    def is_sync_in_progress(cls, config_id: int) -> bool:
        """Check if a sync is currently in progress for a configuration."""
        return cls.get_running(config_id) is not None

    @classmethod
    def recover_stuck(cls, message: str = "Interrupted (recovered on worker startup)") -> int:
        """Mark every running log as failed. Returns the number recovered."""
        cursor = get_db().cursor()
        cursor.execute("SELECT COUNT(*) FROM sharepoint_sync_log WHERE status = 'running'")
        row = cursor.fetchone()
        stuck = int(row[0]) if row else 0
        if stuck:
            with transaction() as cur:
                cur.execute(
                    """
                    UPDATE sharepoint_sync_log SET
                        status = 'error', completed_at = ?, error_message = ?
                    WHERE status = 'running'
                    """,
                    (datetime.now(UTC).isoformat(), message),
                )
        return stuck
