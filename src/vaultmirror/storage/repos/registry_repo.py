"""Note registry repository - durable remote-file to note-id mapping."""

import sqlite3
from collections.abc import Iterable
from uuid import uuid4

from vaultmirror.core.types import RegistryEntry
from vaultmirror.storage.db import parse_timestamp, utc_now


def _row_to_entry(row: sqlite3.Row) -> RegistryEntry:
    return RegistryEntry(
        vault_id=row["vault_id"],
        remote_id=row["remote_id"],
        stable_id=row["stable_note_id"],
        legacy_id=row["legacy_id"],
        path=row["path"],
        title=row["title"],
        modified_time=row["modified_time"],
        deleted_at=parse_timestamp(row["deleted_at"]),
    )


class NoteRegistryRepo:
    """Repository for note registry rows. Rows are only ever soft-deleted."""

    def __init__(self, conn: sqlite3.Connection):
        """
        Initialize note registry repository.

        Args:
            conn: SQLite connection with row_factory set
        """
        self.conn = conn

    def list_for_vault(
        self, vault_id: str, include_deleted: bool = False
    ) -> list[RegistryEntry]:
        query = "SELECT * FROM note_registry WHERE vault_id = ?"
        if not include_deleted:
            query += " AND deleted_at IS NULL"
        rows = self.conn.execute(query + " ORDER BY path ASC", (vault_id,)).fetchall()
        return [_row_to_entry(row) for row in rows]

    def upsert(self, entry: RegistryEntry) -> None:
        """
        Insert or refresh a row keyed by (vault, remote id).

        The stable id and an already assigned legacy id are never changed.
        """
        now = utc_now()
        self.conn.execute(
            """
            INSERT INTO note_registry (
                id, vault_id, remote_id, stable_note_id, legacy_id, path, title,
                modified_time, deleted_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL, ?, ?)
            ON CONFLICT(vault_id, remote_id) DO UPDATE SET
                legacy_id = COALESCE(note_registry.legacy_id, excluded.legacy_id),
                path = excluded.path,
                title = excluded.title,
                modified_time = excluded.modified_time,
                deleted_at = NULL,
                updated_at = excluded.updated_at
            """,
            (
                str(uuid4()),
                entry.vault_id,
                entry.remote_id,
                entry.stable_id,
                entry.legacy_id,
                entry.path,
                entry.title,
                entry.modified_time,
                now,
                now,
            ),
        )

    def mark_missing_deleted(
        self, vault_id: str, seen_remote_ids: Iterable[str]
    ) -> list[str]:
        """
        Soft-delete live rows whose remote id was not seen.

        Returns:
            Stable ids of the rows that were soft-deleted
        """
        seen = set(seen_remote_ids)
        live = self.conn.execute(
            """
            SELECT remote_id, stable_note_id FROM note_registry
            WHERE vault_id = ? AND deleted_at IS NULL
            """,
            (vault_id,),
        ).fetchall()
        missing = [row for row in live if row["remote_id"] not in seen]
        if not missing:
            return []

        now = utc_now()
        self.conn.executemany(
            """
            UPDATE note_registry
            SET deleted_at = ?, updated_at = ?
            WHERE vault_id = ? AND remote_id = ?
            """,
            [(now, now, vault_id, row["remote_id"]) for row in missing],
        )
        return [row["stable_note_id"] for row in missing]
