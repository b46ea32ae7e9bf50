"""Publish state repository."""

import sqlite3

from vaultmirror.core.types import PublishState, Visibility
from vaultmirror.storage.db import utc_now


def _row_to_state(row: sqlite3.Row) -> PublishState:
    return PublishState(
        visibility=Visibility(row["visibility"]),
        is_draft=bool(row["is_draft"]),
        is_unlisted=bool(row["is_unlisted"]),
        is_scheduled=bool(row["is_scheduled"]),
        published_at=row["published_at"],
        unpublished_at=row["unpublished_at"],
        updated_by=row["updated_by"],
    )


class PublishStateRepo:
    """Repository for computed note publish states."""

    def __init__(self, conn: sqlite3.Connection):
        """
        Initialize publish state repository.

        Args:
            conn: SQLite connection with row_factory set
        """
        self.conn = conn

    def get(self, vault_id: str, stable_id: str) -> PublishState | None:
        row = self.conn.execute(
            """
            SELECT * FROM note_publish_state
            WHERE vault_id = ? AND note_id = ?
            """,
            (vault_id, stable_id),
        ).fetchone()
        return _row_to_state(row) if row else None

    def list_for_vault(self, vault_id: str) -> dict[str, PublishState]:
        rows = self.conn.execute(
            "SELECT * FROM note_publish_state WHERE vault_id = ?",
            (vault_id,),
        ).fetchall()
        return {row["note_id"]: _row_to_state(row) for row in rows}

    def put(self, vault_id: str, stable_id: str, state: PublishState) -> None:
        self.conn.execute(
            """
            INSERT INTO note_publish_state (
                note_id, vault_id, visibility, is_draft, is_unlisted, is_scheduled,
                published_at, unpublished_at, updated_by, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(note_id, vault_id) DO UPDATE SET
                visibility = excluded.visibility,
                is_draft = excluded.is_draft,
                is_unlisted = excluded.is_unlisted,
                is_scheduled = excluded.is_scheduled,
                published_at = excluded.published_at,
                unpublished_at = excluded.unpublished_at,
                updated_by = excluded.updated_by,
                updated_at = excluded.updated_at
            """,
            (
                stable_id,
                vault_id,
                Visibility(state.visibility).value,
                1 if state.is_draft else 0,
                1 if state.is_unlisted else 0,
                1 if state.is_scheduled else 0,
                state.published_at,
                state.unpublished_at,
                state.updated_by,
                utc_now(),
            ),
        )

    def delete(self, vault_id: str, stable_id: str) -> None:
        self.conn.execute(
            "DELETE FROM note_publish_state WHERE vault_id = ? AND note_id = ?",
            (vault_id, stable_id),
        )
