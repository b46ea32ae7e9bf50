"""Render cache repository - rendered HTML and derived search data per note."""

import json
import sqlite3

from vaultmirror.core.types import RenderCacheEntry
from vaultmirror.storage.db import parse_timestamp, utc_now


def _row_to_entry(row: sqlite3.Row) -> RenderCacheEntry:
    return RenderCacheEntry(
        vault_id=row["vault_id"],
        stable_id=row["note_id"],
        html=row["html"],
        markdown=row["markdown_content"],
        search_text=row["search_text"],
        tags=json.loads(row["tags_json"] or "[]"),
        metadata=json.loads(row["metadata_json"] or "{}"),
        requires_relink=bool(row["requires_relink"]),
        updated_at=parse_timestamp(row["updated_at"]),
    )


class RenderCacheRepo:
    """Repository for the note render cache."""

    def __init__(self, conn: sqlite3.Connection):
        """
        Initialize render cache repository.

        Args:
            conn: SQLite connection with row_factory set
        """
        self.conn = conn

    def get(self, vault_id: str, stable_id: str) -> RenderCacheEntry | None:
        row = self.conn.execute(
            """
            SELECT * FROM note_render_cache
            WHERE vault_id = ? AND note_id = ?
            """,
            (vault_id, stable_id),
        ).fetchone()
        return _row_to_entry(row) if row else None

    def list_for_vault(self, vault_id: str) -> dict[str, RenderCacheEntry]:
        rows = self.conn.execute(
            "SELECT * FROM note_render_cache WHERE vault_id = ?",
            (vault_id,),
        ).fetchall()
        return {row["note_id"]: _row_to_entry(row) for row in rows}

    def put(self, entry: RenderCacheEntry) -> None:
        """Overwrite the cached render of one note."""
        self.conn.execute(
            """
            INSERT INTO note_render_cache (
                note_id, vault_id, html, markdown_content, search_text,
                tags_json, metadata_json, requires_relink, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(note_id, vault_id) DO UPDATE SET
                html = excluded.html,
                markdown_content = excluded.markdown_content,
                search_text = excluded.search_text,
                tags_json = excluded.tags_json,
                metadata_json = excluded.metadata_json,
                requires_relink = excluded.requires_relink,
                updated_at = excluded.updated_at
            """,
            (
                entry.stable_id,
                entry.vault_id,
                entry.html,
                entry.markdown,
                entry.search_text,
                json.dumps(entry.tags),
                json.dumps(entry.metadata, sort_keys=False),
                1 if entry.requires_relink else 0,
                utc_now(),
            ),
        )

    def mark_relink_required(self, vault_id: str) -> int:
        """Flag every cached render of the vault as needing link rewriting."""
        cursor = self.conn.execute(
            "UPDATE note_render_cache SET requires_relink = 1 WHERE vault_id = ?",
            (vault_id,),
        )
        return cursor.rowcount

    def delete(self, vault_id: str, stable_id: str) -> None:
        self.conn.execute(
            "DELETE FROM note_render_cache WHERE vault_id = ? AND note_id = ?",
            (vault_id, stable_id),
        )
