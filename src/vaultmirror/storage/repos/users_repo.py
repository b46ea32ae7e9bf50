"""Users repository - platform accounts known to the engine."""

import sqlite3

from vaultmirror.core.types import Actor, PlatformRole
from vaultmirror.storage.db import utc_now


def _row_to_actor(row: sqlite3.Row) -> Actor:
    return Actor(
        id=row["id"],
        role=PlatformRole(row["role"]),
        email=row["email"],
        display_name=row["display_name"],
    )


class UsersRepo:
    """Repository for user lookups."""

    def __init__(self, conn: sqlite3.Connection):
        """
        Initialize users repository.

        Args:
            conn: SQLite connection with row_factory set
        """
        self.conn = conn

    def get(self, user_id: str) -> Actor | None:
        row = self.conn.execute(
            "SELECT id, email, display_name, role FROM users WHERE id = ?",
            (user_id,),
        ).fetchone()
        return _row_to_actor(row) if row else None

    def list_all(self) -> list[Actor]:
        rows = self.conn.execute(
            "SELECT id, email, display_name, role FROM users ORDER BY id"
        ).fetchall()
        return [_row_to_actor(row) for row in rows]

    def upsert(
        self,
        user_id: str,
        email: str | None = None,
        display_name: str | None = None,
        role: PlatformRole = PlatformRole.MEMBER,
    ) -> Actor:
        now = utc_now()
        self.conn.execute(
            """
            INSERT INTO users (id, email, display_name, role, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                email = excluded.email,
                display_name = excluded.display_name,
                role = excluded.role,
                updated_at = excluded.updated_at
            """,
            (user_id, email, display_name, PlatformRole(role).value, now, now),
        )
        return Actor(
            id=user_id,
            role=PlatformRole(role),
            email=email,
            display_name=display_name,
        )
