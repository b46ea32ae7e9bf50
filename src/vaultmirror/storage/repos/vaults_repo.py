"""Vaults repository - vault rows and per-user vault roles."""

import sqlite3
from datetime import datetime
from uuid import uuid4

from vaultmirror.core.types import Vault, VaultRole
from vaultmirror.storage.db import parse_timestamp, utc_now

DEFAULT_VAULT_SLUG = "default"


def _row_to_vault(row: sqlite3.Row) -> Vault:
    return Vault(
        id=row["id"],
        slug=row["slug"],
        name=row["name"],
        folder_id=row["folder_id"],
        attachments_folder_id=row["attachments_folder_id"],
        is_default=bool(row["is_default"]),
        link_map_signature=row["link_map_signature"],
        last_sync_at=parse_timestamp(row["last_sync_at"]),
    )


class VaultsRepo:
    """Repository for vaults and user-vault roles."""

    def __init__(self, conn: sqlite3.Connection):
        """
        Initialize vaults repository.

        Args:
            conn: SQLite connection with row_factory set
        """
        self.conn = conn

    def get_by_id(self, vault_id: str) -> Vault | None:
        row = self.conn.execute(
            "SELECT * FROM vaults WHERE id = ?", (vault_id,)
        ).fetchone()
        return _row_to_vault(row) if row else None

    def get_by_slug(self, slug: str) -> Vault | None:
        row = self.conn.execute(
            "SELECT * FROM vaults WHERE slug = ?", (slug,)
        ).fetchone()
        return _row_to_vault(row) if row else None

    def get_default(self) -> Vault | None:
        row = self.conn.execute(
            """
            SELECT * FROM vaults
            WHERE is_default = 1
            ORDER BY created_at ASC
            LIMIT 1
            """
        ).fetchone()
        return _row_to_vault(row) if row else None

    def resolve(self, id_or_slug: str | None) -> Vault | None:
        """Find a vault by id, then slug; empty value means the default vault."""
        if not id_or_slug:
            return self.get_default()
        return self.get_by_id(id_or_slug) or self.get_by_slug(id_or_slug)

    def list_all(self) -> list[Vault]:
        rows = self.conn.execute(
            "SELECT * FROM vaults ORDER BY is_default DESC, name ASC"
        ).fetchall()
        return [_row_to_vault(row) for row in rows]

    def create(
        self,
        slug: str,
        name: str,
        folder_id: str | None,
        attachments_folder_id: str | None = None,
        is_default: bool = False,
    ) -> Vault:
        """Insert a new vault; a new default vault demotes the previous one."""
        vault_id = str(uuid4())
        now = utc_now()
        self.conn.execute(
            """
            INSERT INTO vaults (
                id, slug, name, folder_id, attachments_folder_id, is_default,
                created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                vault_id,
                slug,
                name,
                folder_id,
                attachments_folder_id,
                1 if is_default else 0,
                now,
                now,
            ),
        )
        if is_default:
            self.set_default(vault_id)
        vault = self.get_by_id(vault_id)
        assert vault is not None
        return vault

    def update(
        self,
        vault_id: str,
        name: str,
        folder_id: str | None,
        attachments_folder_id: str | None,
    ) -> None:
        """Update the administrator-managed fields of a vault."""
        self.conn.execute(
            """
            UPDATE vaults
            SET name = ?, folder_id = ?, attachments_folder_id = ?, updated_at = ?
            WHERE id = ?
            """,
            (name, folder_id, attachments_folder_id, utc_now(), vault_id),
        )

    def set_default(self, vault_id: str) -> None:
        """Make exactly one vault the default."""
        self.conn.execute(
            """
            UPDATE vaults
            SET is_default = CASE WHEN id = ? THEN 1 ELSE 0 END
            """,
            (vault_id,),
        )

    def update_sync_state(
        self, vault_id: str, link_map_signature: str, synced_at: datetime
    ) -> None:
        self.conn.execute(
            """
            UPDATE vaults
            SET link_map_signature = ?, last_sync_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (link_map_signature, synced_at.isoformat(), utc_now(), vault_id),
        )

    # Roles

    def get_user_role(self, user_id: str, vault_id: str) -> VaultRole | None:
        row = self.conn.execute(
            """
            SELECT role FROM user_vault_roles
            WHERE user_id = ? AND vault_id = ?
            """,
            (user_id, vault_id),
        ).fetchone()
        return VaultRole(row["role"]) if row else None

    def list_user_roles(self, user_id: str) -> dict[str, VaultRole]:
        rows = self.conn.execute(
            "SELECT vault_id, role FROM user_vault_roles WHERE user_id = ?",
            (user_id,),
        ).fetchall()
        return {row["vault_id"]: VaultRole(row["role"]) for row in rows}

    def upsert_user_role(self, user_id: str, vault_id: str, role: VaultRole) -> None:
        now = utc_now()
        self.conn.execute(
            """
            INSERT INTO user_vault_roles (user_id, vault_id, role, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(user_id, vault_id) DO UPDATE SET
                role = excluded.role,
                updated_at = excluded.updated_at
            """,
            (user_id, vault_id, VaultRole(role).value, now, now),
        )
