"""Async store facade used by the sync engine, authorizer, API and CLI."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path
from typing import TypeVar

from vaultmirror.core.types import (
    Actor,
    PlatformRole,
    PublishState,
    RegistryEntry,
    RenderCacheEntry,
    Vault,
    VaultRole,
)
from vaultmirror.storage.db import get_connection, init_db
from vaultmirror.storage.repos import (
    NoteRegistryRepo,
    PublishStateRepo,
    RenderCacheRepo,
    UsersRepo,
    VaultsRepo,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class VaultStore:
    """
    SQLite-backed persistence for vaults, roles, users and note state.

    Every method runs its unit of work on a worker thread with a
    short-lived connection, so database writes suspend the calling task
    instead of blocking the event loop.
    """

    def __init__(self, db_path: Path | str | None = None):
        """
        Initialize store.

        Args:
            db_path: Path to SQLite database (defaults to DATABASE_PATH)
        """
        self.db_path = init_db(db_path)

    async def _run(self, fn: Callable[..., T], *args) -> T:
        def _unit_of_work() -> T:
            with get_connection(self.db_path) as conn:
                return fn(conn, *args)

        return await asyncio.to_thread(_unit_of_work)

    # Vaults

    async def get_vault(self, vault_id: str) -> Vault | None:
        return await self._run(lambda conn: VaultsRepo(conn).get_by_id(vault_id))

    async def get_vault_by_slug(self, slug: str) -> Vault | None:
        return await self._run(lambda conn: VaultsRepo(conn).get_by_slug(slug))

    async def get_default_vault(self) -> Vault | None:
        return await self._run(lambda conn: VaultsRepo(conn).get_default())

    async def resolve_vault(self, id_or_slug: str | None) -> Vault | None:
        """Resolve a vault by id or slug; an empty reference means the default."""
        return await self._run(lambda conn: VaultsRepo(conn).resolve(id_or_slug))

    async def list_vaults(self) -> list[Vault]:
        return await self._run(lambda conn: VaultsRepo(conn).list_all())

    async def create_vault(
        self,
        slug: str,
        name: str,
        folder_id: str | None,
        attachments_folder_id: str | None = None,
        is_default: bool = False,
    ) -> Vault:
        vault = await self._run(
            lambda conn: VaultsRepo(conn).create(
                slug, name, folder_id, attachments_folder_id, is_default
            )
        )
        logger.info("Created vault %s (%s)", vault.slug, vault.id)
        return vault

    async def update_vault(
        self,
        vault_id: str,
        name: str,
        folder_id: str | None,
        attachments_folder_id: str | None,
    ) -> None:
        await self._run(
            lambda conn: VaultsRepo(conn).update(
                vault_id, name, folder_id, attachments_folder_id
            )
        )

    async def set_default_vault(self, vault_id: str) -> None:
        await self._run(lambda conn: VaultsRepo(conn).set_default(vault_id))

    async def update_vault_sync_state(
        self, vault_id: str, link_map_signature: str, synced_at: datetime
    ) -> None:
        await self._run(
            lambda conn: VaultsRepo(conn).update_sync_state(
                vault_id, link_map_signature, synced_at
            )
        )

    # Roles

    async def get_user_vault_role(
        self, user_id: str, vault_id: str
    ) -> VaultRole | None:
        return await self._run(
            lambda conn: VaultsRepo(conn).get_user_role(user_id, vault_id)
        )

    async def list_user_vault_roles(self, user_id: str) -> dict[str, VaultRole]:
        return await self._run(lambda conn: VaultsRepo(conn).list_user_roles(user_id))

    async def set_user_vault_role(
        self, user_id: str, vault_id: str, role: VaultRole
    ) -> None:
        await self._run(
            lambda conn: VaultsRepo(conn).upsert_user_role(user_id, vault_id, role)
        )

    # Users

    async def get_user(self, user_id: str) -> Actor | None:
        return await self._run(lambda conn: UsersRepo(conn).get(user_id))

    async def list_users(self) -> list[Actor]:
        return await self._run(lambda conn: UsersRepo(conn).list_all())

    async def upsert_user(
        self,
        user_id: str,
        email: str | None = None,
        display_name: str | None = None,
        role: PlatformRole = PlatformRole.MEMBER,
    ) -> Actor:
        return await self._run(
            lambda conn: UsersRepo(conn).upsert(user_id, email, display_name, role)
        )

    # Note state

    async def list_registry_entries(
        self, vault_id: str, include_deleted: bool = True
    ) -> list[RegistryEntry]:
        return await self._run(
            lambda conn: NoteRegistryRepo(conn).list_for_vault(
                vault_id, include_deleted=include_deleted
            )
        )

    async def mark_missing_notes_deleted(
        self, vault_id: str, seen_remote_ids: Iterable[str]
    ) -> int:
        """
        Soft-delete registry rows missing from the listing.

        Render cache and publish state rows of those notes are removed in
        the same transaction; they only exist for live notes.
        """
        seen = set(seen_remote_ids)

        def _mark(conn) -> int:
            deleted = NoteRegistryRepo(conn).mark_missing_deleted(vault_id, seen)
            cache = RenderCacheRepo(conn)
            states = PublishStateRepo(conn)
            for stable_id in deleted:
                cache.delete(vault_id, stable_id)
                states.delete(vault_id, stable_id)
            return len(deleted)

        return await self._run(_mark)

    async def list_render_cache(self, vault_id: str) -> dict[str, RenderCacheEntry]:
        return await self._run(lambda conn: RenderCacheRepo(conn).list_for_vault(vault_id))

    async def mark_relink_required(self, vault_id: str) -> int:
        return await self._run(
            lambda conn: RenderCacheRepo(conn).mark_relink_required(vault_id)
        )

    async def list_publish_states(self, vault_id: str) -> dict[str, PublishState]:
        return await self._run(
            lambda conn: PublishStateRepo(conn).list_for_vault(vault_id)
        )

    async def save_document(
        self,
        entry: RegistryEntry,
        cache_entry: RenderCacheEntry,
        state: PublishState,
    ) -> None:
        """Persist registry row, render cache and publish state as one transaction."""

        def _save(conn) -> None:
            NoteRegistryRepo(conn).upsert(entry)
            RenderCacheRepo(conn).put(cache_entry)
            PublishStateRepo(conn).put(entry.vault_id, entry.stable_id, state)

        await self._run(_save)
