"""Note identity registry.

Maps remote files to stable note ids that survive renames and moves, and
keeps the positional legacy ids that old permalinks still use.
"""

import logging
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Protocol

from vaultmirror.core.types import RegistryEntry, RemoteFile

logger = logging.getLogger(__name__)

STABLE_ID_PREFIX = "drive-"
LEGACY_ID_PREFIX = "note-"


def create_stable_note_id(remote_id: str) -> str:
    """Stable id is a pure function of the remote file id."""
    return f"{STABLE_ID_PREFIX}{remote_id}"


def create_legacy_note_id(index: int) -> str:
    """Legacy id from a note's position in the path-sorted listing."""
    return f"{LEGACY_ID_PREFIX}{index}"


class RegistryStore(Protocol):
    """Persistence used by the registry."""

    async def list_registry_entries(
        self, vault_id: str, include_deleted: bool = True
    ) -> list[RegistryEntry]:
        pass

    async def mark_missing_notes_deleted(
        self, vault_id: str, seen_remote_ids: Iterable[str]
    ) -> int:
        pass


class NoteRegistry:
    """In-memory view of one vault's registry rows for a sync pass.

    Lookups are served from the snapshot loaded at the start of the pass.
    upsert() records the refreshed row in the snapshot and returns it; the
    caller persists it together with the note's render cache and publish
    state.
    """

    def __init__(
        self,
        store: RegistryStore,
        vault_id: str,
        entries: Iterable[RegistryEntry] = (),
    ):
        self.store = store
        self.vault_id = vault_id
        self._by_remote_id: dict[str, RegistryEntry] = {
            entry.remote_id: entry for entry in entries
        }
        self._legacy_owners: dict[str, str] = {
            entry.legacy_id: entry.remote_id
            for entry in self._by_remote_id.values()
            if entry.legacy_id
        }

    @classmethod
    async def load(cls, store: RegistryStore, vault_id: str) -> "NoteRegistry":
        """Load every registry row of the vault, soft-deleted ones included."""
        entries = await store.list_registry_entries(vault_id, include_deleted=True)
        return cls(store, vault_id, entries)

    def get(self, remote_id: str) -> RegistryEntry | None:
        return self._by_remote_id.get(remote_id)

    def entries(self) -> list[RegistryEntry]:
        return list(self._by_remote_id.values())

    def resolve(self, file: RemoteFile) -> str:
        """Return the stable id for a remote file, live or soft-deleted."""
        existing = self._by_remote_id.get(file.remote_id)
        if existing is not None:
            return existing.stable_id
        return create_stable_note_id(file.remote_id)

    def legacy_id_for(self, file: RemoteFile, positional_index: int) -> str | None:
        """
        Legacy id for a file, assigned on first sighting and never changed.

        A positional id already owned by another file is not handed out
        again; the new file simply has no legacy id.
        """
        existing = self._by_remote_id.get(file.remote_id)
        if existing is not None:
            return existing.legacy_id

        candidate = create_legacy_note_id(positional_index)
        owner = self._legacy_owners.get(candidate)
        if owner is not None and owner != file.remote_id:
            logger.debug(
                "Legacy id %s already owned by %s; %s gets none",
                candidate,
                owner,
                file.remote_id,
            )
            return None
        self._legacy_owners[candidate] = file.remote_id
        return candidate

    def upsert(
        self,
        file: RemoteFile,
        stable_id: str,
        legacy_id: str | None,
        title: str,
    ) -> RegistryEntry:
        """Refresh path, title and timestamp; clears any soft delete."""
        entry = RegistryEntry(
            vault_id=self.vault_id,
            remote_id=file.remote_id,
            stable_id=stable_id,
            legacy_id=legacy_id,
            path=file.path,
            title=title,
            modified_time=file.modified_time,
            deleted_at=None,
        )
        self._by_remote_id[file.remote_id] = entry
        return entry

    async def mark_deleted(self, seen_remote_ids: Iterable[str]) -> int:
        """Soft-delete live rows whose remote id is absent from this listing."""
        seen = set(seen_remote_ids)
        count = await self.store.mark_missing_notes_deleted(self.vault_id, seen)
        now = datetime.now(timezone.utc)
        for remote_id, entry in list(self._by_remote_id.items()):
            if remote_id not in seen and entry.deleted_at is None:
                self._by_remote_id[remote_id] = replace(entry, deleted_at=now)
        if count:
            logger.info("Soft-deleted %d notes in vault %s", count, self.vault_id)
        return count
