"""Shared test fixtures and configuration."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from vaultmirror.core.remote import RemoteEntry, RemoteFileNotFoundError, RemotePage
from vaultmirror.core.sync import SyncEngine
from vaultmirror.core.types import Actor, PlatformRole
from vaultmirror.storage import VaultStore, VaultsRepo, get_connection

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
DEFAULT_MODIFIED = "2024-01-01T00:00:00.000Z"


class FakeRemoteStore:
    """In-memory remote store that records every content fetch."""

    def __init__(self, page_size: int = 100):
        self.children: dict[str, list[RemoteEntry]] = {}
        self.contents: dict[str, bytes] = {}
        self.fetches: list[str] = []
        self.list_calls = 0
        self.page_size = page_size
        self.list_error: Exception | None = None
        self.fetch_delay = 0.0
        self.list_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    def add_folder(self, parent_id: str, folder_id: str, name: str) -> None:
        self.children.setdefault(parent_id, []).append(
            RemoteEntry(
                id=folder_id, name=name, is_folder=True, mime_type=FOLDER_MIME_TYPE
            )
        )
        self.children.setdefault(folder_id, [])

    def add_note(
        self,
        folder_id: str,
        file_id: str,
        name: str,
        content: str | bytes,
        modified_time: str = DEFAULT_MODIFIED,
        mime_type: str = "text/markdown",
    ) -> None:
        self.children.setdefault(folder_id, []).append(
            RemoteEntry(
                id=file_id,
                name=name,
                modified_time=modified_time,
                mime_type=mime_type,
            )
        )
        self.contents[file_id] = (
            content.encode("utf-8") if isinstance(content, str) else content
        )

    def _replace_entry(self, file_id: str, **changes) -> None:
        for entries in self.children.values():
            for i, entry in enumerate(entries):
                if entry.id == file_id:
                    entries[i] = replace(entry, **changes)
                    return
        raise KeyError(file_id)

    def rename(self, file_id: str, new_name: str) -> None:
        self._replace_entry(file_id, name=new_name)

    def update(self, file_id: str, content: str, modified_time: str) -> None:
        self.contents[file_id] = content.encode("utf-8")
        self._replace_entry(file_id, modified_time=modified_time)

    def remove(self, file_id: str) -> RemoteEntry:
        for entries in self.children.values():
            for entry in entries:
                if entry.id == file_id:
                    entries.remove(entry)
                    return entry
        raise KeyError(file_id)

    async def list_children(
        self, folder_id: str, page_token: str | None = None
    ) -> RemotePage:
        self.list_calls += 1
        if self.list_delay:
            await asyncio.sleep(self.list_delay)
        if self.list_error is not None:
            raise self.list_error
        entries = self.children.get(folder_id, [])
        start = int(page_token or 0)
        end = start + self.page_size
        return RemotePage(
            entries=list(entries[start:end]),
            next_page_token=str(end) if end < len(entries) else None,
        )

    async def get_content(self, file_id: str) -> bytes:
        self.fetches.append(file_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.fetch_delay:
                await asyncio.sleep(self.fetch_delay)
            if file_id not in self.contents:
                raise RemoteFileNotFoundError(f"not found: {file_id}")
            return self.contents[file_id]
        finally:
            self.in_flight -= 1

    async def find_child(self, folder_id: str, name: str) -> RemoteEntry | None:
        for entry in self.children.get(folder_id, []):
            if entry.name == name and not entry.is_folder:
                return entry
        return None


@pytest.fixture
def store(tmp_path):
    """Create a VaultStore with a temp database."""
    return VaultStore(db_path=tmp_path / "test.db")


@pytest.fixture
def remote():
    """Empty fake remote store."""
    return FakeRemoteStore()


@pytest.fixture
def vault(store):
    """Default vault rooted at remote folder 'root'."""
    with get_connection(store.db_path) as conn:
        return VaultsRepo(conn).create(
            "notes", "Test Notes", "root", "attachments", is_default=True
        )


@pytest.fixture
def fixed_now():
    """Fixed wall clock for publish-state scheduling."""
    return datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_engine(store, remote, fixed_now):
    """Factory for SyncEngine instances over the shared store and remote."""

    def _make_engine(**kwargs) -> SyncEngine:
        options = {
            "cache_ttl": 0,
            "concurrency": 4,
            "timeout": None,
            "now": lambda: fixed_now,
        }
        options.update(kwargs)
        return SyncEngine(store=store, remote=remote, **options)

    return _make_engine


@pytest.fixture
def admin_actor():
    """Platform admin actor."""
    return Actor(id="admin-1", role=PlatformRole.ADMIN, email="admin@example.com")


@pytest.fixture
def member_actor():
    """Regular platform member."""
    return Actor(id="member-1", role=PlatformRole.MEMBER, email="member@example.com")
