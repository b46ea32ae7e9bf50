"""Shared types and data structures for vaultmirror."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, StrEnum
from pathlib import PurePosixPath
from typing import Any

from pydantic import BaseModel, Field

__all__ = [
    "Actor",
    "Attachment",
    "Document",
    "FolderNode",
    "FolderNoteRef",
    "PlatformRole",
    "PublishState",
    "RegistryEntry",
    "RemoteFile",
    "RenderCacheEntry",
    "SearchEntry",
    "SyncState",
    "SyncStats",
    "Vault",
    "VaultData",
    "VaultRole",
    "Visibility",
]


class VaultRole(StrEnum):
    """Roles a user can hold within a single vault."""

    VIEWER = "viewer"
    EDITOR = "editor"
    ADMIN = "admin"
    OWNER = "owner"


class PlatformRole(StrEnum):
    """Platform-wide user roles."""

    MEMBER = "member"
    ADMIN = "admin"


class Visibility(StrEnum):
    """Visibility class of a published note."""

    PUBLIC = "public"
    PRIVATE = "private"
    MEMBERS = "members"


class SyncState(Enum):
    """Per-vault sync state machine."""

    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class Actor:
    """An authenticated caller. Anonymous callers are represented by None."""

    id: str
    role: PlatformRole = PlatformRole.MEMBER
    email: str | None = None
    display_name: str | None = None

    @property
    def is_platform_admin(self) -> bool:
        return self.role == PlatformRole.ADMIN


@dataclass(frozen=True)
class Vault:
    """A synchronization root backed by one remote folder."""

    id: str
    slug: str
    name: str
    folder_id: str | None
    attachments_folder_id: str | None = None
    is_default: bool = False
    link_map_signature: str | None = None
    last_sync_at: datetime | None = None


@dataclass(frozen=True)
class RemoteFile:
    """A markdown file seen in a remote listing."""

    remote_id: str
    name: str
    path: str
    folder: str | None = None
    modified_time: str | None = None

    @property
    def base_name(self) -> str:
        """File name without the .md extension."""
        name = PurePosixPath(self.name).name
        return name[:-3] if name.lower().endswith(".md") else name


@dataclass(frozen=True)
class RegistryEntry:
    """One row of the note identity registry."""

    vault_id: str
    remote_id: str
    stable_id: str
    legacy_id: str | None
    path: str
    title: str
    modified_time: str | None = None
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


@dataclass(frozen=True)
class RenderCacheEntry:
    """Persisted render output for one note."""

    vault_id: str
    stable_id: str
    html: str
    markdown: str
    search_text: str
    tags: list[str] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    requires_relink: bool = False
    updated_at: datetime | None = None


@dataclass(frozen=True)
class Attachment:
    """Binary attachment fetched from a vault's attachments folder."""

    data: bytes
    mime_type: str | None = None


class PublishState(BaseModel, frozen=True):
    """Visibility classification computed from note frontmatter."""

    visibility: Visibility = Visibility.PUBLIC
    is_draft: bool = False
    is_unlisted: bool = False
    is_scheduled: bool = False
    published_at: str | None = None
    unpublished_at: str | None = None
    updated_by: str | None = None


class FolderNoteRef(BaseModel, frozen=True):
    """Note reference inside a folder tree node."""

    id: str
    title: str


class FolderNode(BaseModel):
    """Folder tree node assembled from note paths."""

    name: str
    path: str = ""
    children: list[FolderNode] = Field(default_factory=list)
    notes: list[FolderNoteRef] = Field(default_factory=list)


class Document(BaseModel, frozen=True):
    """A rendered note as published by the sync engine."""

    id: str
    legacy_id: str | None = None
    remote_id: str
    title: str
    file_name: str
    path: str
    folder: str | None = None
    html: str
    content: str
    frontmatter: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    publish_state: PublishState = Field(default_factory=PublishState)


class SearchEntry(BaseModel, frozen=True):
    """Reduced projection of a document for search indexing."""

    id: str
    legacy_id: str | None = None
    title: str
    path: str
    tags: list[str] = Field(default_factory=list)
    content: str
    visibility: Visibility = Visibility.PUBLIC
    is_draft: bool = False
    is_unlisted: bool = False
    is_scheduled: bool = False


class SyncStats(BaseModel, frozen=True):
    """Counters reported by one sync pass."""

    scanned: int = 0
    fetched: int = 0
    relinked: int = 0
    reused: int = 0
    deleted: int = 0
    failed: int = 0
    newly_public: int = 0
    link_map_changed: bool = False
    duration_ms: int = 0

    @property
    def changed(self) -> int:
        return self.fetched + self.relinked


class VaultData(BaseModel, frozen=True):
    """Assembled result of a vault sync."""

    vault_id: str
    vault_slug: str
    site_name: str
    documents: list[Document] = Field(default_factory=list)
    folder_tree: FolderNode = Field(default_factory=lambda: FolderNode(name="root"))
    search_entries: list[SearchEntry] = Field(default_factory=list)
    sync_stats: SyncStats = Field(default_factory=SyncStats)
    synced_at: datetime
    stale: bool = False
    sync_error: str | None = None
