"""Vault sync engine.

Keeps an in-memory, per-vault result of the last successful sync pass and
refreshes it from the remote store when it goes stale. A pass lists the
vault's markdown files, reuses cached renders of unchanged notes, re-links
notes whose link targets moved, fetches and renders only what changed, and
soft-deletes notes that disappeared.

Concurrent callers for the same vault block on a per-vault lock; once the
lock is acquired, a caller whose request was already satisfied by the pass
it waited for gets that result instead of starting another pass.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from threading import Lock
from typing import Any

from vaultmirror.core.config import (
    DRIVE_FETCH_CONCURRENCY,
    SEARCH_TEXT_MAX_CHARS,
    SYNC_CACHE_TTL_SECONDS,
    SYNC_TIMEOUT_SECONDS,
)
from vaultmirror.core.links import (
    build_alias_map,
    build_link_map,
    create_link_map_signature,
    link_map_changed,
    resolve_alias,
)
from vaultmirror.core.publish import (
    can_access,
    compute_publish_state,
    is_listable,
    is_publicly_visible,
)
from vaultmirror.core.registry import NoteRegistry
from vaultmirror.core.remote import (
    RemoteFileNotFoundError,
    RemoteNotConfiguredError,
    RemoteStore,
    RemoteStoreError,
    list_markdown_files,
    map_with_concurrency,
)
from vaultmirror.core.render import (
    MarkdownRenderer,
    build_search_text,
    extract_tags,
    note_title,
    parse_document,
)
from vaultmirror.core.tree import build_folder_tree
from vaultmirror.core.types import (
    Actor,
    Attachment,
    Document,
    PublishState,
    RegistryEntry,
    RemoteFile,
    RenderCacheEntry,
    SearchEntry,
    SyncState,
    SyncStats,
    Vault,
    VaultData,
    VaultRole,
)

logger = logging.getLogger(__name__)

NewlyPublicCallback = Callable[[Vault, list[Document]], Awaitable[None]]


class SyncError(RuntimeError):
    """Base error for vault sync failures."""


class SyncConfigurationError(SyncError):
    """Raised when a vault has no remote folder to sync from."""


class VaultNotFoundError(SyncError):
    """Raised when a vault reference matches no vault."""


class SyncTimeoutError(SyncError):
    """Raised when a sync pass exceeds its deadline."""


class _Outcome(Enum):
    REUSED = "reused"
    RELINKED = "relinked"
    FETCHED = "fetched"


@dataclass(frozen=True)
class _ProcessedNote:
    document: Document
    search_text: str
    outcome: _Outcome
    newly_public: bool


@dataclass
class _CachedResult:
    data: VaultData
    fetched_at: float
    last_error: str | None = None
    last_error_at: float | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _search_entry(document: Document, search_text: str) -> SearchEntry:
    state = document.publish_state
    return SearchEntry(
        id=document.id,
        legacy_id=document.legacy_id,
        title=document.title,
        path=document.path,
        tags=document.tags,
        content=search_text,
        visibility=state.visibility,
        is_draft=state.is_draft,
        is_unlisted=state.is_unlisted,
        is_scheduled=state.is_scheduled,
    )


class SyncEngine:
    """
    Synchronizes vaults from the remote store and serves the results.

    All mutable state (result cache, locks, alias maps) belongs to the
    instance, so separate engines never share it.
    """

    def __init__(
        self,
        store: Any,
        remote: RemoteStore,
        renderer: MarkdownRenderer | None = None,
        cache_ttl: float = SYNC_CACHE_TTL_SECONDS,
        concurrency: int = DRIVE_FETCH_CONCURRENCY,
        timeout: float | None = SYNC_TIMEOUT_SECONDS,
        search_text_max_chars: int = SEARCH_TEXT_MAX_CHARS,
        on_newly_public: NewlyPublicCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ):
        """
        Initialize sync engine.

        Args:
            store: VaultStore (or compatible) for vaults and note state
            remote: Remote store client
            renderer: Markdown renderer (defaults to MarkdownRenderer)
            cache_ttl: Seconds a successful result is served without re-syncing
            concurrency: Max documents processed in parallel per vault
            timeout: Deadline for one sync pass in seconds (None/0 disables)
            search_text_max_chars: Bound on derived search text
            on_newly_public: Async callback for notes that just became public
            clock: Monotonic clock used for cache freshness
            now: Wall clock used for scheduling and sync timestamps
        """
        self.store = store
        self.remote = remote
        self.renderer = renderer or MarkdownRenderer()
        self.cache_ttl = cache_ttl
        self.concurrency = max(1, concurrency)
        self.timeout = timeout
        self.search_text_max_chars = search_text_max_chars
        self.on_newly_public = on_newly_public
        self._clock = clock
        self._now = now

        self._cache: dict[str, _CachedResult] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._aliases: dict[str, dict[str, str]] = {}
        self._states: dict[str, SyncState] = {}

    # Public API

    async def get_vault_data(
        self, vault_ref: str | None = None, force: bool = False
    ) -> VaultData:
        """
        Return the vault's documents, syncing first when needed.

        Args:
            vault_ref: Vault id or slug (None/empty selects the default vault)
            force: Bypass the result cache and re-fetch every document

        Returns:
            VaultData, flagged stale with the error when the sync failed but
            an earlier result could be served

        Raises:
            VaultNotFoundError: No vault matches vault_ref
            SyncConfigurationError: The vault has no remote folder
            Exception: Sync failures when there is no earlier result to serve
        """
        vault = await self.resolve_vault(vault_ref)

        cached = self._cache.get(vault.id)
        if not force and self._is_fresh(cached):
            logger.debug("Serving cached result for vault %s", vault.slug)
            return cached.data

        requested_at = self._clock()
        lock = self._locks.setdefault(vault.id, asyncio.Lock())
        if lock.locked():
            logger.debug("Waiting for in-flight sync of vault %s", vault.slug)

        async with lock:
            cached = self._cache.get(vault.id)
            if cached is not None and cached.last_error is None:
                if cached.fetched_at > requested_at or (
                    not force and self._is_fresh(cached)
                ):
                    return cached.data
            return await self._sync_locked(vault, cached, force)

    async def resolve_vault(self, vault_ref: str | None) -> Vault:
        """Look up a vault by id or slug; empty selects the default vault."""
        vault = await self.store.resolve_vault(vault_ref)
        if vault is None:
            raise VaultNotFoundError(f"Vault not found: {vault_ref or 'default'}")
        return vault

    async def resolve_note_id(self, vault_id: str, note_id: str | None) -> str | None:
        """Map a stable or legacy note id to the current stable id."""
        aliases = self._aliases.get(vault_id)
        if aliases is None:
            entries = await self.store.list_registry_entries(vault_id)
            aliases = build_alias_map(entries)
            self._aliases[vault_id] = aliases
        return resolve_alias(aliases, note_id)

    def clear_cache(self, vault_id: str | None = None) -> None:
        """Drop cached results so the next request re-syncs."""
        if vault_id is None:
            self._cache.clear()
            logger.info("Cleared sync cache for all vaults")
        else:
            self._cache.pop(vault_id, None)
            logger.info("Cleared sync cache for vault %s", vault_id)

    def state_for(self, vault_id: str) -> SyncState:
        return self._states.get(vault_id, SyncState.IDLE)

    async def get_attachment(self, vault_ref: str | None, file_name: str) -> Attachment:
        """
        Download a file from the vault's attachments folder.

        Raises:
            RemoteNotConfiguredError: The vault has no attachments folder
            RemoteFileNotFoundError: No attachment with that name
        """
        vault = await self.resolve_vault(vault_ref)
        if not vault.attachments_folder_id:
            raise RemoteNotConfiguredError(
                f"Vault {vault.slug} has no attachments folder configured"
            )

        entry = await self.remote.find_child(vault.attachments_folder_id, file_name)
        if entry is None:
            raise RemoteFileNotFoundError(f"Attachment not found: {file_name}")

        data = await self.remote.get_content(entry.id)
        return Attachment(data=data, mime_type=entry.mime_type)

    def health_check(self) -> dict[str, tuple[bool, str]]:
        """
        Check the remote store and every vault synced by this engine.

        Returns:
            Component name -> (healthy, message)
        """
        remote_check = getattr(self.remote, "health_check", None)
        health = {
            "remote": remote_check() if remote_check else (True, "Remote store ready")
        }
        for cached in self._cache.values():
            slug = cached.data.vault_slug
            if cached.last_error is not None:
                health[f"vault:{slug}"] = (
                    False,
                    f"Serving stale data: {cached.last_error}",
                )
            else:
                health[f"vault:{slug}"] = (
                    True,
                    f"{len(cached.data.documents)} documents, "
                    f"synced {cached.data.synced_at.isoformat()}",
                )
        return health

    # Sync pass

    def _is_fresh(self, cached: _CachedResult | None) -> bool:
        if cached is None or cached.last_error is not None:
            return False
        return self._clock() - cached.fetched_at < self.cache_ttl

    async def _sync_locked(
        self, vault: Vault, cached: _CachedResult | None, force: bool
    ) -> VaultData:
        self._states[vault.id] = SyncState.SYNCING
        try:
            data, newly_public = await self._with_deadline(self._sync(vault, force))
        except SyncConfigurationError:
            self._states[vault.id] = SyncState.DEGRADED
            raise
        except Exception as exc:
            self._states[vault.id] = SyncState.DEGRADED
            if cached is None:
                logger.error("Sync of vault %s failed: %s", vault.slug, exc)
                raise
            message = str(exc) or exc.__class__.__name__
            cached.last_error = message
            cached.last_error_at = self._clock()
            logger.warning(
                "Sync of vault %s failed, serving stale result: %s", vault.slug, message
            )
            return cached.data.model_copy(update={"stale": True, "sync_error": message})

        self._cache[vault.id] = _CachedResult(data=data, fetched_at=self._clock())
        self._states[vault.id] = SyncState.SUCCESS
        await self._notify_newly_public(vault, newly_public)
        return data

    async def _with_deadline(self, coro: Awaitable[Any]) -> Any:
        if not self.timeout:
            return await coro
        try:
            return await asyncio.wait_for(coro, self.timeout)
        except asyncio.TimeoutError as exc:
            raise SyncTimeoutError(
                f"Sync did not finish within {self.timeout:g} seconds"
            ) from exc

    async def _notify_newly_public(self, vault: Vault, documents: list[Document]) -> None:
        if not documents or self.on_newly_public is None:
            return
        try:
            await self.on_newly_public(vault, documents)
        except Exception:
            logger.exception("Newly-public callback failed for vault %s", vault.slug)

    async def _sync(self, vault: Vault, force: bool) -> tuple[VaultData, list[Document]]:
        # Re-read so the signature reflects any pass that finished while we waited
        vault = await self.store.get_vault(vault.id) or vault
        if not vault.folder_id:
            raise SyncConfigurationError(
                f"Vault {vault.slug} has no remote folder configured"
            )

        started = time.perf_counter()
        logger.info("Syncing vault %s (force=%s)", vault.slug, force)

        files = await list_markdown_files(self.remote, vault.folder_id)
        files.sort(key=lambda file: file.path)

        link_map = build_link_map(files)
        signature = create_link_map_signature(files)
        links_changed = link_map_changed(vault.link_map_signature, signature)
        if links_changed:
            await self.store.mark_relink_required(vault.id)

        registry = await NoteRegistry.load(self.store, vault.id)
        cache = await self.store.list_render_cache(vault.id)
        # Stored states may come from a pass that later failed
        last_good = self._cache.get(vault.id)
        if last_good is not None:
            previous_states = {
                document.id: document.publish_state
                for document in last_good.data.documents
            }
        else:
            previous_states = await self.store.list_publish_states(vault.id)
        first_sync = vault.last_sync_at is None
        now = self._now()

        async def process(file: RemoteFile, index: int) -> _ProcessedNote | None:
            try:
                return await self._process_file(
                    vault=vault,
                    file=file,
                    index=index,
                    registry=registry,
                    cache=cache,
                    previous_states=previous_states,
                    link_map=link_map,
                    links_changed=links_changed,
                    force=force,
                    first_sync=first_sync,
                    now=now,
                )
            except (ValueError, RemoteStoreError) as exc:
                logger.error("Error processing %s: %s", file.path, exc)
                return None

        processed = await map_with_concurrency(files, self.concurrency, process)
        notes = [note for note in processed if note is not None]

        deleted = await registry.mark_deleted(file.remote_id for file in files)

        notes.sort(key=lambda note: note.document.path)
        documents = [note.document for note in notes]
        newly_public = [note.document for note in notes if note.newly_public]

        synced_at = self._now()
        await self.store.update_vault_sync_state(vault.id, signature, synced_at)
        self._aliases[vault.id] = build_alias_map(registry.entries())

        stats = SyncStats(
            scanned=len(files),
            fetched=sum(1 for n in notes if n.outcome is _Outcome.FETCHED),
            relinked=sum(1 for n in notes if n.outcome is _Outcome.RELINKED),
            reused=sum(1 for n in notes if n.outcome is _Outcome.REUSED),
            deleted=deleted,
            failed=len(files) - len(notes),
            newly_public=len(newly_public),
            link_map_changed=links_changed,
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
        logger.info(
            "Synced vault %s: %d scanned, %d fetched, %d relinked, %d reused, "
            "%d deleted, %d failed in %dms",
            vault.slug,
            stats.scanned,
            stats.fetched,
            stats.relinked,
            stats.reused,
            stats.deleted,
            stats.failed,
            stats.duration_ms,
        )

        data = VaultData(
            vault_id=vault.id,
            vault_slug=vault.slug,
            site_name=vault.name,
            documents=documents,
            folder_tree=build_folder_tree(documents),
            search_entries=[_search_entry(n.document, n.search_text) for n in notes],
            sync_stats=stats,
            synced_at=synced_at,
        )
        return data, newly_public

    async def _process_file(
        self,
        vault: Vault,
        file: RemoteFile,
        index: int,
        registry: NoteRegistry,
        cache: dict[str, RenderCacheEntry],
        previous_states: dict[str, PublishState],
        link_map: dict[str, str],
        links_changed: bool,
        force: bool,
        first_sync: bool,
        now: datetime,
    ) -> _ProcessedNote:
        stable_id = registry.resolve(file)
        legacy_id = registry.legacy_id_for(file, index)
        previous: RegistryEntry | None = registry.get(file.remote_id)
        cached = cache.get(stable_id)

        unchanged = (
            previous is not None
            and not previous.is_deleted
            and previous.modified_time == file.modified_time
        )

        if cached is not None and unchanged and not force:
            parsed_frontmatter = cached.metadata
            body = cached.markdown
            search_text = cached.search_text
            tags = cached.tags
            if links_changed or cached.requires_relink:
                html = self.renderer.render(body, link_map, vault.id)
                outcome = _Outcome.RELINKED
            else:
                html = cached.html
                outcome = _Outcome.REUSED
        else:
            raw = await self.remote.get_content(file.remote_id)
            parsed = parse_document(raw)
            parsed_frontmatter = parsed.frontmatter
            body = parsed.body
            html = self.renderer.render(body, link_map, vault.id)
            search_text = build_search_text(body, self.search_text_max_chars)
            tags = extract_tags(body, parsed_frontmatter)
            outcome = _Outcome.FETCHED

        title = note_title(parsed_frontmatter, file.base_name)
        state = compute_publish_state(parsed_frontmatter, now)

        entry = registry.upsert(file, stable_id, legacy_id, title)
        await self.store.save_document(
            entry,
            RenderCacheEntry(
                vault_id=vault.id,
                stable_id=stable_id,
                html=html,
                markdown=body,
                search_text=search_text,
                tags=tags,
                metadata=parsed_frontmatter,
                requires_relink=False,
            ),
            state,
        )

        previous_state = previous_states.get(stable_id)
        if previous_state is None:
            newly_public = not first_sync and is_publicly_visible(state)
        else:
            newly_public = is_publicly_visible(state) and not is_publicly_visible(
                previous_state
            )

        document = Document(
            id=stable_id,
            legacy_id=entry.legacy_id,
            remote_id=file.remote_id,
            title=title,
            file_name=file.name,
            path=file.path,
            folder=file.folder,
            html=html,
            content=body,
            frontmatter=parsed_frontmatter,
            tags=tags,
            publish_state=state,
        )
        return _ProcessedNote(
            document=document,
            search_text=search_text,
            outcome=outcome,
            newly_public=newly_public,
        )


# Per-actor views


def filter_vault_data(
    data: VaultData, actor: Actor | None, vault_role: VaultRole | None
) -> VaultData:
    """Restrict a result to the documents the actor may list."""
    documents = [
        document
        for document in data.documents
        if is_listable(document.publish_state, actor, vault_role)
    ]
    visible_ids = {document.id for document in documents}
    return data.model_copy(
        update={
            "documents": documents,
            "folder_tree": build_folder_tree(documents),
            "search_entries": [
                entry for entry in data.search_entries if entry.id in visible_ids
            ],
        }
    )


def find_document(
    documents: Sequence[Document],
    note_id: str,
    actor: Actor | None,
    vault_role: VaultRole | None,
) -> Document | None:
    """Find a document by stable or legacy id, if the actor may open it."""
    for document in documents:
        if note_id in (document.id, document.legacy_id):
            if can_access(document.publish_state, actor, vault_role):
                return document
            return None
    return None


# Default instance
_engine: SyncEngine | None = None
_engine_lock = Lock()


def get_engine() -> SyncEngine:
    """Get or create the default sync engine backed by Google Drive."""
    global _engine
    if _engine is None:
        with _engine_lock:
            if _engine is None:
                from vaultmirror.core.drive import DriveStore
                from vaultmirror.storage import VaultStore

                _engine = SyncEngine(store=VaultStore(), remote=DriveStore())
    return _engine


def set_engine(engine: SyncEngine | None) -> None:
    """Set the default sync engine (for testing)."""
    global _engine
    _engine = engine
