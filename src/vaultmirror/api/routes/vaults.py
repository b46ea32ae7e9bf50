"""Vault endpoints: listing, notes, search index, refresh and attachments."""

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, Response, status
from pydantic import BaseModel

from vaultmirror.api.deps import (
    ActorDep,
    AuthorizerDep,
    EditableVault,
    EngineDep,
    ViewableVault,
)
from vaultmirror.core.remote import (
    RemoteFileNotFoundError,
    RemoteNotConfiguredError,
    RemoteStoreError,
)
from vaultmirror.core.sync import (
    SyncEngine,
    VaultNotFoundError,
    filter_vault_data,
    find_document,
)
from vaultmirror.core.types import (
    Document,
    FolderNode,
    SearchEntry,
    SyncStats,
    Vault,
    VaultData,
    VaultRole,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class VaultResponse(BaseModel):
    """Response model for a vault visible to the caller."""

    id: str
    slug: str
    name: str
    is_default: bool
    role: VaultRole | None = None
    last_sync_at: datetime | None = None


class NotesResponse(BaseModel):
    """Listable notes of a vault."""

    vault_id: str
    vault_slug: str
    site_name: str
    notes: list[Document]
    folder_tree: FolderNode
    synced_at: datetime
    stale: bool = False
    sync_error: str | None = None


class SearchIndexResponse(BaseModel):
    """Search entries of listable notes."""

    vault_id: str
    entries: list[SearchEntry]
    stale: bool = False


class RefreshResponse(BaseModel):
    """Outcome of a forced sync."""

    vault_id: str
    sync_stats: SyncStats
    synced_at: datetime
    stale: bool = False
    sync_error: str | None = None


async def _load_vault_data(
    engine: SyncEngine, vault: Vault, force: bool = False
) -> VaultData:
    try:
        return await engine.get_vault_data(vault.id, force=force)
    except VaultNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except Exception as e:
        logger.error("Failed to load vault %s: %s", vault.slug, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e


@router.get("/vaults", response_model=list[VaultResponse])
async def list_vaults(
    authorizer: AuthorizerDep,
    actor: ActorDep,
) -> list[VaultResponse]:
    """List vaults the caller can see, with the caller's role in each."""
    vaults = await authorizer.list_vaults_for(actor)
    return [
        VaultResponse(
            id=vault.id,
            slug=vault.slug,
            name=vault.name,
            is_default=vault.is_default,
            role=await authorizer.vault_role_for(actor, vault.id),
            last_sync_at=vault.last_sync_at,
        )
        for vault in vaults
    ]


@router.get("/vaults/{vault}/notes", response_model=NotesResponse)
async def list_notes(
    resolved: ViewableVault,
    engine: EngineDep,
    authorizer: AuthorizerDep,
    actor: ActorDep,
) -> NotesResponse:
    """
    List the notes the caller may see.

    Drafts, scheduled and unlisted notes never appear here.
    """
    data = await _load_vault_data(engine, resolved)
    role = await authorizer.vault_role_for(actor, resolved.id)
    view = filter_vault_data(data, actor, role)

    return NotesResponse(
        vault_id=view.vault_id,
        vault_slug=view.vault_slug,
        site_name=view.site_name,
        notes=view.documents,
        folder_tree=view.folder_tree,
        synced_at=view.synced_at,
        stale=view.stale,
        sync_error=view.sync_error,
    )


@router.get("/vaults/{vault}/notes/{note_id}", response_model=Document)
async def get_note(
    note_id: str,
    resolved: ViewableVault,
    engine: EngineDep,
    authorizer: AuthorizerDep,
    actor: ActorDep,
) -> Document:
    """Fetch one note by stable or legacy id."""
    data = await _load_vault_data(engine, resolved)
    stable_id = await engine.resolve_note_id(resolved.id, note_id)
    role = await authorizer.vault_role_for(actor, resolved.id)

    document = find_document(data.documents, stable_id or note_id, actor, role)
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Note not found: {note_id}",
        )
    return document


@router.get("/vaults/{vault}/search-index", response_model=SearchIndexResponse)
async def get_search_index(
    resolved: ViewableVault,
    engine: EngineDep,
    authorizer: AuthorizerDep,
    actor: ActorDep,
) -> SearchIndexResponse:
    """Search entries for the notes the caller may list."""
    data = await _load_vault_data(engine, resolved)
    role = await authorizer.vault_role_for(actor, resolved.id)
    view = filter_vault_data(data, actor, role)
    return SearchIndexResponse(
        vault_id=view.vault_id,
        entries=view.search_entries,
        stale=view.stale,
    )


@router.post("/vaults/{vault}/refresh", response_model=RefreshResponse)
async def refresh_vault(resolved: EditableVault, engine: EngineDep) -> RefreshResponse:
    """Force a full re-sync of the vault. Requires editor."""
    data = await _load_vault_data(engine, resolved, force=True)
    return RefreshResponse(
        vault_id=data.vault_id,
        sync_stats=data.sync_stats,
        synced_at=data.synced_at,
        stale=data.stale,
        sync_error=data.sync_error,
    )


@router.get("/vaults/{vault}/attachments/{file_name}")
async def get_attachment(
    file_name: str,
    resolved: ViewableVault,
    engine: EngineDep,
) -> Response:
    """Stream an attachment from the vault's attachments folder."""
    try:
        attachment = await engine.get_attachment(resolved.id, file_name)
    except RemoteFileNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    except RemoteNotConfiguredError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)
        ) from e
    except RemoteStoreError as e:
        logger.error("Failed to fetch attachment %s: %s", file_name, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    return Response(
        content=attachment.data,
        media_type=attachment.mime_type or "application/octet-stream",
        headers={"Cache-Control": "public, max-age=86400"},
    )
