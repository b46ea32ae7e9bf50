"""FastAPI dependencies for the vaultmirror API.

Provides the sync engine, the role authorizer, the calling actor and the
vault a request is scoped to.
"""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from vaultmirror.core.authz import VaultRoleAuthorizer
from vaultmirror.core.sync import SyncEngine, VaultNotFoundError, get_engine
from vaultmirror.core.types import Actor, Vault, VaultRole


async def get_engine_instance() -> SyncEngine:
    """
    Get SyncEngine instance for request processing.

    Returns:
        SyncEngine instance
    """
    return get_engine()


EngineDep = Annotated[SyncEngine, Depends(get_engine_instance)]


async def get_authorizer(engine: EngineDep) -> VaultRoleAuthorizer:
    """Authorizer backed by the engine's store."""
    return VaultRoleAuthorizer(engine.store)


AuthorizerDep = Annotated[VaultRoleAuthorizer, Depends(get_authorizer)]


async def get_actor(
    engine: EngineDep,
    x_user_id: Annotated[str | None, Header()] = None,
) -> Actor | None:
    """
    Resolve the calling user from the X-User-ID header.

    Unknown or missing users are anonymous.
    """
    if not x_user_id:
        return None
    return await engine.store.get_user(x_user_id)


ActorDep = Annotated[Actor | None, Depends(get_actor)]


def _not_found(vault_ref: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Vault not found: {vault_ref}",
    )


async def _authorized_vault(
    vault: str,
    engine: SyncEngine,
    authorizer: VaultRoleAuthorizer,
    actor: Actor | None,
    min_role: VaultRole,
) -> Vault:
    try:
        resolved = await engine.resolve_vault(vault)
    except VaultNotFoundError as e:
        raise _not_found(vault) from e

    # Denied callers get the same answer as for a missing vault
    if not await authorizer.user_has_vault_role(actor, resolved.id, min_role):
        raise _not_found(vault)
    return resolved


async def require_viewer(
    vault: str,
    engine: EngineDep,
    authorizer: AuthorizerDep,
    actor: ActorDep,
) -> Vault:
    """Resolve the path's vault, requiring at least viewer."""
    return await _authorized_vault(vault, engine, authorizer, actor, VaultRole.VIEWER)


async def require_editor(
    vault: str,
    engine: EngineDep,
    authorizer: AuthorizerDep,
    actor: ActorDep,
) -> Vault:
    """Resolve the path's vault, requiring at least editor."""
    return await _authorized_vault(vault, engine, authorizer, actor, VaultRole.EDITOR)


ViewableVault = Annotated[Vault, Depends(require_viewer)]
EditableVault = Annotated[Vault, Depends(require_editor)]
