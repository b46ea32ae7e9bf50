"""Vault role authorization.

Resolves the role a caller holds in a vault and gates operations by a
minimum role. The role source is injected so the authorizer can be used
from the API, the CLI or tests without a request framework.
"""

import logging
from typing import Protocol

from vaultmirror.core.publish import role_rank
from vaultmirror.core.types import Actor, Vault, VaultRole

logger = logging.getLogger(__name__)


class RoleSource(Protocol):
    """Lookups the authorizer needs from the store."""

    async def get_vault(self, vault_id: str) -> Vault | None:
        pass

    async def get_user_vault_role(
        self, user_id: str, vault_id: str
    ) -> VaultRole | None:
        pass

    async def list_vaults(self) -> list[Vault]:
        pass

    async def list_user_vault_roles(self, user_id: str) -> dict[str, VaultRole]:
        pass


class VaultRoleAuthorizer:
    """Answers "may this actor do X in this vault" questions."""

    def __init__(self, source: RoleSource):
        """
        Initialize authorizer.

        Args:
            source: Store providing vault and role lookups
        """
        self.source = source

    async def vault_role_for(
        self, actor: Actor | None, vault_id: str
    ) -> VaultRole | None:
        """Effective vault role; platform admins act as owners."""
        if actor is None:
            return None
        if actor.is_platform_admin:
            return VaultRole.OWNER
        return await self.source.get_user_vault_role(actor.id, vault_id)

    async def user_has_vault_role(
        self,
        actor: Actor | None,
        vault_id: str | None,
        min_role: VaultRole = VaultRole.VIEWER,
    ) -> bool:
        """
        Check whether the actor holds at least min_role in the vault.

        Anonymous callers may only read (viewer) and only the default vault.
        """
        if not vault_id:
            return False

        if actor is None:
            if role_rank(min_role) > role_rank(VaultRole.VIEWER):
                return False
            vault = await self.source.get_vault(vault_id)
            return bool(vault and vault.is_default)

        if actor.is_platform_admin:
            return True

        actual = await self.vault_role_for(actor, vault_id)
        allowed = role_rank(actual) >= role_rank(min_role)
        if not allowed:
            logger.debug(
                "Denied %s in vault %s: has %s, needs %s",
                actor.id,
                vault_id,
                actual,
                min_role,
            )
        return allowed

    async def list_vaults_for(self, actor: Actor | None) -> list[Vault]:
        """Vaults the actor can see: all for admins, else default plus memberships."""
        vaults = await self.source.list_vaults()
        if actor is not None and actor.is_platform_admin:
            return vaults

        memberships = (
            await self.source.list_user_vault_roles(actor.id) if actor else {}
        )
        return [v for v in vaults if v.is_default or v.id in memberships]
