"""Repository classes for data access."""

from vaultmirror.storage.repos.publish_state_repo import PublishStateRepo
from vaultmirror.storage.repos.registry_repo import NoteRegistryRepo
from vaultmirror.storage.repos.render_cache_repo import RenderCacheRepo
from vaultmirror.storage.repos.users_repo import UsersRepo
from vaultmirror.storage.repos.vaults_repo import DEFAULT_VAULT_SLUG, VaultsRepo

__all__ = [
    "DEFAULT_VAULT_SLUG",
    "NoteRegistryRepo",
    "PublishStateRepo",
    "RenderCacheRepo",
    "UsersRepo",
    "VaultsRepo",
]
