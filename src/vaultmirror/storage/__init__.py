"""Storage layer for vaultmirror - SQLite database and repositories."""

from vaultmirror.storage.db import get_connection, init_db
from vaultmirror.storage.repos import (
    NoteRegistryRepo,
    PublishStateRepo,
    RenderCacheRepo,
    UsersRepo,
    VaultsRepo,
)
from vaultmirror.storage.store import VaultStore

__all__ = [
    "get_connection",
    "init_db",
    "NoteRegistryRepo",
    "PublishStateRepo",
    "RenderCacheRepo",
    "UsersRepo",
    "VaultStore",
    "VaultsRepo",
]
