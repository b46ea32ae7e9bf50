"""vaultmirror core library - the vault sync engine."""

from typing import TYPE_CHECKING

from vaultmirror.core.types import (
    Actor,
    Document,
    PublishState,
    SyncStats,
    Vault,
    VaultData,
    VaultRole,
    Visibility,
)

if TYPE_CHECKING:
    from vaultmirror.core.authz import VaultRoleAuthorizer
    from vaultmirror.core.sync import SyncEngine

__all__ = [
    # Core classes
    "SyncEngine",
    "VaultRoleAuthorizer",
    # Types
    "Actor",
    "Document",
    "PublishState",
    "SyncStats",
    "Vault",
    "VaultData",
    "VaultRole",
    "Visibility",
]


def __getattr__(name: str):
    if name == "SyncEngine":
        from vaultmirror.core.sync import SyncEngine

        return SyncEngine
    if name == "VaultRoleAuthorizer":
        from vaultmirror.core.authz import VaultRoleAuthorizer

        return VaultRoleAuthorizer
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
