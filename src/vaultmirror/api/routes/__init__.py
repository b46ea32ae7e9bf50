"""API route modules."""

from vaultmirror.api.routes import health, vaults

__all__ = ["health", "vaults"]
