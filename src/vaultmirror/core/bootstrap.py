"""Vault bootstrap from the environment and an optional YAML file.

The default vault is created (or refreshed) from GOOGLE_DRIVE_FOLDER_ID,
SITE_NAME and ATTACHMENTS_FOLDER_ID. Additional vaults can be declared in
the file named by VAULTS_CONFIG_FILE:

    vaults:
      - slug: team
        name: Team Notes
        folder_id: 1AbC...
        attachments_folder_id: 1XyZ...
        roles:
          alice: editor
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from vaultmirror.core.config import (
    ATTACHMENTS_FOLDER_ID,
    GOOGLE_DRIVE_FOLDER_ID,
    SITE_NAME,
    VAULTS_CONFIG_FILE,
)
from vaultmirror.core.types import PlatformRole, Vault, VaultRole
from vaultmirror.storage.db import get_connection, init_db
from vaultmirror.storage.repos import DEFAULT_VAULT_SLUG, UsersRepo, VaultsRepo

logger = logging.getLogger(__name__)


class VaultConfigError(Exception):
    """Raised when the vaults configuration file is invalid."""


class VaultDefinition(BaseModel):
    """One vault declared in the vaults file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    slug: str = Field(min_length=1)
    name: str = Field(min_length=1)
    folder_id: str = Field(min_length=1)
    attachments_folder_id: str | None = None
    roles: dict[str, VaultRole] = Field(default_factory=dict)


class VaultsFile(BaseModel):
    """Typed content of the vaults file."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    vaults: list[VaultDefinition] = Field(default_factory=list)


def load_vaults_config(path: Path | str) -> VaultsFile:
    """
    Load and validate a vaults file.

    Raises:
        VaultConfigError: If the file is unreadable, not YAML or has the wrong shape
    """
    config_path = Path(path).expanduser()
    try:
        raw: Any = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise VaultConfigError(f"Cannot read vaults file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise VaultConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if raw is None:
        return VaultsFile()
    if not isinstance(raw, dict):
        raise VaultConfigError(
            f"{config_path} must be a mapping, got {type(raw).__name__}"
        )

    try:
        config = VaultsFile.model_validate(raw)
    except ValidationError as e:
        raise VaultConfigError(f"Invalid vaults file {config_path}: {e}") from e

    slugs = [vault.slug for vault in config.vaults]
    duplicates = sorted({slug for slug in slugs if slugs.count(slug) > 1})
    if duplicates:
        raise VaultConfigError(f"Duplicate vault slugs: {', '.join(duplicates)}")
    if DEFAULT_VAULT_SLUG in slugs:
        raise VaultConfigError(
            f"Slug '{DEFAULT_VAULT_SLUG}' is reserved for the default vault"
        )
    return config


def bootstrap_default_vault(
    db_path: Path | str | None = None,
    folder_id: str | None = GOOGLE_DRIVE_FOLDER_ID,
    site_name: str = SITE_NAME,
    attachments_folder_id: str | None = ATTACHMENTS_FOLDER_ID,
) -> Vault | None:
    """
    Create or refresh the default vault from configuration.

    Leaves exactly one default vault. Users without a role in it get owner
    when they are platform admins and viewer otherwise; existing grants are
    kept.

    Returns:
        The default vault, or None when no folder is configured
    """
    if not folder_id:
        return None

    with get_connection(db_path) as conn:
        vaults = VaultsRepo(conn)
        existing = vaults.get_default() or vaults.get_by_slug(DEFAULT_VAULT_SLUG)
        if existing is None:
            vault = vaults.create(
                DEFAULT_VAULT_SLUG,
                site_name,
                folder_id,
                attachments_folder_id,
                is_default=True,
            )
            logger.info("Created default vault %s", vault.id)
        else:
            vaults.update(existing.id, site_name, folder_id, attachments_folder_id)
            vaults.set_default(existing.id)
            vault = vaults.get_by_id(existing.id)

        for user in UsersRepo(conn).list_all():
            if vaults.get_user_role(user.id, vault.id) is not None:
                continue
            role = (
                VaultRole.OWNER
                if user.role == PlatformRole.ADMIN
                else VaultRole.VIEWER
            )
            vaults.upsert_user_role(user.id, vault.id, role)

    return vault


def apply_vaults_config(
    config: VaultsFile, db_path: Path | str | None = None
) -> list[Vault]:
    """Create or update every declared vault and apply its role grants."""
    applied: list[Vault] = []
    with get_connection(db_path) as conn:
        vaults = VaultsRepo(conn)
        for definition in config.vaults:
            vault = vaults.get_by_slug(definition.slug)
            if vault is None:
                vault = vaults.create(
                    definition.slug,
                    definition.name,
                    definition.folder_id,
                    definition.attachments_folder_id,
                )
            else:
                vaults.update(
                    vault.id,
                    definition.name,
                    definition.folder_id,
                    definition.attachments_folder_id,
                )
            for user_id, role in definition.roles.items():
                vaults.upsert_user_role(user_id, vault.id, role)
            applied.append(vault)

    logger.info("Applied %d vaults from configuration", len(applied))
    return applied


def bootstrap_vaults(
    db_path: Path | str | None = None,
    config_file: Path | str | None = VAULTS_CONFIG_FILE,
) -> None:
    """Initialize the database and apply all configured vaults."""
    init_db(db_path)
    bootstrap_default_vault(db_path)
    if config_file:
        apply_vaults_config(load_vaults_config(config_file), db_path)
