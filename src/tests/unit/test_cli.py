"""Tests for the vaultmirror CLI."""

import pytest
from typer.testing import CliRunner

import vaultmirror.interfaces.cli.app as cli
from vaultmirror.core.bootstrap import VaultConfigError
from vaultmirror.core.remote import RemoteStoreError
from vaultmirror.core.sync import set_engine
from vaultmirror.core.types import PlatformRole, VaultRole
from vaultmirror.storage import UsersRepo, VaultsRepo, get_connection

runner = CliRunner()


@pytest.fixture
def cli_env(monkeypatch, store, make_engine):
    """Point the CLI at the test store and engine."""
    monkeypatch.setattr(cli, "bootstrap_vaults", lambda: None)
    monkeypatch.setattr(cli, "VaultStore", lambda: store)
    monkeypatch.setattr(cli, "validate_sync_environment", lambda: (True, ""))
    set_engine(make_engine())
    yield store
    set_engine(None)


class TestSyncCommand:
    """Tests for the sync command."""

    def test_sync_prints_stats(self, cli_env, vault, remote):
        """A successful sync prints the pass statistics."""
        remote.add_note("root", "f1", "A.md", "a")

        result = runner.invoke(cli.app, ["sync"])

        assert result.exit_code == 0
        assert "Sync: notes" in result.output
        assert "1 documents" in result.output

    def test_sync_unknown_vault(self, cli_env, vault):
        """Unknown vaults exit with an error."""
        result = runner.invoke(cli.app, ["sync", "missing"])

        assert result.exit_code == 1
        assert "Vault not found" in result.output

    def test_sync_failure(self, cli_env, vault, remote):
        """Remote failures exit with an error."""
        remote.list_error = RemoteStoreError("drive down")

        result = runner.invoke(cli.app, ["sync", "--force"])

        assert result.exit_code == 1
        assert "drive down" in result.output

    def test_sync_requires_credentials(self, cli_env, monkeypatch):
        """Missing Drive credentials stop the command."""
        monkeypatch.setattr(
            cli, "validate_sync_environment", lambda: (False, "Missing creds")
        )

        result = runner.invoke(cli.app, ["sync"])

        assert result.exit_code == 1
        assert "Missing creds" in result.output

    def test_bad_vaults_file(self, cli_env, monkeypatch):
        """An invalid vaults file stops the command."""

        def _fail():
            raise VaultConfigError("bad file")

        monkeypatch.setattr(cli, "bootstrap_vaults", _fail)

        result = runner.invoke(cli.app, ["vaults"])

        assert result.exit_code == 1
        assert "bad file" in result.output


class TestAdminCommands:
    """Tests for vault and user management commands."""

    def test_vaults_empty(self, cli_env):
        """An empty database lists no vaults."""
        result = runner.invoke(cli.app, ["vaults"])

        assert result.exit_code == 0
        assert "No vaults configured" in result.output

    def test_add_vault_and_list(self, cli_env):
        """Added vaults show up in the listing."""
        result = runner.invoke(
            cli.app, ["add-vault", "team", "Team", "folder-1", "--default"]
        )
        assert result.exit_code == 0
        assert "Created vault team" in result.output

        result = runner.invoke(cli.app, ["vaults"])
        assert "team" in result.output
        assert "folder-1" in result.output

    def test_add_vault_duplicate(self, cli_env, vault):
        """Existing slugs are rejected."""
        result = runner.invoke(cli.app, ["add-vault", "notes", "Again", "f"])

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_edit_vault(self, cli_env, vault):
        """Edited fields change, omitted ones are kept, default moves."""
        runner.invoke(cli.app, ["add-vault", "team", "Team", "folder-1"])

        result = runner.invoke(
            cli.app,
            [
                "edit-vault",
                "team",
                "--name",
                "Team Notes",
                "--folder",
                "folder-2",
                "--default",
            ],
        )

        assert result.exit_code == 0
        assert "Updated vault team" in result.output
        with get_connection(cli_env.db_path) as conn:
            repo = VaultsRepo(conn)
            team = repo.get_by_slug("team")
            notes = repo.get_by_id(vault.id)
        assert team.name == "Team Notes"
        assert team.folder_id == "folder-2"
        assert team.attachments_folder_id is None
        assert team.is_default
        assert not notes.is_default
        assert notes.folder_id == "root"

    def test_edit_unknown_vault(self, cli_env):
        """Editing an unknown vault fails."""
        result = runner.invoke(cli.app, ["edit-vault", "nope", "--name", "X"])

        assert result.exit_code == 1
        assert "Vault not found" in result.output

    def test_grant(self, cli_env, vault):
        """Roles are granted by vault slug."""
        result = runner.invoke(cli.app, ["grant", "alice", "notes", "editor"])

        assert result.exit_code == 0
        with get_connection(cli_env.db_path) as conn:
            role = VaultsRepo(conn).get_user_role("alice", vault.id)
        assert role == VaultRole.EDITOR

    def test_grant_unknown_vault(self, cli_env):
        """Granting in an unknown vault fails."""
        result = runner.invoke(cli.app, ["grant", "alice", "nope", "viewer"])

        assert result.exit_code == 1
        assert "Vault not found" in result.output

    def test_add_admin_user(self, cli_env):
        """--admin creates a platform admin."""
        result = runner.invoke(
            cli.app, ["add-user", "root", "root@example.com", "--admin"]
        )

        assert result.exit_code == 0
        with get_connection(cli_env.db_path) as conn:
            assert UsersRepo(conn).get("root").role == PlatformRole.ADMIN

    def test_add_user_joins_default_vault(self, cli_env, vault):
        """New users get viewer in the default vault."""
        result = runner.invoke(cli.app, ["add-user", "bob", "bob@example.com"])

        assert result.exit_code == 0
        with get_connection(cli_env.db_path) as conn:
            role = VaultsRepo(conn).get_user_role("bob", vault.id)
        assert role == VaultRole.VIEWER
