"""CLI application for vaultmirror using Rich and Typer."""

import asyncio
import logging
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from vaultmirror.core.bootstrap import VaultConfigError, bootstrap_vaults
from vaultmirror.core.config import setup_logging, validate_sync_environment
from vaultmirror.core.sync import SyncError, get_engine
from vaultmirror.core.types import PlatformRole, VaultRole
from vaultmirror.storage import VaultStore

app = typer.Typer(
    name="vaultmirror",
    help="vaultmirror CLI - sync Obsidian vaults from Google Drive",
    no_args_is_help=True,
)

console = Console()


def _store() -> VaultStore:
    try:
        bootstrap_vaults()
    except VaultConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    return VaultStore()


def _print_stats(slug: str, data) -> None:
    stats = data.sync_stats
    table = Table(title=f"Sync: {slug}", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Scanned", str(stats.scanned))
    table.add_row("Fetched", str(stats.fetched))
    table.add_row("Relinked", str(stats.relinked))
    table.add_row("Reused", str(stats.reused))
    table.add_row("Deleted", str(stats.deleted))
    table.add_row("Failed", str(stats.failed))
    table.add_row("Newly public", str(stats.newly_public))
    table.add_row("Link map changed", "yes" if stats.link_map_changed else "no")
    table.add_row("Duration", f"{stats.duration_ms} ms")

    console.print(table)
    console.print(f"[dim]{len(data.documents)} documents[/dim]")


@app.command()
def sync(
    vault: Optional[str] = typer.Argument(
        None, help="Vault id or slug (default vault when omitted)"
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Re-fetch every document instead of reusing the render cache",
    ),
):
    """Sync a vault from Google Drive and print the pass statistics."""
    is_valid, message = validate_sync_environment()
    if not is_valid:
        console.print(f"[red]Error: {message}[/red]")
        raise typer.Exit(1)

    _store()
    engine = get_engine()

    async def _sync():
        with console.status("[bold blue]Syncing...[/bold blue]"):
            return await engine.get_vault_data(vault, force=force)

    try:
        data = asyncio.run(_sync())
    except SyncError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Sync failed: {e}[/red]")
        raise typer.Exit(1)

    _print_stats(data.vault_slug, data)
    if data.stale:
        console.print(
            f"[yellow]Warning: sync degraded, serving stale data: {data.sync_error}[/yellow]"
        )


@app.command()
def vaults():
    """List configured vaults."""

    async def _list():
        store = _store()
        vault_list = await store.list_vaults()

        if not vault_list:
            console.print("[dim]No vaults configured.[/dim]")
            return

        table = Table(title="Vaults", show_header=True)
        table.add_column("Slug", style="green")
        table.add_column("Name")
        table.add_column("Folder")
        table.add_column("Attachments")
        table.add_column("Last Sync")
        table.add_column("Default")

        for v in vault_list:
            table.add_row(
                v.slug,
                v.name,
                v.folder_id or "[red]missing[/red]",
                v.attachments_folder_id or "",
                v.last_sync_at.strftime("%Y-%m-%d %H:%M") if v.last_sync_at else "never",
                "[green]yes[/green]" if v.is_default else "",
            )

        console.print(table)

    asyncio.run(_list())


@app.command("add-vault")
def add_vault(
    slug: str = typer.Argument(..., help="URL slug of the vault"),
    name: str = typer.Argument(..., help="Display name"),
    folder_id: str = typer.Argument(..., help="Google Drive folder id"),
    attachments: Optional[str] = typer.Option(
        None, "--attachments", "-a", help="Google Drive attachments folder id"
    ),
    default: bool = typer.Option(
        False, "--default", help="Make this the default vault"
    ),
):
    """Register a new vault."""

    async def _add():
        store = _store()
        if await store.get_vault_by_slug(slug):
            console.print(f"[red]Vault already exists: {slug}[/red]")
            raise typer.Exit(1)
        vault = await store.create_vault(
            slug, name, folder_id, attachments, is_default=default
        )
        console.print(f"[green]Created vault {vault.slug} ({vault.id})[/green]")

    asyncio.run(_add())


@app.command("edit-vault")
def edit_vault(
    vault: str = typer.Argument(..., help="Vault id or slug"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Display name"),
    folder_id: Optional[str] = typer.Option(
        None, "--folder", help="Google Drive folder id"
    ),
    attachments: Optional[str] = typer.Option(
        None, "--attachments", "-a", help="Google Drive attachments folder id"
    ),
    default: bool = typer.Option(
        False, "--default", help="Make this the default vault"
    ),
):
    """Change a vault's name, folders or default flag."""

    async def _edit():
        store = _store()
        resolved = await store.resolve_vault(vault)
        if resolved is None:
            console.print(f"[red]Vault not found: {vault}[/red]")
            raise typer.Exit(1)

        await store.update_vault(
            resolved.id,
            name or resolved.name,
            folder_id or resolved.folder_id,
            attachments or resolved.attachments_folder_id,
        )
        if default:
            await store.set_default_vault(resolved.id)
        console.print(f"[green]Updated vault {resolved.slug}[/green]")

    asyncio.run(_edit())


@app.command()
def grant(
    user_id: str = typer.Argument(..., help="User id"),
    vault: str = typer.Argument(..., help="Vault id or slug"),
    role: VaultRole = typer.Argument(..., help="viewer, editor, admin or owner"),
):
    """Grant a user a role in a vault."""

    async def _grant():
        store = _store()
        resolved = await store.resolve_vault(vault)
        if resolved is None:
            console.print(f"[red]Vault not found: {vault}[/red]")
            raise typer.Exit(1)
        await store.set_user_vault_role(user_id, resolved.id, role)
        console.print(
            f"[green]{user_id} is now {role.value} in {resolved.slug}[/green]"
        )

    asyncio.run(_grant())


@app.command("add-user")
def add_user(
    user_id: str = typer.Argument(..., help="User id"),
    email: str = typer.Argument(..., help="Email address"),
    admin: bool = typer.Option(False, "--admin", help="Make a platform admin"),
):
    """Create or update a user."""

    async def _add():
        store = _store()
        role = PlatformRole.ADMIN if admin else PlatformRole.MEMBER
        user = await store.upsert_user(user_id, email=email, role=role)
        console.print(f"[green]Saved user {user.id} ({user.role.value})[/green]")

        # Same default-vault grant the bootstrap gives existing users
        default_vault = await store.get_default_vault()
        if default_vault and not await store.get_user_vault_role(
            user.id, default_vault.id
        ):
            vault_role = VaultRole.OWNER if admin else VaultRole.VIEWER
            await store.set_user_vault_role(user.id, default_vault.id, vault_role)
            console.print(
                f"[dim]Granted {vault_role.value} in {default_vault.slug}[/dim]"
            )

    asyncio.run(_add())


@app.callback()
def main(
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug logging",
    ),
):
    """vaultmirror CLI - sync Obsidian vaults from Google Drive."""
    setup_logging()
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
        console.print("[dim]Debug logging enabled[/dim]")


def run_cli():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run_cli()
