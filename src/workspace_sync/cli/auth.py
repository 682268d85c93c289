"""CLI: workspace-sync login|status|logout"""

from typing import Optional

import click
from rich.console import Console

console = Console()


def _load_config() -> dict:
    from workspace_sync.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from workspace_sync.cli.main import _save_config
    _save_config(cfg)


@click.command("login")
@click.option("--user-id", prompt="User id", help="Identifier that owns the workspace")
@click.option("--token", default=None, help="Backend access token")
@click.option("--base-url", default=None, help="Backend base URL")
@click.option("--collection", default=None, help="Workspace collection override")
@click.option("--plain", is_flag=True, help="Store payloads unencrypted (development backends)")
def login(user_id: str, token: Optional[str], base_url: Optional[str], collection: Optional[str], plain: bool):
    """Save credentials for later commands."""
    cfg = _load_config()
    cfg.update({"user_id": user_id, "encrypt": not plain})
    if token:
        cfg["access_token"] = token
    if base_url:
        cfg["base_url"] = base_url
    if collection:
        cfg["collection"] = collection
    _save_config(cfg)
    mode = "plain" if plain else "encrypted"
    console.print(f"[green]Logged in as {user_id} ({mode} storage)[/green]")
    console.print("[dim]Saved to ~/.workspace-sync/config.json[/dim]")


@click.command("status")
def status():
    """Show current login status."""
    cfg = _load_config()
    if cfg.get("user_id"):
        mode = "encrypted" if cfg.get("encrypt", True) else "plain"
        console.print(f"[green]Logged in[/green] as {cfg['user_id']} ({mode}, {cfg.get('base_url', 'default URL')})")
    else:
        console.print("[yellow]Not logged in. Run `workspace-sync login`.[/yellow]")


@click.command("logout")
def logout():
    """Clear saved credentials."""
    _save_config({})
    console.print("[green]Logged out.[/green]")
