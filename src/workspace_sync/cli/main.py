"""
workspace-sync CLI — `workspace-sync` command.

Commands:
  workspace-sync login              Save backend URL, token and user id
  workspace-sync get|put|delete     Workspace document CRUD
  workspace-sync watch              Stream workspace changes
  workspace-sync child <cmd>        Child document CRUD
  workspace-sync public <token>     Read a shared workspace
"""

import asyncio
import json
import logging
from pathlib import Path

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install workspace-sync[cli]")

from workspace_sync.client import AsyncWorkspaceSync
from workspace_sync.config import SyncConfig

console = Console()
CONFIG_FILE = Path.home() / ".workspace-sync" / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _sync_config(cfg: dict) -> SyncConfig:
    overrides = {}
    for key in ("base_url", "access_token", "encrypt", "collection"):
        if key in cfg:
            overrides[key] = cfg[key]
    return SyncConfig.from_env(**overrides)


def _get_client() -> AsyncWorkspaceSync:
    return AsyncWorkspaceSync(_sync_config(_load_config()))


def _get_user_id() -> str:
    cfg = _load_config()
    if not cfg.get("user_id"):
        console.print("[red]Not logged in. Run `workspace-sync login` first.[/red]")
        raise SystemExit(1)
    return cfg["user_id"]


def _force_logout(error: Exception) -> None:
    """Drop saved credentials after the backend refused the session."""
    cfg = _load_config()
    _save_config({k: v for k, v in cfg.items() if k not in ("access_token", "user_id")})
    console.print(f"[red]Session expired ({error}). Logged out; run `workspace-sync login`.[/red]")
    raise SystemExit(1)


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """workspace-sync CLI — encrypted workspace documents."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# Register subcommands from separate modules
from workspace_sync.cli.auth import login, logout, status
from workspace_sync.cli.child import child
from workspace_sync.cli.workspace import delete_cmd, get_cmd, public_cmd, put_cmd, watch_cmd

main.add_command(login)
main.add_command(status)
main.add_command(logout)
main.add_command(get_cmd)
main.add_command(put_cmd)
main.add_command(delete_cmd)
main.add_command(watch_cmd)
main.add_command(public_cmd)
main.add_command(child)


if __name__ == "__main__":
    main()
