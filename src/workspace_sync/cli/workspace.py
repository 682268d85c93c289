"""CLI: workspace-sync get|put|delete|watch|public"""

import asyncio
import json
from typing import Any, Optional

import click
from rich.console import Console

from workspace_sync.errors import SessionExpiredError, WorkspaceSyncError

console = Console()


def _get_client():
    from workspace_sync.cli.main import _get_client
    return _get_client()


def _get_user_id() -> str:
    from workspace_sync.cli.main import _get_user_id
    return _get_user_id()


def _force_logout(error: Exception) -> None:
    from workspace_sync.cli.main import _force_logout
    _force_logout(error)


def _run(coro):
    from workspace_sync.cli.main import _run
    return _run(coro)


def _print_document(data: Any, json_output: bool) -> None:
    if json_output:
        click.echo(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        console.print_json(data=data)


def _parse_json_object(raw: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"not valid JSON: {e}")
    if not isinstance(data, dict):
        raise click.BadParameter("payload must be a JSON object")
    return data


@click.command("get")
@click.option("--collection", default=None)
@click.option("--json-output", "--json", is_flag=True)
def get_cmd(collection: Optional[str], json_output: bool):
    """Print the decrypted workspace."""
    user_id = _get_user_id()

    async def _get():
        async with _get_client() as client:
            return await client.workspaces.get(user_id, collection=collection, missing_ok=True)

    try:
        data = _run(_get())
    except SessionExpiredError as e:
        _force_logout(e)
        return
    except WorkspaceSyncError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    if data is None:
        console.print("[yellow]No workspace stored.[/yellow]")
        return
    _print_document(data, json_output)


@click.command("put")
@click.argument("payload")
@click.option("--collection", default=None)
def put_cmd(payload: str, collection: Optional[str]):
    """Create or replace the workspace with a JSON object."""
    data = _parse_json_object(payload)
    user_id = _get_user_id()

    async def _put():
        async with _get_client() as client:
            await client.workspaces.upsert(user_id, data, collection=collection)

    try:
        with console.status("Saving workspace..."):
            _run(_put())
    except SessionExpiredError as e:
        _force_logout(e)
        return
    except WorkspaceSyncError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    console.print("[green]Workspace saved.[/green]")


@click.command("delete")
@click.option("--collection", default=None)
@click.confirmation_option(prompt="Delete the workspace?")
def delete_cmd(collection: Optional[str]):
    """Delete the workspace."""
    user_id = _get_user_id()

    async def _delete():
        async with _get_client() as client:
            await client.workspaces.delete(user_id, collection=collection)

    try:
        _run(_delete())
    except SessionExpiredError as e:
        _force_logout(e)
        return
    except WorkspaceSyncError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    console.print("[green]Workspace deleted.[/green]")


@click.command("watch")
@click.option("--collection", default=None)
@click.option("--json-output", "--json", is_flag=True)
def watch_cmd(collection: Optional[str], json_output: bool):
    """Print the workspace every time it changes (Ctrl+C to exit)."""
    expired: list[SessionExpiredError] = []
    user_id = _get_user_id()

    async def _watch():
        async with _get_client() as client:
            def on_data(data: Any) -> None:
                _print_document(data, json_output)

            def on_error(error: Exception) -> None:
                console.print(f"[yellow]Sync error, backing off: {error}[/yellow]")

            listener = client.listen(
                user_id, on_data, on_error, expired.append, collection=collection,
            )
            if not json_output:
                console.print("[cyan]Watching workspace (Ctrl+C to exit)[/cyan]")
            try:
                await listener.wait_stopped()
            finally:
                listener.stop()

    try:
        _run(_watch())
    except (KeyboardInterrupt, asyncio.CancelledError):
        pass
    if expired:
        _force_logout(expired[0])


@click.command("public")
@click.argument("share_token")
@click.option("--collection", default=None)
@click.option("--json-output", "--json", is_flag=True)
def public_cmd(share_token: str, collection: Optional[str], json_output: bool):
    """Read a workspace someone shared with a public token."""

    async def _public():
        async with _get_client() as client:
            return await client.public.get_shared_workspace(share_token, collection=collection)

    try:
        data = _run(_public())
    except WorkspaceSyncError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)
    if data is None:
        console.print("[yellow]No shared workspace for that token.[/yellow]")
        return
    _print_document(data, json_output)
