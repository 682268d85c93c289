"""CLI: workspace-sync child get|put|delete"""

from typing import Optional

import click
from rich.console import Console

from workspace_sync.children import sanitize_segment
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


def _execute(coro_factory):
    try:
        return _run(coro_factory())
    except SessionExpiredError as e:
        _force_logout(e)
    except WorkspaceSyncError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)


@click.group()
def child():
    """Child documents under the workspace."""


@child.command("get")
@click.argument("child_collection")
@click.argument("document_id")
@click.option("--collection", default=None)
@click.option("--json-output", "--json", is_flag=True)
def child_get(child_collection: str, document_id: str, collection: Optional[str], json_output: bool):
    """Print a decrypted child document."""
    from workspace_sync.cli.workspace import _print_document
    user_id = _get_user_id()

    async def _get():
        async with _get_client() as client:
            return await client.children.get(user_id, child_collection, document_id, collection=collection)

    data = _execute(_get)
    if data is None:
        console.print(f"[yellow]No document {sanitize_segment(child_collection)}/{document_id}.[/yellow]")
        return
    _print_document(data, json_output)


@child.command("put")
@click.argument("child_collection")
@click.argument("document_id")
@click.argument("payload")
@click.option("--collection", default=None)
@click.option("--replace", is_flag=True, help="Replace instead of merging fields")
def child_put(child_collection: str, document_id: str, payload: str, collection: Optional[str], replace: bool):
    """Create or update a child document with a JSON object."""
    from workspace_sync.cli.workspace import _parse_json_object
    data = _parse_json_object(payload)
    user_id = _get_user_id()

    async def _put():
        async with _get_client() as client:
            await client.children.upsert(
                user_id, child_collection, document_id, data,
                collection=collection, merge=not replace,
            )

    _execute(_put)
    console.print(f"[green]Saved {sanitize_segment(child_collection)}/{sanitize_segment(document_id)}.[/green]")


@child.command("delete")
@click.argument("child_collection")
@click.argument("document_id")
@click.option("--collection", default=None)
def child_delete(child_collection: str, document_id: str, collection: Optional[str]):
    """Delete a child document."""
    user_id = _get_user_id()

    async def _delete():
        async with _get_client() as client:
            await client.children.delete(user_id, child_collection, document_id, collection=collection)

    _execute(_delete)
    console.print(f"[green]Deleted {sanitize_segment(child_collection)}/{sanitize_segment(document_id)}.[/green]")
