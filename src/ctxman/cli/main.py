"""ctxman CLI main entry point.

Every command goes through the same tool facade the MCP server exposes,
so the CLI and the server validate and report errors identically.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import click

from ctxman import __version__
from ctxman.config import CtxmanSettings
from ctxman.server.logging import configure_logging
from ctxman.store import CONTEXT_TYPES, DATE_RANGES, ContextStore
from ctxman.store.exceptions import ContextStoreError
from ctxman.tools import ToolError, get_context_tools

TYPE_CHOICES = click.Choice(CONTEXT_TYPES)
TYPE_FILTER_CHOICES = click.Choice([*CONTEXT_TYPES, "all"])

# Characters of content shown per row in list and search output
PREVIEW_WIDTH = 50


def _cli_log_level(log_level: str) -> str:
    """Configured level, raised to warning so info events stay off the terminal."""
    if getattr(logging, log_level.upper(), logging.INFO) < logging.WARNING:
        return "warning"
    return log_level


def _call(ctx: click.Context, tool_name: str, **arguments: Any) -> dict[str, Any]:
    """Run one facade tool against the workspace store.

    Raises:
        click.ClickException: If the tool rejects the call or fails
    """
    settings: CtxmanSettings = ctx.obj["settings"]
    store = ContextStore(
        path=settings.store_path,
        project_path=str(settings.workspace_path),
        max_contexts=settings.max_contexts,
        format_version=settings.format_version,
    )
    tools = get_context_tools(store, settings)
    try:
        return asyncio.run(tools[tool_name](**arguments))
    except (ToolError, ContextStoreError) as e:
        raise click.ClickException(str(e)) from e


def _preview(content: str) -> str:
    line = " ".join(content.split())
    if len(line) > PREVIEW_WIDTH:
        return line[: PREVIEW_WIDTH - 3] + "..."
    return line


def _echo_table(contexts: list[dict[str, Any]]) -> None:
    click.echo(f"{'ID':<15} {'Created':<17} {'Type':<13} {'Imp':<4} {'Content'}")
    click.echo("-" * 100)
    for c in contexts:
        created = c["timestamp"][:16].replace("T", " ")
        click.echo(
            f"{c['id']:<15} {created:<17} {c['type']:<13} "
            f"{c['importance']:<4} {_preview(c['content'])}"
        )


def _echo_context(context: dict[str, Any]) -> None:
    click.echo(f"Context: {context['id']}")
    click.echo(f"Created: {context['timestamp']}")
    click.echo(f"Type: {context['type']}")
    click.echo(f"Importance: {context['importance']}")
    click.echo(f"Tags: {', '.join(context['tags']) if context['tags'] else '-'}")
    click.echo(f"Project: {context['projectPath']}")
    click.echo("")
    click.echo(context["content"])


@click.group()
@click.version_option(version=__version__, prog_name="ctxman")
@click.option(
    "--workspace",
    "-w",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Workspace root (default: WORKSPACE_PATH or the current directory)",
)
@click.pass_context
def cli(ctx: click.Context, workspace: Path | None) -> None:
    """ctxman - project-local context store.

    Captures conversation snippets, decisions, code notes and issues in
    <workspace>/.context-manager/contexts.json.
    """
    overrides: dict[str, Any] = {}
    if workspace is not None:
        overrides["workspace_path"] = workspace
    settings = CtxmanSettings(**overrides)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    configure_logging(
        log_level=_cli_log_level(settings.log_level),
        log_format=settings.log_format,
    )


@cli.command()
@click.argument("content")
@click.option("--type", "-t", "type_", type=TYPE_CHOICES, required=True,
              help="Kind of context")
@click.option("--importance", "-i", type=int, default=None,
              help="Importance 1-10 (default 5)")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.pass_context
def add(
    ctx: click.Context,
    content: str,
    type_: str,
    importance: int | None,
    tags: tuple[str, ...],
) -> None:
    """Add a context entry."""
    context = _call(
        ctx,
        "add_context",
        content=content,
        type=type_,
        importance=importance,
        tags=list(tags),
    )
    click.echo(f"Added context: {context['id']}")


@cli.command("list")
@click.option("--limit", "-n", default=10, help="Maximum contexts to show")
@click.option("--type", "-t", "type_", type=TYPE_FILTER_CHOICES, default="all",
              help="Only show contexts of this type")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def list_cmd(ctx: click.Context, limit: int, type_: str, as_json: bool) -> None:
    """List recent contexts, newest first."""
    result = _call(ctx, "get_context", limit=limit, type=type_)

    if as_json:
        click.echo(json.dumps(result["contexts"], indent=2, ensure_ascii=False))
        return
    if not result["contexts"]:
        click.echo("No contexts found.")
        return
    _echo_table(result["contexts"])


@cli.command()
@click.argument("query", default="")
@click.option("--limit", "-n", default=10, help="Maximum results")
@click.option("--type", "-t", "type_", type=TYPE_FILTER_CHOICES, default="all",
              help="Only match contexts of this type")
@click.option("--date-range", "-d", type=click.Choice(DATE_RANGES), default="all",
              help="Only match contexts created in this window")
@click.option("--min-importance", type=int, default=None,
              help="Only match contexts at least this important")
@click.option("--tag", "tags", multiple=True,
              help="Only match contexts with any of these tags (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@click.pass_context
def search(
    ctx: click.Context,
    query: str,
    limit: int,
    type_: str,
    date_range: str,
    min_importance: int | None,
    tags: tuple[str, ...],
    as_json: bool,
) -> None:
    """Search contexts by case-insensitive substring."""
    result = _call(
        ctx,
        "search_contexts",
        query=query,
        limit=limit,
        type=type_,
        date_range=date_range,
        min_importance=min_importance,
        tags=list(tags) if tags else None,
    )

    if as_json:
        click.echo(json.dumps(result["results"], indent=2, ensure_ascii=False))
        return
    if not result["results"]:
        click.echo("No matching contexts.")
        return
    _echo_table(result["results"])


@cli.command()
@click.argument("context_id")
@click.pass_context
def show(ctx: click.Context, context_id: str) -> None:
    """Show one context in full."""
    _echo_context(_call(ctx, "get_context_by_id", id=context_id))


@cli.command()
@click.argument("context_id")
@click.option("--content", "-c", default=None, help="New content")
@click.option("--type", "-t", "type_", type=TYPE_CHOICES, default=None,
              help="New type")
@click.option("--importance", "-i", type=int, default=None, help="New importance")
@click.option("--tag", "tags", multiple=True, help="Replacement tag (repeatable)")
@click.option("--clear-tags", is_flag=True, help="Remove all tags")
@click.pass_context
def update(
    ctx: click.Context,
    context_id: str,
    content: str | None,
    type_: str | None,
    importance: int | None,
    tags: tuple[str, ...],
    clear_tags: bool,
) -> None:
    """Update fields of a context; unspecified fields are kept."""
    if tags and clear_tags:
        raise click.UsageError("--tag and --clear-tags are mutually exclusive")

    changes: dict[str, Any] = {}
    if content is not None:
        changes["content"] = content
    if type_ is not None:
        changes["type"] = type_
    if importance is not None:
        changes["importance"] = importance
    if tags:
        changes["tags"] = list(tags)
    elif clear_tags:
        changes["tags"] = None

    context = _call(ctx, "update_context", id=context_id, **changes)
    click.echo(f"Updated context: {context['id']}")


@cli.command()
@click.argument("context_ids", nargs=-1, required=True)
@click.pass_context
def delete(ctx: click.Context, context_ids: tuple[str, ...]) -> None:
    """Delete one or more contexts.

    With a single id an unknown id is an error; with several, unknown ids
    are skipped.
    """
    if len(context_ids) == 1:
        _call(ctx, "delete_context", id=context_ids[0])
        click.echo(f"Deleted context: {context_ids[0]}")
        return

    result = _call(ctx, "delete_contexts", ids=list(context_ids))
    click.echo(f"Deleted {result['deleted']} of {result['requested']} contexts")


@cli.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """Show the workspace and its store."""
    result = _call(ctx, "get_project_info")
    settings: CtxmanSettings = ctx.obj["settings"]

    click.echo(f"Project: {result['projectName']}")
    click.echo(f"  Workspace: {result['workspacePath']}")
    click.echo(f"  Store file: {settings.store_path}")
    click.echo(f"  Contexts: {result['contextCount']}")


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show context counts and store size."""
    result = _call(ctx, "get_stats")

    click.echo(f"Total contexts: {result['totalContexts']} / {result['maxContexts']}")
    size = result["storageSize"]
    click.echo(f"Storage size: {size if size is not None else 0} bytes")
    click.echo("")
    click.echo("By type:")
    for type_name in CONTEXT_TYPES:
        click.echo(f"  {type_name:<13} {result['byType'].get(type_name, 0)}")
    if result["byProject"]:
        click.echo("")
        click.echo("By project:")
        for project, count in sorted(result["byProject"].items()):
            click.echo(f"  {project}: {count}")


@cli.command()
@click.option("--http", is_flag=True, help="Serve over HTTP+SSE instead of stdio")
@click.option("--host", default=None, help="HTTP host (default 127.0.0.1)")
@click.option("--port", type=int, default=None, help="HTTP port (default 6336)")
@click.pass_context
def serve(ctx: click.Context, http: bool, host: str | None, port: int | None) -> None:
    """Run the MCP server for this workspace."""
    from ctxman.server.main import run

    settings: CtxmanSettings = ctx.obj["settings"]
    if http:
        click.echo(
            f"Starting ctxman server on {host or settings.server_host}:"
            f"{port or settings.server_port}...",
            err=True,
        )
    run(settings, http=http, host=host, port=port)
