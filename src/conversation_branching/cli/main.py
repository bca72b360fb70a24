"""CLI entry point for conversation-branching.

Invoked as::

    conversation-branching [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m conversation_branching.cli.main

Commands
--------
- version      — Show version information
- branch       — Branch management command group

Branch sub-commands
-------------------
- branch create  — Create a branch in a conversation
- branch list    — List the branches of a conversation
- branch append  — Append a message to a branch
- branch show    — Display a branch and its messages
- branch diff    — Diff two branches
- branch merge   — Check and record a merge of two branches
- branch tree    — Render the branch hierarchy of a conversation
- branch export  — Export a branch as JSON or YAML
- branch merges  — Show the merge log of a conversation
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from conversation_branching.branching.manager import BranchManager, BranchNotFoundError
from conversation_branching.branching.records import ValidationError
from conversation_branching.config import load_config
from conversation_branching.storage.base import BranchRepository

console = Console()

_ROLE_STYLES = {"user": "green", "assistant": "blue"}

# ---------------------------------------------------------------------------
# Repository factory
# ---------------------------------------------------------------------------


def _make_repository(
    storage: str,
    db_path: str | None,
    storage_dir: str | None,
) -> BranchRepository:
    """Instantiate the requested repository.

    Parameters
    ----------
    storage:
        Repository name: ``"memory"``, ``"filesystem"``, or ``"sqlite"``.
    db_path:
        Path to the SQLite database (used when ``storage="sqlite"``).
    storage_dir:
        Directory for the filesystem repository.
    """
    from conversation_branching.storage.filesystem import FilesystemBranchRepository
    from conversation_branching.storage.memory import InMemoryBranchRepository
    from conversation_branching.storage.sqlite import SQLiteBranchRepository

    if storage == "memory":
        return InMemoryBranchRepository()
    if storage == "filesystem":
        directory = Path(storage_dir) if storage_dir else Path.home() / ".conversation-branches"
        return FilesystemBranchRepository(storage_dir=directory)
    if storage == "sqlite":
        db = Path(db_path) if db_path else Path.home() / ".conversation-branches" / "branches.db"
        return SQLiteBranchRepository(db_path=db)
    console.print(f"[red]Unknown storage backend: {storage!r}[/red]")
    sys.exit(1)


def _manager(ctx: click.Context, conversation_id: str) -> BranchManager:
    return BranchManager(
        conversation_id=conversation_id,
        repository=ctx.obj["repository"],
        config=ctx.obj["config"],
    )


def _manager_for_branch(ctx: click.Context, branch_id: str) -> BranchManager:
    """Build a manager for the conversation that owns *branch_id*, or exit."""
    repository: BranchRepository = ctx.obj["repository"]
    if not repository.branch_exists(branch_id):
        console.print(f"[red]Branch not found:[/red] {branch_id}")
        sys.exit(1)
    return _manager(ctx, repository.get_branch(branch_id).conversation_id)


def _fail(exc: Exception) -> NoReturn:
    console.print(f"[red]Error:[/red] {exc}")
    sys.exit(1)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(package_name="conversation-branching")
@click.option("--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Fork, compare and merge conversation branches"""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


@cli.command(name="version")
def version_command() -> None:
    """Show version information."""
    from conversation_branching import __version__

    console.print(f"[bold]conversation-branching[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# branch command group
# ---------------------------------------------------------------------------


@cli.group(name="branch")
@click.option(
    "--storage",
    default="filesystem",
    show_default=True,
    type=click.Choice(["memory", "filesystem", "sqlite"], case_sensitive=False),
    help="Storage backend to use.",
)
@click.option("--db-path", default=None, help="Path to SQLite database (sqlite backend).")
@click.option("--storage-dir", default=None, help="Directory for filesystem backend.")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False),
    help="YAML configuration file.",
)
@click.pass_context
def branch_group(
    ctx: click.Context,
    storage: str,
    db_path: str | None,
    storage_dir: str | None,
    config_path: str | None,
) -> None:
    """Branch management commands."""
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except (OSError, ValueError) as exc:
        _fail(exc)
    ctx.obj["config"] = config
    ctx.obj["repository"] = _make_repository(storage.lower(), db_path, storage_dir)


# ---------------------------------------------------------------------------
# branch create
# ---------------------------------------------------------------------------


@branch_group.command(name="create")
@click.argument("conversation_id")
@click.argument("name")
@click.option("--description", default="", help="Free-text description.")
@click.option("--parent", default=None, help="Parent branch ID to fork from.")
@click.option("--from-index", type=int, default=None, help="Fork point in the parent.")
@click.option("--tag", "tags", multiple=True, help="Label to attach (repeatable).")
@click.pass_context
def branch_create(
    ctx: click.Context,
    conversation_id: str,
    name: str,
    description: str,
    parent: str | None,
    from_index: int | None,
    tags: tuple[str, ...],
) -> None:
    """Create a branch named NAME in CONVERSATION_ID.

    Prints the new branch ID on success.
    """
    manager = _manager(ctx, conversation_id)
    try:
        branch = manager.create_branch(
            name,
            description,
            from_message_index=from_index,
            parent_branch_id=parent,
            tags=list(tags),
        )
    except (ValidationError, BranchNotFoundError) as exc:
        _fail(exc)
    console.print(f"[green]Branch created:[/green] {branch.branch_id}")


# ---------------------------------------------------------------------------
# branch list
# ---------------------------------------------------------------------------


@branch_group.command(name="list")
@click.argument("conversation_id")
@click.option("--active-only", is_flag=True, help="Hide inactive branches.")
@click.pass_context
def branch_list(ctx: click.Context, conversation_id: str, active_only: bool) -> None:
    """List the branches of CONVERSATION_ID."""
    manager = _manager(ctx, conversation_id)
    branches = manager.list_branches(active_only=active_only)
    if not branches:
        console.print("[yellow]No branches found.[/yellow]")
        return

    table = Table(title=f"Branches of {conversation_id}", show_lines=False)
    table.add_column("Branch ID", style="cyan")
    table.add_column("Name", style="green")
    table.add_column("Parent")
    table.add_column("Fork", justify="right")
    table.add_column("Messages", justify="right")
    table.add_column("Active")
    table.add_column("Tags")
    table.add_column("Updated")

    for branch in branches:
        table.add_row(
            branch.branch_id,
            branch.name,
            branch.parent_branch_id or "-",
            "-" if branch.created_from_message_index is None else str(branch.created_from_message_index),
            str(branch.message_count),
            "yes" if branch.is_active else "no",
            ", ".join(branch.tags),
            branch.updated_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


# ---------------------------------------------------------------------------
# branch append
# ---------------------------------------------------------------------------


@branch_group.command(name="append")
@click.argument("branch_id")
@click.argument("role", type=click.Choice(["user", "assistant"]))
@click.argument("content")
@click.option("--model", default=None, help="Model name annotation.")
@click.option("--tokens", type=int, default=None, help="Token usage annotation.")
@click.pass_context
def branch_append(
    ctx: click.Context,
    branch_id: str,
    role: str,
    content: str,
    model: str | None,
    tokens: int | None,
) -> None:
    """Append a ROLE message with CONTENT to BRANCH_ID."""
    manager = _manager_for_branch(ctx, branch_id)
    metadata = {"model": model, "tokens_used": tokens}
    try:
        message = manager.append_message(branch_id, role, content, metadata)
    except ValueError as exc:
        _fail(exc)
    console.print(
        f"[green]Appended[/green] message {message.message_index} to {branch_id}"
    )


# ---------------------------------------------------------------------------
# branch show
# ---------------------------------------------------------------------------


@branch_group.command(name="show")
@click.argument("branch_id")
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of formatted view.")
@click.pass_context
def branch_show(ctx: click.Context, branch_id: str, json_output: bool) -> None:
    """Display BRANCH_ID and its messages."""
    manager = _manager_for_branch(ctx, branch_id)
    branch = manager.get_branch(branch_id)
    messages = manager.get_messages(branch_id)

    if json_output:
        console.print_json(manager.export_branch(branch_id, "json"))
        return

    table = Table(title=f"Branch {branch.name}", show_lines=True)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    table.add_row("branch_id", branch.branch_id)
    table.add_row("conversation_id", branch.conversation_id)
    table.add_row("parent_branch_id", branch.parent_branch_id or "-")
    table.add_row("message_count", str(branch.message_count))
    table.add_row("depth", str(manager.depth(branch_id)))
    table.add_row("is_active", str(branch.is_active))
    if branch.description:
        table.add_row("description", branch.description[:200])
    console.print(table)

    for message in messages:
        style = _ROLE_STYLES.get(message.role.value, "white")
        header = f"[{style}]{message.role.value.upper()}[/{style}] | index={message.message_index}"
        console.print(Panel(message.content, title=header, expand=False))


# ---------------------------------------------------------------------------
# branch diff
# ---------------------------------------------------------------------------


@branch_group.command(name="diff")
@click.argument("from_branch_id")
@click.argument("to_branch_id")
@click.pass_context
def branch_diff(ctx: click.Context, from_branch_id: str, to_branch_id: str) -> None:
    """Show what turns FROM_BRANCH_ID into TO_BRANCH_ID."""
    manager = _manager_for_branch(ctx, from_branch_id)
    try:
        diff = manager.diff(from_branch_id, to_branch_id)
    except (ValidationError, BranchNotFoundError) as exc:
        _fail(exc)

    console.print(
        f"Common ancestor index: [bold]{diff.common_ancestor_index}[/bold]  "
        f"divergence point: [bold]{diff.divergence_point}[/bold]"
    )
    for message in diff.removed_messages:
        console.print(f"[red]- [{message.message_index}] {message.role.value}: {message.content}[/red]")
    for message in diff.added_messages:
        console.print(f"[green]+ [{message.message_index}] {message.role.value}: {message.content}[/green]")
    if diff.is_identical:
        console.print("[dim]Branches are identical.[/dim]")


# ---------------------------------------------------------------------------
# branch merge
# ---------------------------------------------------------------------------


@branch_group.command(name="merge")
@click.argument("source_branch_id")
@click.argument("target_branch_id")
@click.pass_context
def branch_merge(ctx: click.Context, source_branch_id: str, target_branch_id: str) -> None:
    """Merge SOURCE_BRANCH_ID into TARGET_BRANCH_ID.

    Exits with status 1 and lists the conflicting indices when the merge
    is rejected.
    """
    manager = _manager_for_branch(ctx, target_branch_id)
    try:
        result = manager.merge(source_branch_id, target_branch_id)
    except (ValidationError, BranchNotFoundError) as exc:
        _fail(exc)

    if not result.success:
        console.print(f"[red]{result.error}[/red]")
        console.print(
            "Conflicting indices: " + ", ".join(str(i) for i in result.conflict_indices)
        )
        sys.exit(1)
    console.print(
        f"[green]Merge approved:[/green] {result.merged_branch_id} "
        f"(divergence={result.divergence})"
    )


# ---------------------------------------------------------------------------
# branch tree
# ---------------------------------------------------------------------------


@branch_group.command(name="tree")
@click.argument("conversation_id")
@click.pass_context
def branch_tree(ctx: click.Context, conversation_id: str) -> None:
    """Render the branch hierarchy of CONVERSATION_ID."""
    manager = _manager(ctx, conversation_id)
    hierarchy = manager.tree()
    if not hierarchy.roots:
        console.print("[yellow]No branches found.[/yellow]")
        return

    root = Tree(f"[bold]{conversation_id}[/bold]")
    nodes: list[Tree] = [root]
    for level, branch in hierarchy.walk():
        del nodes[level + 1 :]
        label = f"{branch.name} [dim]({branch.branch_id[:8]}, {branch.message_count} msgs)[/dim]"
        if not branch.is_active:
            label += " [yellow]inactive[/yellow]"
        nodes.append(nodes[level].add(label))
    console.print(root)


# ---------------------------------------------------------------------------
# branch export
# ---------------------------------------------------------------------------


@branch_group.command(name="export")
@click.argument("branch_id")
@click.option(
    "--format",
    "export_format",
    default=None,
    type=click.Choice(["json", "yaml"]),
    help="Output format. Defaults to the configured export format.",
)
@click.option("--output", default=None, type=click.Path(dir_okay=False), help="Write to a file.")
@click.pass_context
def branch_export(
    ctx: click.Context,
    branch_id: str,
    export_format: str | None,
    output: str | None,
) -> None:
    """Export BRANCH_ID with its messages."""
    manager = _manager_for_branch(ctx, branch_id)
    document = manager.export_branch(branch_id, export_format)  # type: ignore[arg-type]
    if output:
        Path(output).write_text(document, encoding="utf-8")
        console.print(f"[green]Exported[/green] {branch_id} to {output}")
        return
    click.echo(document)


# ---------------------------------------------------------------------------
# branch merges
# ---------------------------------------------------------------------------


@branch_group.command(name="merges")
@click.argument("conversation_id")
@click.pass_context
def branch_merges(ctx: click.Context, conversation_id: str) -> None:
    """Show the merge log of CONVERSATION_ID."""
    records = _manager(ctx, conversation_id).list_merges()
    if not records:
        console.print("[yellow]No merges recorded.[/yellow]")
        return

    table = Table(title="Merge log")
    table.add_column("Source", style="cyan")
    table.add_column("Target", style="cyan")
    table.add_column("Result")
    table.add_column("Conflicts", justify="right")
    table.add_column("When")
    for record in records:
        table.add_row(
            record.source_branch_id,
            record.target_branch_id,
            f"[green]{record.merged_branch_id}[/green]" if record.succeeded else "[red]rejected[/red]",
            str(record.conflict_count),
            record.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


if __name__ == "__main__":
    cli()
