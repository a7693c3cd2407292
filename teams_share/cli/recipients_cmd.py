"""CLI commands for browsing share targets: recipients and chats."""

from __future__ import annotations

import sys

import click
from rich.console import Console
from rich.table import Table

from teams_share.context import ShareContext
from teams_share.errors import TeamsShareError
from teams_share.graph.chats import list_chats
from teams_share.graph.client import GraphClient

console = Console()


@click.group("recipients")
def recipients_cli():
    """Resolve and manage people you can share with."""
    pass


@recipients_cli.command("list")
@click.option("--limit", default=50, help="Max rows to show")
def list_recipients(limit: int):
    """List recipients from contacts, people and (optionally) the directory."""
    ctx = ShareContext.from_config()
    try:
        token = ctx.authenticator.get_access_token()
        recipients = ctx.resolver.resolve(token)
    except TeamsShareError as exc:
        console.print(f"[red]Failed to get contacts:[/red] {exc}")
        sys.exit(1)

    table = Table(title=f"Recipients ({len(recipients)})")
    table.add_column("Name", style="cyan", max_width=30)
    table.add_column("Email")
    table.add_column("Details", style="dim", max_width=40)
    table.add_column("Manual", justify="center")

    for r in recipients[:limit]:
        table.add_row(r.display_name, r.email, r.describe(), "✓" if r.is_manual else "")

    console.print(table)
    if len(recipients) > limit:
        console.print(f"[dim]... and {len(recipients) - limit} more (use --limit)[/dim]")


@recipients_cli.command("add")
@click.argument("email")
def add_recipient(email: str):
    """Add a recipient by email address."""
    ctx = ShareContext.from_config()
    try:
        added = ctx.add_manual_recipient(email)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)

    if added:
        console.print(f"[green]✓[/green] Added {email}")
    else:
        console.print(f"[yellow]{email} is already in your manual recipients[/yellow]")


@click.command("chats")
def chats():
    """List your existing Teams chats."""
    ctx = ShareContext.from_config()
    try:
        token = ctx.authenticator.get_access_token()
        client = GraphClient(token)
        my_id = client.get_me().get("id", "")
        found = list_chats(client)
    except TeamsShareError as exc:
        console.print(f"[red]Failed to get Teams chats:[/red] {exc}")
        sys.exit(1)

    if not found:
        console.print("[yellow]No Teams chats found.[/yellow]")
        return

    table = Table(title=f"Chats ({len(found)})")
    table.add_column("Chat", style="cyan", max_width=40)
    table.add_column("Type", style="dim")
    table.add_column("ID", style="dim")
    for chat in found:
        table.add_row(chat.label(my_id), chat.description(), chat.id)
    console.print(table)
