"""CLI command for sharing a code snippet to Microsoft Teams."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from teams_share.context import ShareContext
from teams_share.errors import DeliveryError, TeamsShareError
from teams_share.formatting import format_code_snippet, guess_language, select_lines
from teams_share.graph.chats import list_chats
from teams_share.graph.client import GraphClient
from teams_share.models import AccessToken, DeliveryReceipt, Recipient, ShareTarget

console = Console()
logger = logging.getLogger(__name__)


def _pick_chat(token: AccessToken) -> Optional[ShareTarget]:
    """Prompt for one of the user's chats. None if the user cancels."""
    client = GraphClient(token)
    my_id = client.get_me().get("id", "")
    chats = list_chats(client)
    if not chats:
        raise TeamsShareError("No Teams chats found. Make sure you have active chats in Microsoft Teams.")

    table = Table(title="Select a Teams chat to share the code")
    table.add_column("#", justify="right")
    table.add_column("Chat", style="cyan", max_width=50)
    table.add_column("Type", style="dim")
    for i, chat in enumerate(chats, 1):
        table.add_row(str(i), chat.label(my_id), chat.description())
    console.print(table)

    choice = click.prompt("Chat number (0 to cancel)", type=click.IntRange(0, len(chats)), default=1)
    if choice == 0:
        return None
    return ShareTarget.for_chat(chats[choice - 1], my_id)


def _parse_selection(raw: str, count: int) -> List[int]:
    picked = []
    for part in raw.replace(" ", "").split(","):
        if not part:
            continue
        if not part.isdigit() or not 1 <= int(part) <= count:
            raise click.BadParameter(f"'{part}' is not between 1 and {count}")
        if int(part) - 1 not in picked:
            picked.append(int(part) - 1)
    return picked


def _pick_recipients(recipients: List[Recipient]) -> Optional[ShareTarget]:
    """Prompt for one or more recipients. None if the user cancels."""
    table = Table(title="Select recipients")
    table.add_column("#", justify="right")
    table.add_column("Name", style="cyan", max_width=30)
    table.add_column("Email")
    table.add_column("Details", style="dim", max_width=40)
    for i, r in enumerate(recipients, 1):
        table.add_row(str(i), r.display_name, r.email, r.describe())
    console.print(table)

    raw = click.prompt("Recipient numbers, comma-separated (empty to cancel)", default="", show_default=False)
    picked = _parse_selection(raw, len(recipients))
    if not picked:
        return None
    return ShareTarget.for_recipients([recipients[i] for i in picked])


def _choose_target(
    ctx: ShareContext,
    chat_id: Optional[str],
    emails: Tuple[str, ...],
) -> Tuple[Optional[AccessToken], Optional[ShareTarget]]:
    if emails:
        return None, ShareTarget(emails=list(emails), label=", ".join(emails))

    token = ctx.authenticator.get_access_token()
    if chat_id:
        return token, ShareTarget(chat_id=chat_id, label=chat_id)

    if ctx.dispatcher.prefer_deep_link:
        return token, _pick_recipients(ctx.resolver.resolve(token))
    return token, _pick_chat(token)


def _stdin_is_free(file: Optional[str]) -> bool:
    """Whether stdin can still answer a prompt (it is spent once a piped snippet is read)."""
    return file is not None or click.get_text_stream("stdin").isatty()


def _report(receipt: DeliveryReceipt):
    if receipt.method == "graph":
        console.print(f"[green]✓[/green] Code shared to Teams chat \"{receipt.target.label}\"")
    else:
        console.print("[green]✓[/green] Microsoft Teams opened. Review the message and press send.")
        console.print(f"[dim]{receipt.url}[/dim]")


def _fallback_to_deep_link(ctx: ShareContext, target: Optional[ShareTarget], content: str):
    target = target or ShareTarget()
    try:
        receipt = ctx.dispatcher.send_via_deep_link(target, content)
    except DeliveryError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)
    _report(receipt)


@click.command("share")
@click.argument("file", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--lines", "-l", default=None, help="Line range to share, e.g. 10-40")
@click.option("--chat", "chat_id", default=None, help="Chat ID to post to (see: teams-share chats)")
@click.option("--to", "emails", multiple=True, help="Recipient email (opens a Teams deep link). Can repeat")
@click.option("--language", default=None, help="Language tag for the code fence")
@click.option("--no-language", is_flag=True, default=False, help="Don't tag the code fence")
@click.option("--deep-link", is_flag=True, default=False, help="Deliver via Teams deep link")
def share(
    file: Optional[str],
    lines: Optional[str],
    chat_id: Optional[str],
    emails: Tuple[str, ...],
    language: Optional[str],
    no_language: bool,
    deep_link: bool,
):
    """Share code from FILE (or stdin) to a Teams chat or people.

    \b
    Examples:
        teams-share share app.py --lines 10-40
        teams-share share app.py --chat 19:abc...@thread.v2
        git diff | teams-share share --language diff --to alex@contoso.com
    """
    ctx = ShareContext.from_config()
    if deep_link:
        ctx.dispatcher.prefer_deep_link = True

    raw = Path(file).read_text(encoding="utf-8") if file else click.get_text_stream("stdin").read()
    try:
        selected = select_lines(raw, lines)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)

    if no_language or not ctx.config.get("include_language", True):
        language = ""
    elif language is None:
        language = guess_language(file, selected)
    content = format_code_snippet(selected, language)

    target: Optional[ShareTarget] = None
    try:
        token, target = _choose_target(ctx, chat_id, emails)
        if target is None:
            console.print("[dim]Cancelled.[/dim]")
            return
        receipt = ctx.dispatcher.send(token, target, content)
    except TeamsShareError as exc:
        logger.debug("Share failed", exc_info=True)
        console.print(f"[red]Error:[/red] {exc}")
        if not _stdin_is_free(file):
            console.print("[dim]Snippet came from stdin; opening a Teams deep link instead.[/dim]")
        elif not click.confirm("Use Teams deep link instead?", default=True):
            sys.exit(1)
        _fallback_to_deep_link(ctx, target, content)
        return

    _report(receipt)
