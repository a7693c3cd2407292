"""CLI commands for Microsoft Teams authentication."""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click
from rich.console import Console

from teams_share.config import CAPABILITY_SCOPES, config_path, load_config, save_config
from teams_share.context import ShareContext
from teams_share.errors import LoginTimeoutError, TeamsShareError

console = Console()
logger = logging.getLogger(__name__)


@click.command("login")
@click.option("--force", is_flag=True, help="Skip the token cache and sign in again")
def login(force: bool):
    """Sign in to Microsoft Teams.

    Opens your browser for Microsoft sign-in and waits for the redirect
    on a local port. The token cache is stored under ~/.teams-share.
    """
    ctx = ShareContext.from_config()

    console.print("[bold]Signing in to Microsoft Teams...[/bold]")
    timeout = int(ctx.config.get("login_timeout", 300))
    console.print(f"[dim]Complete sign-in in your browser (timeout: {timeout // 60} minutes)...[/dim]")

    try:
        token = ctx.authenticator.get_access_token(force_interactive=force)
    except LoginTimeoutError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)
    except TeamsShareError as exc:
        console.print(f"[red]Authentication failed:[/red] {exc}")
        sys.exit(1)

    who = token.username or "your account"
    console.print(f"[green]✓[/green] Signed in as [bold]{who}[/bold]")


@click.command("logout")
def logout():
    """Sign out and remove the cached token."""
    ctx = ShareContext.from_config()
    errors = ctx.sign_out()
    for err in errors:
        console.print(f"[yellow]Warning while removing account:[/yellow] {err}")
    console.print("[green]✓[/green] Signed out from Microsoft Teams. Local token cache removed.")


@click.command("whoami")
def whoami():
    """Check current sign-in status."""
    ctx = ShareContext.from_config()
    try:
        account = ctx.authenticator.current_account()
    except TeamsShareError as exc:
        console.print(f"[yellow]✗[/yellow] {exc}")
        return

    if not account:
        console.print("[yellow]✗[/yellow] Not signed in. Run: teams-share login")
        return

    token = ctx.authenticator.acquire_silent()
    if token is None:
        console.print(
            f"[yellow]✗[/yellow] Session for {account.get('username')} expired. Run: teams-share login"
        )
        return

    console.print(f"[green]✓[/green] Signed in as {account.get('username')}")
    console.print(f"[dim]Scopes: {', '.join(sorted(token.scopes))}[/dim]")


@click.command("configure")
@click.option("--client-id", default=None, help="Azure app registration (client) ID")
@click.option("--client-secret", default=None, help="Client secret, for confidential app registrations")
@click.option("--tenant", default=None, help="'common', 'organizations' or a tenant ID/domain")
@click.option("--capability", type=click.Choice(sorted(CAPABILITY_SCOPES)), default=None,
              help="Which permission set to request")
@click.option("--port", type=int, default=None, help="Loopback port for the sign-in redirect")
@click.option("--timeout", type=int, default=None, help="Seconds to wait for browser sign-in")
@click.option("--prefer-deep-link/--prefer-graph", default=None,
              help="Deliver via Teams deep link instead of the Graph API")
def configure(
    client_id: Optional[str],
    client_secret: Optional[str],
    tenant: Optional[str],
    capability: Optional[str],
    port: Optional[int],
    timeout: Optional[int],
    prefer_deep_link: Optional[bool],
):
    """Write settings to ~/.teams-share/config.json.

    \b
    Examples:
        teams-share configure --client-id 00000000-0000-0000-0000-000000000000
        teams-share configure --tenant contoso.onmicrosoft.com --capability directory
    """
    config = load_config()
    updates = {
        "client_id": client_id,
        "client_secret": client_secret,
        "tenant": tenant,
        "capability": capability,
        "redirect_port": port,
        "login_timeout": timeout,
        "prefer_deep_link": prefer_deep_link,
    }
    changed = {k: v for k, v in updates.items() if v is not None}

    if changed:
        config.update(changed)
        save_config(config)
        console.print(f"[green]✓[/green] Saved {', '.join(sorted(changed))} to {config_path()}")
        if {"client_id", "tenant", "capability"} & set(changed):
            console.print("[dim]Sign in again for the change to take effect: teams-share login --force[/dim]")

    console.print(f"Client ID:  {config.get('client_id') or '[red]not set[/red]'}")
    console.print(f"Tenant:     {config.get('tenant')}")
    console.print(f"Capability: {config.get('capability')}")
    console.print(f"Redirect:   http://localhost:{config.get('redirect_port')}/auth/callback")
    console.print(f"Delivery:   {'deep link' if config.get('prefer_deep_link') else 'Graph API'}")
