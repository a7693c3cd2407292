"""teams-share CLI: share code snippets to Microsoft Teams."""

import locale
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from teams_share.cli.auth_cmd import configure, login, logout, whoami
from teams_share.cli.recipients_cmd import chats, recipients_cli
from teams_share.cli.share_cmd import share

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # msal and urllib3 are chatty at INFO
    for name in ("msal", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Show progress logs")
def cli(verbose: bool):
    """Send code from your terminal to Microsoft Teams."""
    setup_logging(verbose)
    try:
        locale.setlocale(locale.LC_COLLATE, "")
    except locale.Error as exc:
        logger.debug("Keeping the default collation locale: %s", exc)


cli.add_command(share)
cli.add_command(chats)
cli.add_command(recipients_cli)
cli.add_command(login)
cli.add_command(logout)
cli.add_command(whoami)
cli.add_command(configure)


if __name__ == "__main__":
    cli()
