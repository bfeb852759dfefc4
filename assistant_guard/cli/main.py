"""assistant-guard CLI — Entry point.

Usage:
    assistant-guard apply [--project-dir DIR]
    assistant-guard verify [--project-dir DIR] [--json]
    assistant-guard show
    assistant-guard rollback [--backup NAME] [--limit N]
    sudo assistant-guard create-account [--project-dir DIR] [--yes]
    sudo assistant-guard remove-account [--yes]
    sudo assistant-guard verify-account [--project-dir DIR]
    sudo assistant-guard full [--project-dir DIR] [--yes]
    sudo assistant-guard check [--project-dir DIR] [--json]
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.markup import escape

from assistant_guard.cli.commands import account, combined, policy
from assistant_guard.cli.state import CliState, console
from assistant_guard.config import Settings
from assistant_guard.host import HostContext
from assistant_guard.logging import configure_logging

app = typer.Typer(
    name="assistant-guard",
    help="Harden and verify the filesystem access of a local AI coding assistant.",
    no_args_is_help=True,
    pretty_exceptions_enable=False,
)

app.command("apply")(policy.apply)
app.command("verify")(policy.verify)
app.command("show")(policy.show)
app.command("rollback")(policy.rollback)
app.command("create-account")(account.create_account)
app.command("remove-account")(account.remove_account)
app.command("verify-account")(account.verify_account)
app.command("full")(combined.full)
app.command("check")(combined.check)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="Path to config.yaml.")
    ] = None,
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="debug, info, warning, error.")
    ] = None,
    log_format: Annotated[
        str | None, typer.Option("--log-format", help="console or json.")
    ] = None,
) -> None:
    host = HostContext.detect()
    try:
        settings = Settings.load(config_file=config, user_home=host.home)
    except ValidationError as exc:
        console.print(f"[red]Invalid configuration: {escape(str(exc))}[/red]")
        raise typer.Exit(1)

    log_file = settings.logging.file
    configure_logging(
        level=log_level or settings.logging.level,
        format=log_format or settings.logging.format,
        log_file=host.expand(log_file) if log_file else None,
    )
    ctx.obj = CliState(settings=settings, host=host)


if __name__ == "__main__":
    app()
