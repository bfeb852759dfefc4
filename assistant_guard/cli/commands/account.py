"""CLI — Restricted account commands."""

from __future__ import annotations

from typing import Annotated

import typer

from assistant_guard.cli.commands.policy import ProjectDir
from assistant_guard.cli.render import render_run
from assistant_guard.cli.state import console, orchestrator_for

AssumeYes = Annotated[bool, typer.Option("--yes", "-y", help="Answer yes to every confirmation.")]


def create_account(ctx: typer.Context, project_dir: ProjectDir = None, yes: AssumeYes = False) -> None:
    """Create the restricted account with access to the project directory (root)."""
    orchestrator = orchestrator_for(ctx, project_dir, yes=yes)
    run = orchestrator.create_account()
    render_run(console, run)
    if run.ok and not run.declined:
        launcher = orchestrator.account_spec.launcher_path
        console.print(f"Start the assistant as the restricted account with: [bold]{launcher}[/bold]")
    raise typer.Exit(0 if run.ok else 1)


def remove_account(ctx: typer.Context, yes: AssumeYes = False) -> None:
    """Remove the restricted account, its launcher and delegation rule (root)."""
    run = orchestrator_for(ctx, yes=yes).remove_account()
    render_run(console, run)
    raise typer.Exit(0 if run.ok else 1)


def verify_account(ctx: typer.Context, project_dir: ProjectDir = None) -> None:
    """Probe what the restricted account can actually do."""
    run = orchestrator_for(ctx, project_dir).verify_account()
    render_run(console, run)
    raise typer.Exit(0 if run.ok else 1)
