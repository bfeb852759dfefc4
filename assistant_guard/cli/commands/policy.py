"""CLI — Policy commands: apply, verify, show, rollback."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from assistant_guard.cli.render import render_run, render_status, run_to_json
from assistant_guard.cli.state import console, orchestrator_for

ProjectDir = Annotated[
    Path | None,
    typer.Option("--project-dir", "-p", help="Project directory the assistant may use (default: CWD)."),
]
JsonOutput = Annotated[bool, typer.Option("--json", help="Output the run report as JSON.")]

RESTART_REMINDER = "Restart the assistant for the new policy to take effect."


def apply(ctx: typer.Context, project_dir: ProjectDir = None) -> None:
    """Back up the live configuration and write the hardened policy."""
    run = orchestrator_for(ctx, project_dir).apply()
    render_run(console, run)
    if run.ok:
        console.print(f"[yellow]{RESTART_REMINDER}[/yellow]")
    raise typer.Exit(0 if run.ok else 1)


def verify(ctx: typer.Context, project_dir: ProjectDir = None, json_output: JsonOutput = False) -> None:
    """Check the live configuration against the hardened policy."""
    run = orchestrator_for(ctx, project_dir).verify()
    if json_output:
        console.print_json(run_to_json(run))
    else:
        render_run(console, run)
    raise typer.Exit(0 if run.ok else 1)


def show(ctx: typer.Context, project_dir: ProjectDir = None) -> None:
    """Print the live policy, account status and recent backups."""
    render_status(console, orchestrator_for(ctx, project_dir).show())


def rollback(
    ctx: typer.Context,
    backup: Annotated[
        str | None, typer.Option("--backup", "-b", help="Backup file name to restore without prompting.")
    ] = None,
    limit: Annotated[
        int | None, typer.Option("--limit", "-n", min=1, help="How many recent backups to offer.")
    ] = None,
) -> None:
    """Restore the live configuration from a backup."""
    run = orchestrator_for(ctx).rollback(backup_name=backup, limit=limit)
    render_run(console, run)
    if run.ok and not run.declined:
        console.print(f"[yellow]{RESTART_REMINDER}[/yellow]")
    raise typer.Exit(0 if run.ok else 1)
