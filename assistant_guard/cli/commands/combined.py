"""CLI — Combined commands: full hardening and the overall check."""

from __future__ import annotations

import typer

from assistant_guard.cli.commands.account import AssumeYes
from assistant_guard.cli.commands.policy import RESTART_REMINDER, JsonOutput, ProjectDir
from assistant_guard.cli.render import render_run, run_to_json
from assistant_guard.cli.state import console, orchestrator_for


def full(ctx: typer.Context, project_dir: ProjectDir = None, yes: AssumeYes = False) -> None:
    """Backup, apply, verify, create the account and verify it."""
    run = orchestrator_for(ctx, project_dir, yes=yes).full()
    render_run(console, run)
    if run.ok:
        console.print(f"[yellow]{RESTART_REMINDER}[/yellow]")
    raise typer.Exit(0 if run.ok else 1)


def check(ctx: typer.Context, project_dir: ProjectDir = None, json_output: JsonOutput = False) -> None:
    """Verify the policy, the account (if any) and that they agree."""
    run = orchestrator_for(ctx, project_dir).check()
    if json_output:
        console.print_json(run_to_json(run))
    else:
        render_run(console, run)
    raise typer.Exit(0 if run.ok else 1)
