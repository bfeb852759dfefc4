"""CLI — Per-invocation state shared by all commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from assistant_guard.config import Settings
from assistant_guard.exceptions import GuardError
from assistant_guard.host import HostContext
from assistant_guard.orchestration.factory import build_orchestrator
from assistant_guard.orchestration.orchestrator import Orchestrator
from assistant_guard.orchestration.prompts import (
    AutoConfirmer,
    ConsoleBackupSelector,
    ConsoleConfirmer,
)

console = Console()


@dataclass
class CliState:
    settings: Settings
    host: HostContext


def get_state(ctx: typer.Context) -> CliState:
    state = ctx.find_object(CliState)
    if state is None:
        raise RuntimeError("CLI state missing: main callback did not run")
    return state


def orchestrator_for(
    ctx: typer.Context,
    project_dir: Path | None = None,
    yes: bool = False,
) -> Orchestrator:
    """Build the orchestrator, exiting with status 1 on invalid configuration."""
    state = get_state(ctx)
    confirmer = AutoConfirmer(True) if yes else ConsoleConfirmer(console)
    try:
        return build_orchestrator(
            state.settings,
            state.host,
            project_dir=project_dir,
            confirmer=confirmer,
            selector=ConsoleBackupSelector(console),
        )
    except (GuardError, ValidationError) as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(1)
