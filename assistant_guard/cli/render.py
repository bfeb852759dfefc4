"""CLI — rich rendering of run reports and host status."""

from __future__ import annotations

import json

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from assistant_guard.orchestration.state import HostStatus, RunReport, StepStatus
from assistant_guard.report import VerificationReport

_STATUS_STYLE = {
    StepStatus.PASSED: "[green]passed[/green]",
    StepStatus.FAILED: "[red]failed[/red]",
    StepStatus.SKIPPED: "[yellow]skipped[/yellow]",
    StepStatus.DECLINED: "[yellow]declined[/yellow]",
}


def _yes_no(value: bool | None) -> str:
    if value is None:
        return "[yellow]unknown[/yellow]"
    return "[green]yes[/green]" if value else "[red]no[/red]"


def render_verification(console: Console, report: VerificationReport) -> None:
    table = Table(title=report.title)
    table.add_column("Check", style="cyan")
    table.add_column("Result")
    table.add_column("Detail")
    for check in report.checks:
        table.add_row(
            check.name,
            "[green]PASS[/green]" if check.passed else "[red]FAIL[/red]",
            escape(check.detail),
        )
    console.print(table)
    console.print(report.summary())


def render_run(console: Console, run: RunReport) -> None:
    table = Table(title=f"assistant-guard {run.operation.replace('_', '-')}")
    table.add_column("Step", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")
    for step in run.steps:
        table.add_row(step.name, _STATUS_STYLE[step.status], escape(step.detail))
    console.print(table)

    for report in run.reports():
        render_verification(console, report)

    if not run.ok:
        console.print("[bold red]FAILED[/bold red]")
    elif run.declined:
        console.print("[bold yellow]Nothing changed (declined)[/bold yellow]")
    else:
        console.print("[bold green]OK[/bold green]")


def render_status(console: Console, status: HostStatus) -> None:
    console.print(f"[bold]Live configuration[/bold] {status.settings_path}")
    if status.document is not None:
        console.print(Syntax(status.document.to_json(), "json"))
    else:
        console.print(f"[red]{escape(status.document_error or '')}[/red]")

    table = Table(title="Restricted account")
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    account = status.account
    table.add_row("username", account["username"])
    table.add_row("exists", _yes_no(account["exists"]))
    table.add_row("home", account.get("home") or "-")
    table.add_row("launcher", f"{account['launcher_path']} ({_yes_no(account['launcher_installed'])})")
    table.add_row(
        "delegation rule",
        f"{account['delegation_rule_path']} ({_yes_no(account['delegation_rule_installed'])})",
    )
    table.add_row("delegation mode", account["delegation_mode"])
    table.add_row("project directory", status.project_dir)
    console.print(table)

    backups = Table(title="Recent backups")
    backups.add_column("Name", style="cyan")
    backups.add_column("Taken")
    for record in status.backups:
        backups.add_row(record.name, record.timestamp.strftime("%Y-%m-%d %H:%M:%S"))
    if status.backups:
        console.print(backups)
    else:
        console.print("No backups yet.")


def run_to_json(run: RunReport) -> str:
    return json.dumps(run.to_dict(), indent=2)
