"""Orchestration layer — Wiring.

Builds a fully assembled :class:`Orchestrator` from settings and the
detected host.  The CLI calls :func:`build_orchestrator`; tests either call
it with fakes for the host seams or construct the orchestrator directly.
"""

from __future__ import annotations

from pathlib import Path

from assistant_guard.account.manager import PrivilegeSeparationManager
from assistant_guard.account.models import AccountSpec
from assistant_guard.account.probes import ProbeFactory, SudoProbeFactory
from assistant_guard.account.system import HostCommands
from assistant_guard.account.verifier import AccountVerifier
from assistant_guard.config import Settings
from assistant_guard.host import HostContext
from assistant_guard.orchestration.orchestrator import Orchestrator
from assistant_guard.orchestration.prompts import (
    AutoConfirmer,
    BackupSelector,
    Confirmer,
    ConsoleBackupSelector,
)
from assistant_guard.policy.applier import PolicyApplier
from assistant_guard.policy.backup import BackupManager
from assistant_guard.policy.defaults import (
    build_default_document,
    build_expectations,
    resolve_project_dir,
)
from assistant_guard.policy.verifier import PolicyVerifier
from assistant_guard.security.audit import AuditLogger


def build_account_spec(settings: Settings, host: HostContext, project_dir: Path) -> AccountSpec:
    account = settings.account
    return AccountSpec(
        username=account.username,
        shared_directory=project_dir,
        invoking_user=host.user,
        invoking_group=host.group,
        shell=account.shell,
        launcher_path=account.launcher_path,
        sudoers_path=account.sudoers_path,
        assistant_command=account.assistant_command,
        env_allowlist=tuple(account.env_allowlist),
        delegation=account.delegation,
    )


def build_orchestrator(
    settings: Settings,
    host: HostContext | None = None,
    *,
    project_dir: Path | None = None,
    confirmer: Confirmer | None = None,
    selector: BackupSelector | None = None,
    commands: HostCommands | None = None,
    probes: ProbeFactory | None = None,
) -> Orchestrator:
    host = host or HostContext.detect()
    confirmer = confirmer or AutoConfirmer(False)
    commands = commands or HostCommands(default_timeout=settings.account.command_timeout_seconds)
    probes = probes or SudoProbeFactory(commands, timeout=settings.account.probe_timeout_seconds)

    project = resolve_project_dir(settings, host, project_dir)
    live_path = host.expand(settings.policy.settings_file)
    backups = BackupManager(host.expand(settings.policy.backup_dir), live_path)
    home_roots = host.home_roots()
    audit_file = settings.logging.audit_file

    return Orchestrator(
        document=build_default_document(settings, host, project),
        backups=backups,
        applier=PolicyApplier(backups, live_path, home_roots),
        policy_verifier=PolicyVerifier(live_path, build_expectations(settings, host, project)),
        accounts=PrivilegeSeparationManager(
            commands,
            settings.account,
            confirmer,
            home_roots=home_roots,
            denied_paths=[host.expand_pattern(p) for p in settings.policy.denied_paths],
        ),
        account_verifier=AccountVerifier(
            commands,
            probes,
            launcher_path=settings.account.launcher_path,
            credential_path=host.expand(settings.account.credential_probe_file),
            read_probe_file=settings.account.read_probe_file,
        ),
        account_spec=build_account_spec(settings, host, project),
        confirmer=confirmer,
        selector=selector or ConsoleBackupSelector(),
        audit=AuditLogger(host.expand(audit_file) if audit_file else None),
        backup_limit=settings.policy.backup_list_limit,
    )
