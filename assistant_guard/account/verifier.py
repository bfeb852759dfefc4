"""Account layer — Account verifier.

Confirms the restricted account is as restricted as intended by attempting
real operations as the account, never by reading configuration back.

Checks, in order:
  account_exists        the account is in the user database
  no_sudo_elevation     ``sudo -n true`` as the account fails
  shared_read           the account can read inside the shared directory
  shared_write          the account can create a file in the shared directory
  credential_protected  the account cannot read the operator's credential
  launcher_executable   the launcher exists and is executable

Checks 2-5 need the controller to act as the account (normally as root).
A preflight ``true`` guards them so a refused ``sudo`` is never mistaken
for a denied elevation.
"""

from __future__ import annotations

import os
from pathlib import Path

from assistant_guard.account.probes import Access, Probe, ProbeFactory, ProbeOutcome
from assistant_guard.account.system import HostCommands
from assistant_guard.exceptions import ProbeFailure
from assistant_guard.logging import get_logger
from assistant_guard.report import VerificationReport

log = get_logger(__name__)

REPORT_TITLE = "Account verification"
NO_ACCOUNT = "account does not exist"

_PROBED_CHECKS = ("no_sudo_elevation", "shared_read", "shared_write", "credential_protected")


class AccountVerifier:
    def __init__(
        self,
        commands: HostCommands,
        probes: ProbeFactory,
        launcher_path: Path,
        credential_path: Path,
        read_probe_file: str = "README.md",
    ) -> None:
        self._commands = commands
        self._probes = probes
        self._launcher_path = launcher_path
        self._credential_path = credential_path
        self._read_probe_file = read_probe_file

    def verify(self, username: str, shared_directory: Path) -> VerificationReport:
        report = VerificationReport(title=REPORT_TITLE)
        exists = self._commands.user_exists(username)
        report.add("account_exists", exists, username if exists else NO_ACCOUNT)

        if not exists:
            for name in _PROBED_CHECKS:
                report.add(name, False, NO_ACCOUNT)
        else:
            blocked = self._preflight(username)
            if blocked is not None:
                for name in _PROBED_CHECKS:
                    report.add(name, False, blocked)
            else:
                self._check_elevation(username, report)
                self._check_read(username, shared_directory, report)
                self._check_write(username, shared_directory, report)
                self._check_credential(username, report)

        self._check_launcher(report)
        log.info("account_verified", username=username, passed=report.passed, summary=report.summary())
        return report

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _preflight(self, username: str) -> str | None:
        try:
            outcome = self._probes.command(username, ["true"], name="act as account").run()
        except ProbeFailure as exc:
            return f"cannot act as {username}: {exc.detail}"
        if not outcome.succeeded:
            return f"cannot act as {username}: {outcome.detail}"
        return None

    def _check_elevation(self, username: str, report: VerificationReport) -> None:
        probe = self._probes.command(username, ["sudo", "-n", "true"], name="sudo elevation")
        outcome = self._attempt(probe)
        if isinstance(outcome, ProbeFailure):
            report.add("no_sudo_elevation", False, outcome.detail)
        elif outcome.succeeded:
            report.add("no_sudo_elevation", False, "account can elevate with sudo")
        else:
            report.add("no_sudo_elevation", True, "elevation refused")

    def _check_read(self, username: str, shared: Path, report: VerificationReport) -> None:
        target = shared / self._read_probe_file
        if shared.is_dir() and not target.exists():
            target = shared
        outcome = self._attempt(self._probes.file_access(username, target, Access.READ))
        if isinstance(outcome, ProbeFailure):
            report.add("shared_read", False, outcome.detail)
        else:
            report.add("shared_read", outcome.succeeded, outcome.detail)

    def _check_write(self, username: str, shared: Path, report: VerificationReport) -> None:
        outcome = self._attempt(self._probes.file_access(username, shared, Access.WRITE))
        if isinstance(outcome, ProbeFailure):
            report.add("shared_write", False, outcome.detail)
        else:
            report.add("shared_write", outcome.succeeded, outcome.detail)

    def _check_credential(self, username: str, report: VerificationReport) -> None:
        path = self._credential_path
        if not path.exists():
            report.add("credential_protected", True, f"{path} absent, nothing to protect")
            return
        probe = self._probes.file_access(username, path, Access.READ, require_exists=False)
        outcome = self._attempt(probe)
        if isinstance(outcome, ProbeFailure):
            report.add("credential_protected", False, outcome.detail)
        elif outcome.succeeded:
            report.add("credential_protected", False, f"account can read {path}")
        else:
            report.add("credential_protected", True, f"read of {path} denied")

    def _check_launcher(self, report: VerificationReport) -> None:
        path = self._launcher_path
        if not path.is_file():
            report.add("launcher_executable", False, f"{path} not found")
        elif not os.access(path, os.X_OK):
            report.add("launcher_executable", False, f"{path} is not executable")
        else:
            report.add("launcher_executable", True, str(path))

    def _attempt(self, probe: Probe) -> ProbeOutcome | ProbeFailure:
        """Run *probe*; a probe that could not run yields its ProbeFailure."""
        try:
            return probe.run()
        except ProbeFailure as exc:
            log.warning("probe_failed", probe=exc.probe, detail=exc.detail)
            return exc
