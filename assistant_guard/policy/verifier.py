"""Policy layer — Policy verifier.

Re-reads the live configuration from disk and scores it against the
expected shape.  Nothing is taken from memory: the verifier reports what the
assistant will actually load at startup.

Checks (each independently scored):
  allowed_directories   exactly one entry, equal to the project directory
  required_denials      every required pattern is present in the deny list
  no_broad_access       no root, no home root, no allow that contains a deny
  persistence_service   the persistence helper is declared with the expected
                        launch command

A configuration that cannot be read at all is a hard stop: the report holds
a single failed check with detail ``configuration unreadable``.
"""

from __future__ import annotations

import os.path
from pathlib import Path

from assistant_guard.exceptions import ConfigurationError
from assistant_guard.logging import get_logger
from assistant_guard.policy.defaults import PolicyExpectations
from assistant_guard.policy.invariants import broad_access_violations
from assistant_guard.policy.models import PolicyDocument
from assistant_guard.report import VerificationReport

log = get_logger(__name__)

REPORT_TITLE = "Policy verification"


class PolicyVerifier:
    def __init__(self, live_path: Path, expectations: PolicyExpectations) -> None:
        self._live_path = live_path
        self._expected = expectations

    @property
    def live_path(self) -> Path:
        return self._live_path

    def read_document(self) -> PolicyDocument:
        """Parse the live configuration.

        Raises:
            ConfigurationMissingError / ConfigurationCorruptError.
        """
        return PolicyDocument.read(self._live_path)

    def verify(self) -> VerificationReport:
        try:
            document = self.read_document()
        except ConfigurationError as exc:
            log.warning("policy_unreadable", path=str(self._live_path), error=exc.message)
            return VerificationReport.unreadable(REPORT_TITLE)

        report = VerificationReport(title=REPORT_TITLE)
        self._check_allowed(document, report)
        self._check_denials(document, report)
        self._check_broad_access(document, report)
        self._check_service(document, report)
        log.info(
            "policy_verified",
            path=str(self._live_path),
            passed=report.passed,
            summary=report.summary(),
        )
        return report

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check_allowed(self, document: PolicyDocument, report: VerificationReport) -> None:
        allowed = document.allowed_directories
        expected = os.path.normpath(self._expected.project_dir)
        if len(allowed) != 1:
            report.add(
                "allowed_directories",
                False,
                f"expected exactly one allowed directory, found {len(allowed)}",
            )
        elif allowed[0] != expected:
            report.add("allowed_directories", False, f"{allowed[0]} != expected {expected}")
        else:
            report.add("allowed_directories", True, expected)

    def _check_denials(self, document: PolicyDocument, report: VerificationReport) -> None:
        present = set(document.denied_paths)
        missing = [p for p in self._expected.required_denials if p.rstrip("/") not in present]
        if missing:
            report.add("required_denials", False, "missing: " + ", ".join(missing))
        else:
            report.add(
                "required_denials",
                True,
                f"{len(self._expected.required_denials)} required denials present",
            )

    def _check_broad_access(self, document: PolicyDocument, report: VerificationReport) -> None:
        violations = broad_access_violations(
            document.allowed_directories,
            document.denied_paths,
            self._expected.home_roots,
        )
        if violations:
            report.add("no_broad_access", False, "; ".join(violations))
        else:
            report.add("no_broad_access", True, "no root, home or denial-covering allow")

    def _check_service(self, document: PolicyDocument, report: VerificationReport) -> None:
        name = self._expected.service_name
        service = document.auxiliary_services.get(name)
        if service is None:
            report.add("persistence_service", False, f"service '{name}' not declared")
            return
        if service.command != self._expected.service_command:
            report.add(
                "persistence_service",
                False,
                f"command {service.command!r} != expected {self._expected.service_command!r}",
            )
            return
        if tuple(service.args) != self._expected.service_args:
            report.add(
                "persistence_service",
                False,
                f"args {list(service.args)} != expected {list(self._expected.service_args)}",
            )
            return
        report.add("persistence_service", True, f"{service.command} {' '.join(service.args)}")
