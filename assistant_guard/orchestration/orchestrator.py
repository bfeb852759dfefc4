"""Orchestration layer — Operation sequencing.

The orchestrator turns an operation name into a fixed sequence of steps,
runs them, and assembles a :class:`RunReport`.  It never lets an exception
escape: a ``GuardError`` becomes a failed step carrying its message, any
other exception a failed step with ``unexpected error: ...``.

After a failed step the remaining steps are recorded as ``skipped`` (except
for ``check``, which always runs every verifier).  A declined confirmation
stops the sequence without failing it.  Completed steps are never rolled
back automatically; ``rollback`` is a separate, explicit operation.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from assistant_guard.account.launcher import read_launcher_shared_dir
from assistant_guard.account.manager import PrivilegeSeparationManager
from assistant_guard.account.models import AccountSpec
from assistant_guard.account.verifier import AccountVerifier
from assistant_guard.config import DelegationMode
from assistant_guard.exceptions import ConfigurationError, GuardError
from assistant_guard.logging import bind_operation, get_logger
from assistant_guard.orchestration.prompts import BackupSelector, Confirmer
from assistant_guard.orchestration.state import (
    GuardState,
    HostStatus,
    RunReport,
    StepRecord,
    StepStatus,
)
from assistant_guard.policy.applier import PolicyApplier
from assistant_guard.policy.backup import BackupManager
from assistant_guard.policy.models import PolicyDocument
from assistant_guard.policy.verifier import PolicyVerifier
from assistant_guard.report import UNREADABLE_DETAIL, VerificationReport
from assistant_guard.security.audit import AuditEvent, AuditLogger

log = get_logger(__name__)

SKIPPED_AFTER_FAILURE = "not run: earlier step failed"
SKIPPED_AFTER_DECLINE = "not run: declined"
NO_ACCOUNT = "no restricted account"


@dataclass
class StepResult:
    status: StepStatus
    detail: str = ""
    report: VerificationReport | None = None
    halt: bool = False


@dataclass
class _Step:
    name: str
    state: GuardState
    action: Callable[[], StepResult]


class Orchestrator:
    """Sequences policy and account operations.

    Usage::

        orchestrator = build_orchestrator(settings, host, confirmer=AutoConfirmer(True))
        report = orchestrator.full()
        sys.exit(0 if report.ok else 1)
    """

    def __init__(
        self,
        *,
        document: PolicyDocument,
        backups: BackupManager,
        applier: PolicyApplier,
        policy_verifier: PolicyVerifier,
        accounts: PrivilegeSeparationManager,
        account_verifier: AccountVerifier,
        account_spec: AccountSpec,
        confirmer: Confirmer,
        selector: BackupSelector,
        audit: AuditLogger | None = None,
        backup_limit: int = 5,
    ) -> None:
        self._document = document
        self._backups = backups
        self._applier = applier
        self._policy_verifier = policy_verifier
        self._accounts = accounts
        self._account_verifier = account_verifier
        self._spec = account_spec
        self._confirmer = confirmer
        self._selector = selector
        self._audit = audit or AuditLogger(None)
        self._backup_limit = backup_limit
        self._operation = ""

    @property
    def document(self) -> PolicyDocument:
        return self._document

    @property
    def account_spec(self) -> AccountSpec:
        return self._spec

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def apply(self) -> RunReport:
        return self._run("apply", [self._backup_step(), self._apply_step()])

    def verify(self) -> RunReport:
        return self._run("verify", [self._verify_policy_step()])

    def create_account(self) -> RunReport:
        return self._run("create_account", [self._create_account_step()])

    def remove_account(self) -> RunReport:
        username = self._spec.username

        def confirm() -> StepResult:
            question = f"Remove restricted account '{username}', its home, launcher and delegation rule?"
            if self._confirmer.ask(question):
                return StepResult(StepStatus.PASSED, "confirmed")
            return StepResult(StepStatus.DECLINED, "removal declined by operator", halt=True)

        def remove() -> StepResult:
            existed = self._accounts.remove_account(username, self._spec.shared_directory)
            self._audit.log(
                AuditEvent.ACCOUNT_REMOVED,
                operation=self._operation,
                username=username,
                existed=existed,
            )
            if existed:
                return StepResult(StepStatus.PASSED, f"account '{username}' removed")
            return StepResult(StepStatus.PASSED, f"account '{username}' did not exist; leftovers cleaned")

        return self._run(
            "remove_account",
            [
                _Step("confirm", GuardState.CONFIRMING, confirm),
                _Step("remove_account", GuardState.REMOVING_ACCOUNT, remove),
            ],
        )

    def verify_account(self) -> RunReport:
        return self._run("verify_account", [self._verify_account_step()])

    def full(self) -> RunReport:
        return self._run(
            "full",
            [
                self._backup_step(),
                self._apply_step(),
                self._verify_policy_step(),
                self._create_account_step(),
                self._verify_account_step(),
            ],
        )

    def check(self) -> RunReport:
        return self._run(
            "check",
            [
                self._verify_policy_step(),
                self._verify_account_step(skip_if_absent=True),
                _Step("policy_account_consistency", GuardState.VERIFYING_ACCOUNT, self._consistency),
            ],
            halt_on_failure=False,
        )

    def rollback(self, backup_name: str | None = None, limit: int | None = None) -> RunReport:
        chosen: dict[str, Any] = {}

        def select() -> StepResult:
            if backup_name:
                record = self._backups.find(backup_name)
            else:
                records = self._backups.list_recent(limit or self._backup_limit)
                if not records:
                    return StepResult(
                        StepStatus.FAILED, f"no backups available in {self._backups.backup_dir}"
                    )
                record = self._selector.select(records)
                if record is None:
                    return StepResult(StepStatus.DECLINED, "rollback cancelled", halt=True)
            chosen["record"] = record
            return StepResult(StepStatus.PASSED, record.name)

        def restore() -> StepResult:
            record = chosen["record"]
            self._backups.restore(record)
            self._audit.log(
                AuditEvent.POLICY_RESTORED,
                operation=self._operation,
                backup=str(record.stored_copy_path),
                path=str(record.source_path),
            )
            return StepResult(StepStatus.PASSED, f"restored {record.source_path} from {record.name}")

        return self._run(
            "rollback",
            [
                _Step("select_backup", GuardState.SELECTING_BACKUP, select),
                _Step("restore_backup", GuardState.RESTORING, restore),
            ],
        )

    def show(self) -> HostStatus:
        """Read-only snapshot of the live document, account and backups."""
        document: PolicyDocument | None = None
        error: str | None = None
        try:
            document = self._policy_verifier.read_document()
        except ConfigurationError as exc:
            error = exc.message
        return HostStatus(
            settings_path=str(self._policy_verifier.live_path),
            document=document,
            document_error=error,
            account=self._accounts.describe(self._spec.username),
            backups=self._backups.list_recent(self._backup_limit),
            project_dir=str(self._spec.shared_directory),
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _backup_step(self) -> _Step:
        def backup() -> StepResult:
            record = self._applier.backup()
            if record is None:
                return StepResult(StepStatus.PASSED, "nothing to back up")
            self._audit.log(
                AuditEvent.BACKUP_CREATED,
                operation=self._operation,
                backup=str(record.stored_copy_path),
                source=str(record.source_path),
            )
            return StepResult(StepStatus.PASSED, f"saved {record.name}")

        return _Step("backup", GuardState.BACKING_UP, backup)

    def _apply_step(self) -> _Step:
        def apply_policy() -> StepResult:
            changed = self._applier.write(self._document)
            event = AuditEvent.POLICY_APPLIED if changed else AuditEvent.POLICY_UNCHANGED
            self._audit.log(
                event,
                operation=self._operation,
                path=str(self._applier.live_path),
                allowed=list(self._document.allowed_directories),
            )
            if changed:
                return StepResult(StepStatus.PASSED, f"wrote {self._applier.live_path}")
            return StepResult(StepStatus.PASSED, f"{self._applier.live_path} already up to date")

        return _Step("apply_policy", GuardState.APPLYING, apply_policy)

    def _verify_policy_step(self) -> _Step:
        def verify_policy() -> StepResult:
            return self._verification(self._policy_verifier.verify(), scope="policy")

        return _Step("verify_policy", GuardState.VERIFYING_POLICY, verify_policy)

    def _create_account_step(self) -> _Step:
        def create() -> StepResult:
            account = self._accounts.create_account(self._spec)
            if account is None:
                self._audit.log(
                    AuditEvent.ACCOUNT_RECREATE_DECLINED,
                    operation=self._operation,
                    username=self._spec.username,
                )
                return StepResult(StepStatus.DECLINED, "account exists; recreation declined, nothing changed")
            self._audit.log(
                AuditEvent.ACCOUNT_CREATED,
                operation=self._operation,
                username=account.username,
                shared_directory=str(account.shared_directory),
                access=account.access_mechanism,
                delegation=account.delegation_mode.value,
            )
            if account.delegation_mode is DelegationMode.BROAD:
                self._audit.log(
                    AuditEvent.DELEGATION_DEGRADED,
                    operation=self._operation,
                    username=account.username,
                    rule=str(account.delegation_rule_path),
                )
            return StepResult(
                StepStatus.PASSED,
                f"created '{account.username}' ({account.access_mechanism} access, "
                f"{account.delegation_mode.value} delegation)",
            )

        return _Step("create_account", GuardState.CREATING_ACCOUNT, create)

    def _verify_account_step(self, skip_if_absent: bool = False) -> _Step:
        def verify_account() -> StepResult:
            if skip_if_absent and not self._accounts.account_exists(self._spec.username):
                return StepResult(StepStatus.SKIPPED, NO_ACCOUNT)
            report = self._account_verifier.verify(self._spec.username, self._spec.shared_directory)
            return self._verification(report, scope="account")

        return _Step("verify_account", GuardState.VERIFYING_ACCOUNT, verify_account)

    def _consistency(self) -> StepResult:
        if not self._accounts.account_exists(self._spec.username):
            return StepResult(StepStatus.SKIPPED, NO_ACCOUNT)
        try:
            document = self._policy_verifier.read_document()
        except ConfigurationError:
            return StepResult(StepStatus.FAILED, UNREADABLE_DETAIL)
        shared = read_launcher_shared_dir(self._spec.launcher_path)
        if shared is None:
            return StepResult(
                StepStatus.FAILED,
                f"cannot read shared directory from launcher {self._spec.launcher_path}",
            )
        allowed = document.allowed_directories
        if len(allowed) != 1 or Path(allowed[0]) != shared:
            return StepResult(
                StepStatus.FAILED,
                f"account shares {shared} but policy allows {', '.join(allowed) or 'nothing'}",
            )
        return StepResult(StepStatus.PASSED, f"account and policy both use {shared}")

    def _verification(self, report: VerificationReport, scope: str) -> StepResult:
        self._audit.log(
            AuditEvent.VERIFICATION_COMPLETED,
            operation=self._operation,
            scope=scope,
            passed=report.passed,
            failed=[c.name for c in report.failed()],
        )
        status = StepStatus.PASSED if report.passed else StepStatus.FAILED
        return StepResult(status, report.summary(), report=report)

    # ------------------------------------------------------------------
    # Runner
    # ------------------------------------------------------------------

    def _run(self, operation: str, steps: list[_Step], halt_on_failure: bool = True) -> RunReport:
        self._operation = operation
        bind_operation(operation)
        run = RunReport(operation=operation)
        skip_detail: str | None = None
        log.info("operation_started", steps=[s.name for s in steps])

        for step in steps:
            if skip_detail is not None:
                run.steps.append(StepRecord(step.name, step.state, StepStatus.SKIPPED, skip_detail))
                continue

            result = self._execute(step)
            run.steps.append(
                StepRecord(step.name, step.state, result.status, result.detail, result.report)
            )
            if result.status is StepStatus.FAILED and halt_on_failure:
                skip_detail = SKIPPED_AFTER_FAILURE
            elif result.status is StepStatus.DECLINED and result.halt:
                skip_detail = SKIPPED_AFTER_DECLINE

        log.info(
            "operation_finished",
            state=GuardState.REPORTING.value,
            ok=run.ok,
            statuses={s.name: s.status.value for s in run.steps},
        )
        bind_operation(None)
        return run

    def _execute(self, step: _Step) -> StepResult:
        log.info("step_started", step=step.name, state=step.state.value)
        try:
            result = step.action()
        except GuardError as exc:
            log.error("step_failed", step=step.name, error=exc.message, **exc.context)
            return StepResult(StepStatus.FAILED, exc.message)
        except Exception as exc:
            log.exception("step_crashed", step=step.name)
            return StepResult(StepStatus.FAILED, f"unexpected error: {exc}")
        log.info("step_finished", step=step.name, status=result.status.value)
        return result
