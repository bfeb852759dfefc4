"""Orchestration layer — Run state machine and reports.

Every operation walks a fixed sequence of steps through these states::

    idle -> backing_up -> applying -> verifying_policy -> creating_account
         -> verifying_account -> reporting -> idle

Operations that only need part of the sequence visit only their states.
Any step may jump straight to ``reporting``; the steps not yet run are
recorded as ``skipped`` so the operator knows where to resume.

Step status:
    passed | failed | skipped | declined
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from assistant_guard.policy.backup import BackupRecord
from assistant_guard.policy.models import PolicyDocument
from assistant_guard.report import VerificationReport


class GuardState(str, Enum):
    IDLE = "idle"
    SELECTING_BACKUP = "selecting_backup"
    BACKING_UP = "backing_up"
    APPLYING = "applying"
    RESTORING = "restoring"
    VERIFYING_POLICY = "verifying_policy"
    CONFIRMING = "confirming"
    CREATING_ACCOUNT = "creating_account"
    REMOVING_ACCOUNT = "removing_account"
    VERIFYING_ACCOUNT = "verifying_account"
    REPORTING = "reporting"


class StepStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    DECLINED = "declined"


@dataclass
class StepRecord:
    name: str
    state: GuardState
    status: StepStatus
    detail: str = ""
    report: VerificationReport | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "state": self.state.value,
            "status": self.status.value,
            "detail": self.detail,
        }
        if self.report is not None:
            data["report"] = self.report.to_dict()
        return data


@dataclass
class RunReport:
    """Per-step outcome of one operation. Never a bare exception."""

    operation: str
    steps: list[StepRecord] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not any(s.status is StepStatus.FAILED for s in self.steps)

    @property
    def declined(self) -> bool:
        return any(s.status is StepStatus.DECLINED for s in self.steps)

    def step(self, name: str) -> StepRecord | None:
        for record in self.steps:
            if record.name == name:
                return record
        return None

    def reports(self) -> list[VerificationReport]:
        return [s.report for s in self.steps if s.report is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation": self.operation,
            "ok": self.ok,
            "steps": [s.to_dict() for s in self.steps],
        }


@dataclass
class HostStatus:
    """Read-only snapshot returned by ``show``."""

    settings_path: str
    document: PolicyDocument | None
    document_error: str | None
    account: dict[str, Any]
    backups: list[BackupRecord]
    project_dir: str
