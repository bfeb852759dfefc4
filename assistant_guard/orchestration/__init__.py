"""Orchestration layer — operation sequencing, run reports and prompts."""

from assistant_guard.orchestration.factory import build_account_spec, build_orchestrator
from assistant_guard.orchestration.orchestrator import Orchestrator, StepResult
from assistant_guard.orchestration.prompts import (
    AutoConfirmer,
    BackupSelector,
    Confirmer,
    ConsoleBackupSelector,
    ConsoleConfirmer,
)
from assistant_guard.orchestration.state import (
    GuardState,
    HostStatus,
    RunReport,
    StepRecord,
    StepStatus,
)

__all__ = [
    "AutoConfirmer",
    "BackupSelector",
    "Confirmer",
    "ConsoleBackupSelector",
    "ConsoleConfirmer",
    "GuardState",
    "HostStatus",
    "Orchestrator",
    "RunReport",
    "StepRecord",
    "StepResult",
    "StepStatus",
    "build_account_spec",
    "build_orchestrator",
]
