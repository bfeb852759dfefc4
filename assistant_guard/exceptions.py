"""assistant-guard — Exception hierarchy.

All exceptions raised by the controller inherit from GuardError so that the
orchestrator can record any of them as a failed step with a single except
clause.  Low-level ``OSError`` / ``subprocess`` failures are translated into
this taxonomy at each component boundary.

Hierarchy:
    GuardError
    ├── ConfigurationError
    │   ├── ConfigurationMissingError
    │   └── ConfigurationCorruptError
    ├── PolicyViolationError
    ├── PolicyWriteError
    ├── BackupError
    │   └── BackupNotFoundError
    ├── NotFoundError
    │   └── BackupNotFoundError
    ├── AccountError
    │   ├── AccountPermissionError
    │   ├── AccountLockedError
    │   └── CommandError
    └── ProbeFailure
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Sequence


class GuardError(Exception):
    """Base exception for all assistant-guard errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


class NotFoundError(GuardError):
    """A referenced backup or account does not exist."""


# ---------------------------------------------------------------------------
# Live configuration
# ---------------------------------------------------------------------------


class ConfigurationError(GuardError):
    """Base for errors reading the live assistant configuration."""


class ConfigurationMissingError(ConfigurationError):
    """No live configuration exists yet (first run)."""

    def __init__(self, path: Path) -> None:
        super().__init__(
            f"No configuration found at {path}",
            context={"path": str(path)},
        )
        self.path = path


class ConfigurationCorruptError(ConfigurationError):
    """The live configuration exists but cannot be parsed."""

    def __init__(self, path: Path | None, reason: str) -> None:
        super().__init__(
            f"Configuration at {path} is unparsable: {reason}",
            context={"path": str(path) if path else None, "reason": reason},
        )
        self.path = path
        self.reason = reason


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


class PolicyViolationError(GuardError):
    """A policy document breaks one of the structural invariants."""

    def __init__(self, violations: Sequence[str]) -> None:
        super().__init__(
            "Policy document rejected: " + "; ".join(violations),
            context={"violations": list(violations)},
        )
        self.violations = list(violations)


class PolicyWriteError(GuardError):
    """The live configuration could not be written."""


class BackupError(GuardError):
    """Snapshot or restore of the live configuration failed."""


class BackupNotFoundError(BackupError, NotFoundError):
    """The stored copy referenced by a backup record no longer exists."""

    def __init__(self, reference: str) -> None:
        GuardError.__init__(
            self,
            f"Backup not found: {reference}",
            context={"backup": reference},
        )
        self.reference = reference


# ---------------------------------------------------------------------------
# Restricted account
# ---------------------------------------------------------------------------


class AccountError(GuardError):
    """Base for restricted-account lifecycle errors."""


class AccountPermissionError(AccountError):
    """The caller lacks the rights needed for account operations."""

    def __init__(self, operation: str, remediation: str) -> None:
        super().__init__(
            f"'{operation}' requires root privileges. {remediation}",
            context={"operation": operation, "remediation": remediation},
        )
        self.operation = operation
        self.remediation = remediation


class AccountLockedError(AccountError):
    """Another create/remove invocation holds the account lock."""

    def __init__(self, username: str, lock_path: Path) -> None:
        super().__init__(
            f"Another operation on account '{username}' is in progress (lock: {lock_path})",
            context={"username": username, "lock_path": str(lock_path)},
        )
        self.username = username
        self.lock_path = lock_path


class CommandError(AccountError):
    """A host command (useradd, setfacl, visudo ...) failed."""

    def __init__(self, argv: Sequence[str], returncode: int | None, stderr: str) -> None:
        cmd = " ".join(argv)
        detail = stderr.strip() or "no output"
        if returncode is None:
            message = f"Command could not run: {cmd}: {detail}"
        else:
            message = f"Command failed ({returncode}): {cmd}: {detail}"
        super().__init__(
            message,
            context={"argv": list(argv), "returncode": returncode, "stderr": stderr},
        )
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


class ProbeFailure(GuardError):
    """A verification probe could not execute at all."""

    def __init__(self, probe: str, detail: str) -> None:
        super().__init__(detail, context={"probe": probe})
        self.probe = probe
        self.detail = detail
