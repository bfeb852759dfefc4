"""Security layer — Audit logger.

Writes append-only NDJSON audit records for every mutation of host state:
  - Backups taken and restored
  - Policy documents written (or left unchanged)
  - Restricted accounts created, removed, or recreation declined
  - Degraded delegation rules
  - Completed verification runs

One JSON object per line::

    {"event": "policy_applied", "timestamp": 1760857200.1, "operation": "apply", ...}

The audit trail is best effort: a write failure is logged but never turns
a successful operation into a failed one.  ``AuditLogger(None)`` disables
file output entirely.
"""

from __future__ import annotations

import json
import time
from enum import Enum
from pathlib import Path
from typing import Any

from assistant_guard.fsutil import inherit_owner
from assistant_guard.logging import get_logger

log = get_logger(__name__)


class AuditEvent(str, Enum):
    BACKUP_CREATED = "backup_created"
    POLICY_APPLIED = "policy_applied"
    POLICY_UNCHANGED = "policy_unchanged"
    POLICY_RESTORED = "policy_restored"
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_RECREATE_DECLINED = "account_recreate_declined"
    ACCOUNT_REMOVED = "account_removed"
    DELEGATION_DEGRADED = "delegation_degraded"
    VERIFICATION_COMPLETED = "verification_completed"


class AuditLogger:
    """Synchronous NDJSON audit logger.

    Usage::

        audit = AuditLogger(Path("~/.claude/assistant-guard-audit.ndjson"))
        audit.log(AuditEvent.POLICY_APPLIED, operation="apply", path="...")
    """

    def __init__(self, audit_file: Path | None = None) -> None:
        self._file = audit_file

    @property
    def audit_file(self) -> Path | None:
        return self._file

    def log(self, event: AuditEvent, operation: str | None = None, **data: Any) -> None:
        record = self._build_record(event, operation, data)
        log.debug("audit_event", audit_event=event.value, operation=operation)
        if self._file is None:
            return
        line = json.dumps(record, default=str) + "\n"
        try:
            created = not self._file.exists()
            self._file.parent.mkdir(parents=True, exist_ok=True)
            with self._file.open("a", encoding="utf-8") as f:
                f.write(line)
            if created:
                self._file.chmod(0o600)
                inherit_owner(self._file, self._file.parent)
        except OSError as exc:
            log.error("audit_write_failed", audit_event=event.value, error=str(exc))

    @staticmethod
    def _build_record(event: AuditEvent, operation: str | None, data: dict[str, Any]) -> dict[str, Any]:
        record: dict[str, Any] = {
            "event": event.value,
            "timestamp": time.time(),
        }
        if operation is not None:
            record["operation"] = operation
        record.update(data)
        return record
