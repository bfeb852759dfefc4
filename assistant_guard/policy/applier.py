"""Policy layer — Policy applier.

Writes a full PolicyDocument to the live configuration location.  The
applier is the only component that writes the live file outside of a
rollback restore.

Order of operations:
  1. Snapshot the current live file (missing -> nothing to back up,
     corrupt -> warn and continue; hardening is never blocked by a broken
     prior state).
  2. Reject documents that break the structural invariants.
  3. Serialise deterministically and write atomically (temp + rename).
     Identical bytes are left untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from assistant_guard.exceptions import (
    ConfigurationCorruptError,
    ConfigurationMissingError,
    PolicyViolationError,
    PolicyWriteError,
)
from assistant_guard.fsutil import atomic_write_text, read_bytes_or_none
from assistant_guard.logging import get_logger
from assistant_guard.policy.backup import BackupManager, BackupRecord
from assistant_guard.policy.invariants import find_violations
from assistant_guard.policy.models import PolicyDocument

log = get_logger(__name__)


@dataclass(frozen=True)
class ApplyResult:
    backup: BackupRecord | None
    changed: bool


class PolicyApplier:
    """Backs up, validates and writes policy documents.

    Usage::

        applier = PolicyApplier(backups, live_path, home_roots)
        result = applier.apply(document)
    """

    def __init__(
        self,
        backups: BackupManager,
        live_path: Path,
        home_roots: Iterable[str],
    ) -> None:
        self._backups = backups
        self._live_path = live_path
        self._home_roots = frozenset(home_roots)

    @property
    def live_path(self) -> Path:
        return self._live_path

    def backup(self) -> BackupRecord | None:
        """Snapshot the live file; None when there is nothing to back up.

        Raises:
            BackupError: The live file exists but could not be copied.
        """
        try:
            return self._backups.snapshot(self._live_path)
        except ConfigurationMissingError:
            log.info("nothing_to_back_up", path=str(self._live_path))
            return None
        except ConfigurationCorruptError as exc:
            log.warning("live_config_corrupt", path=str(self._live_path), reason=exc.reason)
            return None

    def validate(self, document: PolicyDocument) -> None:
        violations = find_violations(document, self._home_roots, require_existing=True)
        if violations:
            raise PolicyViolationError(violations)

    def write(self, document: PolicyDocument) -> bool:
        """Write *document* to the live path. Returns False if already identical.

        Raises:
            PolicyViolationError: The document breaks a structural invariant.
            PolicyWriteError: The live file could not be written.
        """
        self.validate(document)
        payload = document.to_json()

        try:
            current = read_bytes_or_none(self._live_path)
        except OSError:
            current = None
        if current == payload.encode("utf-8"):
            log.info("policy_unchanged", path=str(self._live_path))
            return False

        try:
            atomic_write_text(self._live_path, payload)
        except OSError as exc:
            raise PolicyWriteError(
                f"Cannot write {self._live_path}: {exc.strerror or exc}",
                context={"path": str(self._live_path)},
            ) from exc
        log.info(
            "policy_written",
            path=str(self._live_path),
            allowed=list(document.allowed_directories),
            denied_count=len(document.denied_paths),
        )
        return True

    def apply(self, document: PolicyDocument) -> ApplyResult:
        record = self.backup()
        changed = self.write(document)
        return ApplyResult(backup=record, changed=changed)
