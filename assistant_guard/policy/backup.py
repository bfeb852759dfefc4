"""Policy layer — Backup manager.

Snapshots the live configuration before every apply and restores a chosen
snapshot on rollback.  The manager exclusively owns the backup directory;
from the rest of the system's perspective it is append-only.  Retention is
left to external cleanup.

Backups are plain byte copies named by timestamp::

    settings_backup_20261019_071502_123456.json
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from assistant_guard.exceptions import (
    BackupError,
    BackupNotFoundError,
    ConfigurationCorruptError,
    ConfigurationMissingError,
)
from assistant_guard.fsutil import atomic_write_bytes, inherit_owner
from assistant_guard.logging import get_logger

log = get_logger(__name__)

_PREFIX = "settings_backup_"
_SUFFIX = ".json"
_STAMP_FORMAT = "%Y%m%d_%H%M%S_%f"


@dataclass(frozen=True)
class BackupRecord:
    """Immutable reference to one stored copy of the live configuration."""

    timestamp: datetime
    source_path: Path
    stored_copy_path: Path

    @property
    def name(self) -> str:
        return self.stored_copy_path.name


def _parse_name(name: str) -> tuple[datetime, int] | None:
    """Return (timestamp, collision counter) for a backup file name."""
    if not (name.startswith(_PREFIX) and name.endswith(_SUFFIX)):
        return None
    stem = name[len(_PREFIX) : -len(_SUFFIX)]
    stamp, _, counter = stem.partition("-")
    try:
        return datetime.strptime(stamp, _STAMP_FORMAT), int(counter or 1)
    except ValueError:
        return None


class BackupManager:
    """Snapshot / restore / list copies of the live configuration.

    Usage::

        manager = BackupManager(backup_dir, live_path)
        record = manager.snapshot()
        manager.restore(manager.list_recent(1)[0])
    """

    def __init__(self, backup_dir: Path, live_path: Path) -> None:
        self._backup_dir = backup_dir
        self._live_path = live_path

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    @property
    def live_path(self) -> Path:
        return self._live_path

    def snapshot(self, live_path: Path | None = None) -> BackupRecord:
        """Copy the live configuration into the backup directory.

        Raises:
            ConfigurationMissingError: There is no live configuration yet.
            ConfigurationCorruptError: The live configuration is not valid JSON.
            BackupError: The copy could not be written.
        """
        source = live_path or self._live_path
        try:
            raw = source.read_bytes()
        except FileNotFoundError as exc:
            raise ConfigurationMissingError(source) from exc
        except OSError as exc:
            raise BackupError(
                f"Cannot read {source}: {exc.strerror or exc}",
                context={"path": str(source)},
            ) from exc

        try:
            json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ConfigurationCorruptError(source, str(exc)) from exc

        now = datetime.now()
        try:
            self._ensure_dir()
            target = self._unique_target(now)
            with open(target, "xb") as f:
                f.write(raw)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(target, 0o600)
            inherit_owner(target, self._backup_dir)
        except OSError as exc:
            raise BackupError(
                f"Cannot write backup to {self._backup_dir}: {exc.strerror or exc}",
                context={"backup_dir": str(self._backup_dir)},
            ) from exc

        record = BackupRecord(timestamp=now, source_path=source, stored_copy_path=target)
        log.info("backup_created", backup=str(target), source=str(source))
        return record

    def restore(self, record: BackupRecord) -> None:
        """Atomically overwrite the record's source path with its stored copy.

        Raises:
            BackupNotFoundError: The stored copy no longer exists.
            BackupError: The restore could not be written.
        """
        try:
            content = record.stored_copy_path.read_bytes()
        except FileNotFoundError as exc:
            raise BackupNotFoundError(str(record.stored_copy_path)) from exc
        except OSError as exc:
            raise BackupError(
                f"Cannot read backup {record.stored_copy_path}: {exc}",
                context={"backup": str(record.stored_copy_path)},
            ) from exc

        try:
            atomic_write_bytes(record.source_path, content)
        except OSError as exc:
            raise BackupError(
                f"Cannot restore {record.source_path}: {exc.strerror or exc}",
                context={"path": str(record.source_path)},
            ) from exc
        log.info("backup_restored", backup=record.name, target=str(record.source_path))

    def list_recent(self, n: int = 5) -> list[BackupRecord]:
        """Return up to *n* backups, newest first."""
        if not self._backup_dir.is_dir():
            return []
        ranked: list[tuple[datetime, int, BackupRecord]] = []
        for entry in self._backup_dir.iterdir():
            parsed = _parse_name(entry.name)
            if parsed is None or not entry.is_file():
                continue
            stamp, counter = parsed
            record = BackupRecord(timestamp=stamp, source_path=self._live_path, stored_copy_path=entry)
            ranked.append((stamp, counter, record))
        ranked.sort(key=lambda item: (item[0], item[1]), reverse=True)
        return [record for _, _, record in ranked[:n]]

    def find(self, name: str) -> BackupRecord:
        """Look up a backup by file name.

        Raises:
            BackupNotFoundError: No backup with that name exists.
        """
        candidate = self._backup_dir / Path(name).name
        parsed = _parse_name(candidate.name)
        if parsed is None or not candidate.is_file():
            raise BackupNotFoundError(name)
        return BackupRecord(timestamp=parsed[0], source_path=self._live_path, stored_copy_path=candidate)

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _ensure_dir(self) -> None:
        if not self._backup_dir.exists():
            self._backup_dir.mkdir(parents=True, mode=0o700)
            inherit_owner(self._backup_dir, self._backup_dir.parent)
            log.debug("backup_dir_created", path=str(self._backup_dir))

    def _unique_target(self, now: datetime) -> Path:
        base = f"{_PREFIX}{now.strftime(_STAMP_FORMAT)}"
        target = self._backup_dir / f"{base}{_SUFFIX}"
        counter = 1
        while target.exists():
            counter += 1
            target = self._backup_dir / f"{base}-{counter}{_SUFFIX}"
        return target
