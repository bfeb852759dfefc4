"""Account layer — Process-level critical section for account lifecycle.

Create and remove each run a multi-step sequence (useradd, grants, launcher,
sudoers) that the account database does not make atomic.  Two invocations
against the same account name are serialised with an ``flock`` on a lock
file keyed by that name; contention fails fast instead of waiting.
"""

from __future__ import annotations

import fcntl
import os
from pathlib import Path
from types import TracebackType

from assistant_guard.exceptions import AccountError, AccountLockedError
from assistant_guard.logging import get_logger

log = get_logger(__name__)


class AccountLock:
    """Exclusive non-blocking lock for one account name.

    Usage::

        with AccountLock(lock_dir, "claude-restricted"):
            ...
    """

    def __init__(self, lock_dir: Path, username: str) -> None:
        self._username = username
        self._path = lock_dir / f"assistant-guard-{username}.lock"
        self._fd: int | None = None

    @property
    def path(self) -> Path:
        return self._path

    def acquire(self) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(self._path, os.O_RDWR | os.O_CREAT, 0o600)
        except OSError as exc:
            raise AccountError(
                f"Cannot open lock file {self._path}: {exc.strerror or exc}",
                context={"lock_path": str(self._path)},
            ) from exc
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            os.close(fd)
            raise AccountLockedError(self._username, self._path) from exc
        self._fd = fd
        log.debug("account_lock_acquired", username=self._username, path=str(self._path))

    def release(self) -> None:
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        log.debug("account_lock_released", username=self._username)

    def __enter__(self) -> "AccountLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
