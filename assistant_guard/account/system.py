"""Account layer — Host command seam.

Every interaction with the OS account database and with privileged tools
(useradd, setfacl, visudo, sudo ...) goes through :class:`HostCommands`.
Commands always run with ``shell=False`` and a timeout; failures are
translated into :class:`~assistant_guard.exceptions.CommandError`.

Tests substitute a fake with the same four methods.
"""

from __future__ import annotations

import os
import pwd
import shutil
import subprocess
from dataclasses import dataclass
from typing import Sequence

from assistant_guard.exceptions import CommandError
from assistant_guard.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class HostCommands:
    def __init__(self, default_timeout: float = 60.0) -> None:
        self._default_timeout = default_timeout

    def run(
        self,
        argv: Sequence[str],
        *,
        timeout: float | None = None,
        check: bool = True,
    ) -> CommandResult:
        """Run *argv* and capture its output.

        With ``check=True`` a non-zero exit raises CommandError.  A command
        that cannot be started or that times out always raises CommandError
        with ``returncode=None``.
        """
        argv = tuple(argv)
        log.debug("command_run", argv=list(argv))
        try:
            proc = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout or self._default_timeout,
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandError(argv, None, f"timed out after {exc.timeout}s") from exc
        except OSError as exc:
            raise CommandError(argv, None, exc.strerror or str(exc)) from exc

        result = CommandResult(argv, proc.returncode, proc.stdout or "", proc.stderr or "")
        if check and not result.ok:
            raise CommandError(argv, result.returncode, result.stderr)
        return result

    def which(self, name: str) -> str | None:
        return shutil.which(name)

    def user_exists(self, username: str) -> bool:
        try:
            pwd.getpwnam(username)
        except KeyError:
            return False
        return True

    def home_of(self, username: str) -> str | None:
        try:
            return pwd.getpwnam(username).pw_dir
        except KeyError:
            return None

    def is_root(self) -> bool:
        return os.geteuid() == 0
