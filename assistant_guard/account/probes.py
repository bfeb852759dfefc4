"""Account layer — Capability probes.

A probe attempts one real operation *as* the restricted account and reports
whether it succeeded.  The account verifier only sees the :class:`Probe`
interface, so its logic can be exercised with fakes that never touch an OS
account.

Probes run through ``sudo -n -u <account>``: ``-n`` guarantees that a missing
credential fails immediately instead of waiting on a password prompt, and
every call carries a short timeout.

A probe *outcome* (``succeeded`` True or False) is a measurement.  A probe
that could not measure anything raises :class:`ProbeFailure` instead.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Sequence

from assistant_guard.account.system import HostCommands
from assistant_guard.exceptions import CommandError, ProbeFailure
from assistant_guard.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ProbeOutcome:
    succeeded: bool
    detail: str = ""


class Access(str, Enum):
    READ = "read"
    WRITE = "write"
    EXECUTE = "execute"


class Probe(ABC):
    name: str

    @abstractmethod
    def run(self) -> ProbeOutcome:
        """Attempt the operation.

        Raises:
            ProbeFailure: The probe could not execute at all.
        """


class CommandProbe(Probe):
    """Run *argv* as *username*; success means exit status 0."""

    def __init__(
        self,
        runner: HostCommands,
        username: str,
        argv: Sequence[str],
        timeout: float = 5.0,
        name: str | None = None,
    ) -> None:
        self._runner = runner
        self._username = username
        self._argv = tuple(argv)
        self._timeout = timeout
        self.name = name or " ".join(self._argv)

    def run(self) -> ProbeOutcome:
        argv = ["sudo", "-n", "-u", self._username, "--", *self._argv]
        try:
            result = self._runner.run(argv, timeout=self._timeout, check=False)
        except CommandError as exc:
            raise ProbeFailure(self.name, exc.stderr.strip() or exc.message) from exc
        detail = (result.stderr or result.stdout).strip()
        log.debug("probe_ran", probe=self.name, returncode=result.returncode)
        return ProbeOutcome(result.ok, detail or f"exit status {result.returncode}")


class FileAccessProbe(Probe):
    """Test read, write or execute access to *path* as *username*.

    ``write`` against a directory creates and removes a real probe file.
    With ``require_exists`` a missing target raises ProbeFailure with detail
    ``directory not found`` or ``file not found``.
    """

    def __init__(
        self,
        runner: HostCommands,
        username: str,
        path: Path,
        access: Access,
        require_exists: bool = True,
        timeout: float = 5.0,
    ) -> None:
        self._runner = runner
        self._username = username
        self._path = path
        self._access = Access(access)
        self._require_exists = require_exists
        self._timeout = timeout
        self.name = f"{self._access.value} {path}"

    def run(self) -> ProbeOutcome:
        if self._require_exists:
            self._check_exists()

        if self._access is Access.WRITE and self._path.is_dir():
            return self._write_directory()

        flag = {Access.READ: "-r", Access.WRITE: "-w", Access.EXECUTE: "-x"}[self._access]
        outcome = self._as_user(["test", flag, str(self._path)])
        verb = {Access.READ: "readable", Access.WRITE: "writable", Access.EXECUTE: "executable"}[
            self._access
        ]
        if outcome.succeeded:
            return ProbeOutcome(True, f"{self._path} is {verb}")
        return ProbeOutcome(False, f"{self._path} is not {verb}")

    def _check_exists(self) -> None:
        if self._access is Access.WRITE:
            if not self._path.is_dir():
                raise ProbeFailure(self.name, "directory not found")
            return
        if not self._path.exists():
            detail = "file not found" if self._path.parent.is_dir() else "directory not found"
            raise ProbeFailure(self.name, detail)

    def _write_directory(self) -> ProbeOutcome:
        target = self._path / f".assistant-guard-probe-{uuid.uuid4().hex[:12]}"
        created = self._as_user(["touch", str(target)])
        if not created.succeeded:
            return ProbeOutcome(False, f"cannot create files in {self._path}: {created.detail}")
        removed = self._as_user(["rm", "-f", str(target)])
        if not removed.succeeded:
            log.warning("probe_file_left_behind", path=str(target), detail=removed.detail)
        return ProbeOutcome(True, f"created and removed {target.name}")

    def _as_user(self, argv: list[str]) -> ProbeOutcome:
        return CommandProbe(self._runner, self._username, argv, self._timeout, name=self.name).run()


class ProbeFactory(ABC):
    """Builds the probes the account verifier runs."""

    @abstractmethod
    def command(self, username: str, argv: Sequence[str], name: str | None = None) -> Probe: ...

    @abstractmethod
    def file_access(
        self, username: str, path: Path, access: Access, require_exists: bool = True
    ) -> Probe: ...


class SudoProbeFactory(ProbeFactory):
    def __init__(self, runner: HostCommands, timeout: float = 5.0) -> None:
        self._runner = runner
        self._timeout = timeout

    def command(self, username: str, argv: Sequence[str], name: str | None = None) -> Probe:
        return CommandProbe(self._runner, username, argv, self._timeout, name=name)

    def file_access(
        self, username: str, path: Path, access: Access, require_exists: bool = True
    ) -> Probe:
        return FileAccessProbe(self._runner, username, path, access, require_exists, self._timeout)
