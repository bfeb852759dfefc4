"""Shared pytest fixtures for the assistant-guard test suite.

Nothing here touches a real OS account, ``/etc`` or the operator's home:
the host is a temporary directory, host commands and probes are fakes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Sequence

import pytest

from assistant_guard.account.models import AccountSpec
from assistant_guard.account.probes import Access, Probe, ProbeFactory, ProbeOutcome
from assistant_guard.account.system import CommandResult
from assistant_guard.config import Settings
from assistant_guard.exceptions import CommandError, ProbeFailure
from assistant_guard.host import HostContext
from assistant_guard.orchestration.factory import build_account_spec, build_orchestrator
from assistant_guard.orchestration.orchestrator import Orchestrator
from assistant_guard.orchestration.prompts import AutoConfirmer, BackupSelector
from assistant_guard.policy.backup import BackupRecord


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeCommands:
    """In-memory stand-in for HostCommands.

    ``useradd`` / ``userdel`` update ``users``; ``returncodes`` forces an exit
    status per program name; every argv is recorded in ``calls``.
    """

    def __init__(self) -> None:
        self.users: dict[str, str] = {}
        self.root = True
        self.available = {"setfacl", "visudo"}
        self.returncodes: dict[str, int] = {}
        self.calls: list[tuple[str, ...]] = []

    def run(self, argv: Sequence[str], *, timeout: float | None = None, check: bool = True) -> CommandResult:
        argv = tuple(argv)
        self.calls.append(argv)
        program = Path(argv[0]).name
        code = self.returncodes.get(program, 0)
        if code == 0 and program == "useradd":
            self.users[argv[-1]] = f"/home/{argv[-1]}"
        elif program == "userdel":
            if argv[-1] not in self.users:
                code = 6
            elif code in (0, 12):
                del self.users[argv[-1]]
        result = CommandResult(argv, code, "", "" if code == 0 else f"{program} failed")
        if check and code != 0:
            raise CommandError(argv, code, result.stderr)
        return result

    def which(self, name: str) -> str | None:
        return f"/usr/sbin/{name}" if name in self.available else None

    def user_exists(self, username: str) -> bool:
        return username in self.users

    def home_of(self, username: str) -> str | None:
        return self.users.get(username)

    def is_root(self) -> bool:
        return self.root

    def programs(self) -> list[str]:
        return [Path(c[0]).name for c in self.calls]


class FakeProbe(Probe):
    def __init__(self, name: str, result: ProbeOutcome | ProbeFailure) -> None:
        self.name = name
        self._result = result

    def run(self) -> ProbeOutcome:
        if isinstance(self._result, ProbeFailure):
            raise self._result
        return self._result


class FakeProbeFactory(ProbeFactory):
    """Probes answer from two tables; anything not listed succeeds.

    ``commands`` is keyed by argv tuple, ``files`` by access kind.
    """

    def __init__(self) -> None:
        self.commands: dict[tuple[str, ...], ProbeOutcome | ProbeFailure] = {
            ("sudo", "-n", "true"): ProbeOutcome(False, "sudo: a password is required"),
        }
        self.files: dict[Access, ProbeOutcome | ProbeFailure] = {
            Access.READ: ProbeOutcome(True, "readable"),
            Access.WRITE: ProbeOutcome(True, "writable"),
        }
        self.credential: ProbeOutcome | ProbeFailure = ProbeOutcome(False, "not readable")
        self.requested: list[tuple[str, Any]] = []

    def command(self, username: str, argv: Sequence[str], name: str | None = None) -> Probe:
        key = tuple(argv)
        self.requested.append(("command", key))
        return FakeProbe(name or " ".join(key), self.commands.get(key, ProbeOutcome(True, "ok")))

    def file_access(self, username: str, path: Path, access: Access, require_exists: bool = True) -> Probe:
        self.requested.append((access.value, path))
        if not require_exists:
            return FakeProbe(f"{access.value} {path}", self.credential)
        return FakeProbe(f"{access.value} {path}", self.files.get(access, ProbeOutcome(True, "ok")))


class ListSelector(BackupSelector):
    """Picks the record at ``index`` (or cancels with None)."""

    def __init__(self, index: int | None = 0) -> None:
        self.index = index
        self.offered: list[BackupRecord] = []

    def select(self, records: Sequence[BackupRecord]) -> BackupRecord | None:
        self.offered = list(records)
        if self.index is None:
            return None
        return records[self.index]


# ---------------------------------------------------------------------------
# Host + settings
# ---------------------------------------------------------------------------


@pytest.fixture
def host(tmp_path: Path) -> HostContext:
    home = tmp_path / "home" / "operator"
    home.mkdir(parents=True)
    return HostContext(user="operator", home=home, group="operator")


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    project = tmp_path / "work" / "project"
    (project / "src").mkdir(parents=True)
    (project / "README.md").write_text("# project\n")
    return project


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    settings = Settings(
        account={
            "launcher_path": str(tmp_path / "bin" / "claude-restricted"),
            "sudoers_dir": str(tmp_path / "sudoers.d"),
            "lock_dir": str(tmp_path / "lock"),
        },
        logging={
            "level": "debug",
            "format": "console",
            "audit_file": str(tmp_path / "audit" / "audit.ndjson"),
        },
    )
    return settings


@pytest.fixture
def live_path(host: HostContext) -> Path:
    return host.home / ".claude" / "settings.json"


@pytest.fixture
def fake_commands() -> FakeCommands:
    return FakeCommands()


@pytest.fixture
def fake_probes() -> FakeProbeFactory:
    return FakeProbeFactory()


@pytest.fixture
def audit_file(test_settings: Settings) -> Path:
    assert test_settings.logging.audit_file is not None
    return test_settings.logging.audit_file


@pytest.fixture
def make_orchestrator(
    test_settings: Settings,
    host: HostContext,
    project_dir: Path,
    fake_commands: FakeCommands,
    fake_probes: FakeProbeFactory,
) -> Callable[..., Orchestrator]:
    """Factory: make_orchestrator(confirm=True, selector=None, project=None)."""

    def _make(
        confirm: bool = True,
        selector: BackupSelector | None = None,
        project: Path | None = None,
    ) -> Orchestrator:
        return build_orchestrator(
            test_settings,
            host,
            project_dir=project or project_dir,
            confirmer=AutoConfirmer(confirm),
            selector=selector or ListSelector(0),
            commands=fake_commands,  # type: ignore[arg-type]
            probes=fake_probes,
        )

    return _make


@pytest.fixture
def list_selector() -> Callable[[int | None], ListSelector]:
    return ListSelector


@pytest.fixture
def account_spec(test_settings: Settings, host: HostContext, project_dir: Path) -> AccountSpec:
    return build_account_spec(test_settings, host, project_dir)
