"""Unit tests — Orchestrator operations end to end against a temp host."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from assistant_guard.config import DelegationMode
from assistant_guard.orchestration.orchestrator import (
    NO_ACCOUNT,
    SKIPPED_AFTER_DECLINE,
    SKIPPED_AFTER_FAILURE,
)
from assistant_guard.orchestration.state import GuardState, StepStatus
from assistant_guard.policy.applier import PolicyApplier
from assistant_guard.policy.models import PolicyDocument

USER = "claude-restricted"


def _events(audit_file: Path) -> list[str]:
    if not audit_file.exists():
        return []
    return [json.loads(line)["event"] for line in audit_file.read_text().splitlines()]


def _statuses(run) -> dict[str, StepStatus]:
    return {s.name: s.status for s in run.steps}


@pytest.fixture
def other_project(tmp_path: Path) -> Path:
    path = tmp_path / "work" / "other"
    path.mkdir(parents=True)
    return path


@pytest.mark.unit
class TestApply:
    def test_first_apply_writes_without_backup(self, make_orchestrator, live_path: Path, project_dir: Path) -> None:
        run = make_orchestrator().apply()

        assert run.ok
        assert run.step("backup").detail == "nothing to back up"
        assert run.step("apply_policy").detail == f"wrote {live_path}"
        document = PolicyDocument.read(live_path)
        assert document.allowed_directories == (str(project_dir),)

    def test_repeat_apply_is_idempotent(self, make_orchestrator, live_path: Path, audit_file: Path) -> None:
        orchestrator = make_orchestrator()
        orchestrator.apply()
        first = live_path.read_bytes()

        second = orchestrator.apply()
        third = orchestrator.apply()

        assert second.ok and third.ok
        assert live_path.read_bytes() == first
        assert third.step("apply_policy").detail.endswith("already up to date")
        assert len(orchestrator.show().backups) == 2
        assert _events(audit_file).count("policy_unchanged") == 2

    def test_replaces_live_document_wholesale(self, make_orchestrator, live_path: Path) -> None:
        live_path.parent.mkdir(parents=True)
        live_path.write_text(json.dumps({"theme": "dark", "permissions": {"additionalDirectories": ["/"]}}))

        run = make_orchestrator().apply()

        assert run.ok
        assert run.step("backup").detail.startswith("saved settings_backup_")
        data = json.loads(live_path.read_text())
        assert "theme" not in data
        assert data["permissions"]["additionalDirectories"] != ["/"]

    def test_unexpected_exception_becomes_failed_step(
        self, make_orchestrator, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def boom(self, document):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(PolicyApplier, "write", boom)
        run = make_orchestrator().apply()

        assert not run.ok
        assert run.step("apply_policy").status is StepStatus.FAILED
        assert run.step("apply_policy").detail == "unexpected error: disk on fire"


@pytest.mark.unit
class TestVerify:
    def test_verify_after_apply(self, make_orchestrator) -> None:
        orchestrator = make_orchestrator()
        orchestrator.apply()
        run = orchestrator.verify()

        assert run.ok
        report = run.step("verify_policy").report
        assert report.passed_count == 4
        assert run.step("verify_policy").detail == "4/4 checks passed"

    def test_verify_without_live_file(self, make_orchestrator) -> None:
        run = make_orchestrator().verify()
        assert not run.ok
        assert run.step("verify_policy").report.passed_count == 0


@pytest.mark.unit
class TestFull:
    def test_full_run(self, make_orchestrator, fake_commands, test_settings, audit_file: Path) -> None:
        run = make_orchestrator().full()

        assert run.ok, run.to_dict()
        assert [s.name for s in run.steps] == [
            "backup",
            "apply_policy",
            "verify_policy",
            "create_account",
            "verify_account",
        ]
        assert [s.state for s in run.steps] == [
            GuardState.BACKING_UP,
            GuardState.APPLYING,
            GuardState.VERIFYING_POLICY,
            GuardState.CREATING_ACCOUNT,
            GuardState.VERIFYING_ACCOUNT,
        ]
        assert fake_commands.user_exists(USER)
        assert test_settings.account.launcher_path.exists()
        assert len(run.reports()) == 2
        events = _events(audit_file)
        assert "policy_applied" in events
        assert "account_created" in events
        assert events.count("verification_completed") == 2

    def test_failure_skips_remaining_steps(self, make_orchestrator, fake_commands) -> None:
        fake_commands.root = False
        run = make_orchestrator().full()

        assert not run.ok
        create = run.step("create_account")
        assert create.status is StepStatus.FAILED
        assert "requires root" in create.detail
        verify = run.step("verify_account")
        assert verify.status is StepStatus.SKIPPED
        assert verify.detail == SKIPPED_AFTER_FAILURE

    def test_declined_recreate_continues(self, make_orchestrator, fake_commands, audit_file: Path) -> None:
        fake_commands.users[USER] = f"/home/{USER}"
        run = make_orchestrator(confirm=False).full()

        assert run.declined
        assert run.step("create_account").status is StepStatus.DECLINED
        assert run.step("verify_account").status is not StepStatus.SKIPPED
        assert "useradd" not in fake_commands.programs()
        assert "account_recreate_declined" in _events(audit_file)

    def test_broad_delegation_is_audited(self, make_orchestrator, test_settings, audit_file: Path) -> None:
        test_settings.account.delegation = DelegationMode.BROAD
        run = make_orchestrator().full()
        assert run.ok
        assert "broad delegation" in run.step("create_account").detail
        assert "delegation_degraded" in _events(audit_file)


@pytest.mark.unit
class TestCheck:
    def test_no_account(self, make_orchestrator) -> None:
        orchestrator = make_orchestrator()
        orchestrator.apply()
        run = orchestrator.check()

        assert run.ok
        assert _statuses(run) == {
            "verify_policy": StepStatus.PASSED,
            "verify_account": StepStatus.SKIPPED,
            "policy_account_consistency": StepStatus.SKIPPED,
        }
        assert run.step("verify_account").detail == NO_ACCOUNT

    def test_runs_every_step_after_failure(self, make_orchestrator, fake_commands) -> None:
        orchestrator = make_orchestrator()
        orchestrator.full()
        Path(orchestrator.show().settings_path).unlink()

        run = orchestrator.check()

        assert not run.ok
        assert run.step("verify_policy").status is StepStatus.FAILED
        assert run.step("verify_account").status is StepStatus.PASSED
        assert run.step("policy_account_consistency").status is StepStatus.FAILED

    def test_consistent_after_full(self, make_orchestrator, project_dir: Path) -> None:
        orchestrator = make_orchestrator()
        orchestrator.full()
        run = orchestrator.check()
        assert run.ok
        assert run.step("policy_account_consistency").detail == f"account and policy both use {project_dir}"

    def test_inconsistent_project(self, make_orchestrator, other_project: Path) -> None:
        make_orchestrator().full()
        moved = make_orchestrator(project=other_project)
        moved.apply()

        run = moved.check()

        consistency = run.step("policy_account_consistency")
        assert consistency.status is StepStatus.FAILED
        assert str(other_project) in consistency.detail


@pytest.mark.unit
class TestRemoveAccount:
    def test_declined(self, make_orchestrator, fake_commands) -> None:
        fake_commands.users[USER] = f"/home/{USER}"
        run = make_orchestrator(confirm=False).remove_account()

        assert run.ok
        assert run.step("confirm").status is StepStatus.DECLINED
        remove = run.step("remove_account")
        assert remove.status is StepStatus.SKIPPED
        assert remove.detail == SKIPPED_AFTER_DECLINE
        assert fake_commands.user_exists(USER)

    def test_removes_after_full(self, make_orchestrator, fake_commands, audit_file: Path) -> None:
        orchestrator = make_orchestrator()
        orchestrator.full()
        run = orchestrator.remove_account()

        assert run.ok
        assert run.step("remove_account").detail == f"account '{USER}' removed"
        assert not fake_commands.user_exists(USER)
        assert "account_removed" in _events(audit_file)

    def test_absent_account(self, make_orchestrator) -> None:
        run = make_orchestrator().remove_account()
        assert run.ok
        assert "did not exist" in run.step("remove_account").detail


@pytest.mark.unit
class TestAccountScope:
    def test_home_directory_is_not_shared(self, make_orchestrator, fake_commands, host) -> None:
        run = make_orchestrator(project=host.home).create_account()

        assert not run.ok
        create = run.step("create_account")
        assert create.status is StepStatus.FAILED
        assert "entire home directory" in create.detail
        assert "useradd" not in fake_commands.programs()
        assert "setfacl" not in fake_commands.programs()

    def test_remove_from_other_project_revokes_real_share(
        self, make_orchestrator, fake_commands, project_dir: Path, other_project: Path
    ) -> None:
        assert make_orchestrator().create_account().ok
        fake_commands.calls.clear()

        run = make_orchestrator(project=other_project).remove_account()

        assert run.ok
        assert ("setfacl", "-R", "-x", f"u:{USER}", str(project_dir)) in fake_commands.calls
        assert ("setfacl", "-R", "-x", f"u:{USER}", str(other_project)) not in fake_commands.calls


@pytest.mark.unit
class TestRollback:
    def test_restores_previous_document(
        self, make_orchestrator, list_selector, live_path: Path, project_dir: Path, other_project: Path
    ) -> None:
        make_orchestrator().apply()
        original = live_path.read_bytes()
        make_orchestrator(project=other_project).apply()
        assert PolicyDocument.read(live_path).allowed_directories == (str(other_project),)

        selector = list_selector(0)
        run = make_orchestrator(selector=selector).rollback()

        assert run.ok
        assert len(selector.offered) == 1
        assert live_path.read_bytes() == original
        assert PolicyDocument.read(live_path).allowed_directories == (str(project_dir),)

    def test_named_backup(self, make_orchestrator, live_path: Path, other_project: Path) -> None:
        orchestrator = make_orchestrator()
        orchestrator.apply()
        original = live_path.read_bytes()
        make_orchestrator(project=other_project).apply()
        name = orchestrator.show().backups[0].name

        run = orchestrator.rollback(backup_name=name)

        assert run.ok
        assert run.step("select_backup").detail == name
        assert live_path.read_bytes() == original

    def test_unknown_name(self, make_orchestrator) -> None:
        run = make_orchestrator().rollback(backup_name="settings_backup_20000101_000000_000000.json")
        assert not run.ok
        assert run.step("restore_backup").status is StepStatus.SKIPPED

    def test_cancelled(self, make_orchestrator, list_selector, live_path: Path) -> None:
        orchestrator = make_orchestrator()
        orchestrator.apply()
        orchestrator.apply()
        before = live_path.read_bytes()

        run = make_orchestrator(selector=list_selector(None)).rollback()

        assert run.ok
        assert run.declined
        assert run.step("select_backup").detail == "rollback cancelled"
        assert run.step("restore_backup").detail == SKIPPED_AFTER_DECLINE
        assert live_path.read_bytes() == before

    def test_no_backups(self, make_orchestrator) -> None:
        run = make_orchestrator().rollback()
        assert not run.ok
        assert run.step("select_backup").detail.startswith("no backups available in ")


@pytest.mark.unit
class TestShow:
    def test_missing_live_file(self, make_orchestrator, live_path: Path) -> None:
        status = make_orchestrator().show()
        assert status.document is None
        assert status.document_error
        assert status.settings_path == str(live_path)
        assert status.account["exists"] is False
        assert status.backups == []

    def test_after_apply(self, make_orchestrator, project_dir: Path) -> None:
        orchestrator = make_orchestrator()
        orchestrator.apply()
        status = orchestrator.show()
        assert status.document is not None
        assert status.document.allowed_directories == (str(project_dir),)
        assert status.project_dir == str(project_dir)
