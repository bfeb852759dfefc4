"""Unit tests — HostContext detection and path expansion."""

from __future__ import annotations

import getpass
from pathlib import Path

import pytest

from assistant_guard.host import HostContext


@pytest.mark.unit
class TestExpand:
    def test_tilde_alone(self, host: HostContext) -> None:
        assert host.expand("~") == host.home

    def test_tilde_prefix(self, host: HostContext) -> None:
        assert host.expand("~/.claude/settings.json") == host.home / ".claude" / "settings.json"

    def test_absolute_untouched(self, host: HostContext) -> None:
        assert host.expand(Path("/etc/shadow")) == Path("/etc/shadow")

    def test_pattern_keeps_globs(self, host: HostContext) -> None:
        assert host.expand_pattern("~/.*rc") == f"{host.home}/.*rc"
        assert host.expand_pattern("/etc/ssh") == "/etc/ssh"

    def test_other_users_tilde_not_expanded(self, host: HostContext) -> None:
        assert host.expand_pattern("~root/.ssh") == "~root/.ssh"


@pytest.mark.unit
class TestDetect:
    def test_sudo_user_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        current = getpass.getuser()
        monkeypatch.setenv("SUDO_USER", current)
        assert HostContext.detect().user == current

    def test_unknown_user_falls_back_to_home(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SUDO_USER", "no-such-user-for-tests")
        ctx = HostContext.detect()
        assert ctx.user == "no-such-user-for-tests"
        assert ctx.home == Path.home()

    def test_home_roots_include_operator_home(self, host: HostContext) -> None:
        roots = host.home_roots()
        assert str(host.home) in roots
        assert {"/", "/home", "/root"} <= roots
