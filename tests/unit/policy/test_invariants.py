"""Unit tests — structural invariants (deny-wins, no broad allow)."""

from __future__ import annotations

from pathlib import Path

import pytest

from assistant_guard.policy.invariants import (
    broad_access_violations,
    find_violations,
    is_ancestor_or_same,
    is_home_root,
    literal_prefix,
)
from assistant_guard.policy.models import PolicyDocument

HOME_ROOTS = frozenset({"/", "/home", "/root", "/Users", "~", "/home/u"})


@pytest.mark.unit
class TestHelpers:
    @pytest.mark.parametrize(
        "pattern, prefix",
        [
            ("/etc/ssh", "/etc/ssh"),
            ("/home/u/.*rc", "/home/u"),
            ("/home/u/.ssh/*", "/home/u/.ssh"),
            ("/*", "/"),
            ("relative/path", None),
        ],
    )
    def test_literal_prefix(self, pattern: str, prefix: str | None) -> None:
        assert literal_prefix(pattern) == prefix

    def test_ancestor(self) -> None:
        assert is_ancestor_or_same("/etc", "/etc/ssh")
        assert is_ancestor_or_same("/etc/ssh", "/etc/ssh")
        assert not is_ancestor_or_same("/etc/ss", "/etc/ssh")
        assert is_ancestor_or_same("/", "/anything")

    @pytest.mark.parametrize("path", ["/home", "/home/u", "/home/someone-else", "/root", "/Users/x", "~"])
    def test_home_roots(self, path: str) -> None:
        assert is_home_root(path, HOME_ROOTS)

    def test_project_under_home_is_not_home_root(self) -> None:
        assert not is_home_root("/home/u/code/project", HOME_ROOTS)


@pytest.mark.unit
class TestViolations:
    def test_filesystem_root(self) -> None:
        assert broad_access_violations(["/"], [], HOME_ROOTS) == ["/ is the filesystem root"]

    def test_entire_home(self) -> None:
        violations = broad_access_violations(["/home/u"], [], HOME_ROOTS)
        assert violations == ["/home/u is an entire home directory"]

    def test_denial_nested_under_allow(self) -> None:
        violations = broad_access_violations(["/etc"], ["/etc/ssh", "/var/secret"], HOME_ROOTS)
        assert violations == ["/etc contains denied path /etc/ssh"]

    def test_glob_denial_nested_under_allow(self) -> None:
        violations = broad_access_violations(["/home/u/code"], ["/home/u/code/.*rc"], HOME_ROOTS)
        assert len(violations) == 1

    def test_disjoint_allow_and_deny(self) -> None:
        assert broad_access_violations(["/work/project"], ["/home/u/.ssh"], HOME_ROOTS) == []

    def test_single_project_count(self) -> None:
        doc = PolicyDocument(allowed_directories=("/work/a", "/work/b"))
        assert find_violations(doc, HOME_ROOTS) == ["expected exactly one allowed directory, found 2"]
        assert find_violations(doc, HOME_ROOTS, single_project=False) == []

    def test_require_existing(self, tmp_path: Path) -> None:
        missing = tmp_path / "missing"
        doc = PolicyDocument(allowed_directories=(str(missing),))
        assert find_violations(doc, HOME_ROOTS) == []
        assert find_violations(doc, HOME_ROOTS, require_existing=True) == [
            f"{missing} does not exist or is not a directory"
        ]
