"""Verification reports.

A report is a transient read model over live host state: an ordered list of
named checks, each passed or failed with a human-readable detail.  Reports
are produced fresh on every verification run and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

UNREADABLE_DETAIL = "configuration unreadable"


@dataclass(frozen=True)
class CheckResult:
    name: str
    passed: bool
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "passed": self.passed, "detail": self.detail}


@dataclass
class VerificationReport:
    """Ordered check results plus an aggregate verdict."""

    title: str
    checks: list[CheckResult] = field(default_factory=list)

    @classmethod
    def unreadable(cls, title: str) -> "VerificationReport":
        """Hard-stop report used when the configuration cannot be read at all."""
        return cls(title=title, checks=[CheckResult("configuration", False, UNREADABLE_DETAIL)])

    def add(self, name: str, passed: bool, detail: str = "") -> CheckResult:
        result = CheckResult(name=name, passed=passed, detail=detail)
        self.checks.append(result)
        return result

    @property
    def passed(self) -> bool:
        return bool(self.checks) and all(c.passed for c in self.checks)

    @property
    def passed_count(self) -> int:
        return sum(1 for c in self.checks if c.passed)

    def failed(self) -> list[CheckResult]:
        return [c for c in self.checks if not c.passed]

    def get(self, name: str) -> CheckResult | None:
        for check in self.checks:
            if check.name == name:
                return check
        return None

    def summary(self) -> str:
        return f"{self.passed_count}/{len(self.checks)} checks passed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "passed": self.passed,
            "checks": [c.to_dict() for c in self.checks],
        }
