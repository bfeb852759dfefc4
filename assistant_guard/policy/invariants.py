"""Policy layer — Structural invariants.

Pure functions shared by the applier (which refuses to write a document
that breaks them) and the verifier (which reports them against the live
file).  The invariants:

  1. Every allowed directory is absolute and not the filesystem root.
  2. No allowed directory is a home root (``/home``, ``/root``, ``/home/<u>``,
     the operator's home).
  3. No allowed directory is an ancestor of a denied path: a denial nested
     under an allow is a violation, whatever the runtime precedence.
  4. In single-project mode there is exactly one allowed directory.
"""

from __future__ import annotations

import os.path
from pathlib import Path, PurePosixPath
from typing import Iterable

from assistant_guard.policy.models import PolicyDocument

_GLOB_CHARS = frozenset("*?[")


def literal_prefix(pattern: str) -> str | None:
    """Return the glob-free leading directory of *pattern*.

    ``/home/u/.*rc`` -> ``/home/u``; ``/etc/ssh`` -> ``/etc/ssh``.
    Relative patterns have no anchored prefix and return None.
    """
    if not pattern.startswith("/"):
        return None
    parts: list[str] = []
    for part in PurePosixPath(pattern).parts[1:]:
        if _GLOB_CHARS & set(part):
            break
        parts.append(part)
    return "/" + "/".join(parts)


def is_ancestor_or_same(ancestor: str, path: str) -> bool:
    ancestor = os.path.normpath(ancestor)
    path = os.path.normpath(path)
    if ancestor == "/":
        return True
    return path == ancestor or path.startswith(ancestor + "/")


def is_home_root(path: str, home_roots: Iterable[str]) -> bool:
    normalised = os.path.normpath(path)
    roots = {os.path.normpath(r) for r in home_roots if r != "~"}
    if path == "~" or normalised in roots:
        return True
    return str(PurePosixPath(normalised).parent) in ("/home", "/Users")


def broad_access_violations(
    allowed: Iterable[str], denied: Iterable[str], home_roots: Iterable[str]
) -> list[str]:
    """Violations of invariants 1-3 for the given allowed/denied entries."""
    home_roots = list(home_roots)
    denied = list(denied)
    violations: list[str] = []
    for entry in allowed:
        if os.path.normpath(entry) == "/":
            violations.append(f"{entry} is the filesystem root")
            continue
        if is_home_root(entry, home_roots):
            violations.append(f"{entry} is an entire home directory")
            continue
        for pattern in denied:
            prefix = literal_prefix(pattern)
            if prefix is not None and is_ancestor_or_same(entry, prefix):
                violations.append(f"{entry} contains denied path {pattern}")
    return violations


def find_violations(
    document: PolicyDocument,
    home_roots: Iterable[str],
    *,
    single_project: bool = True,
    require_existing: bool = False,
) -> list[str]:
    """Return a human-readable list of invariant violations (empty = valid)."""
    violations: list[str] = []
    allowed = document.allowed_directories

    if single_project and len(allowed) != 1:
        violations.append(f"expected exactly one allowed directory, found {len(allowed)}")

    violations.extend(broad_access_violations(allowed, document.denied_paths, home_roots))

    if require_existing:
        for entry in allowed:
            if not Path(entry).is_dir():
                violations.append(f"{entry} does not exist or is not a directory")

    return violations
