"""Host detection — who invoked the controller, and where their home is.

Account operations run under ``sudo``, so ``Path.home()`` points at root's
home.  Everything that refers to the human operator (the assistant's
settings file, the credential paths to deny, the delegation rule) must be
resolved against the *invoking* user instead.  ``HostContext.detect()``
reads ``SUDO_USER`` when present and falls back to the current user.
"""

from __future__ import annotations

import getpass
import grp
import os
import pwd
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class HostContext:
    """Immutable snapshot of the invoking operator."""

    user: str
    home: Path
    group: str

    @classmethod
    def detect(cls) -> "HostContext":
        user = os.environ.get("SUDO_USER") or getpass.getuser()
        try:
            entry = pwd.getpwnam(user)
        except KeyError:
            return cls(user=user, home=Path.home(), group=user)
        try:
            group = grp.getgrgid(entry.pw_gid).gr_name
        except KeyError:
            group = str(entry.pw_gid)
        return cls(user=user, home=Path(entry.pw_dir), group=group)

    def expand(self, path: str | Path) -> Path:
        """Expand a leading ``~`` against the invoking user's home."""
        text = str(path)
        if text == "~":
            return self.home
        if text.startswith("~/"):
            return self.home / text[2:]
        return Path(text)

    def expand_pattern(self, pattern: str) -> str:
        """Like :meth:`expand` but keeps glob characters intact."""
        if pattern == "~" or pattern.startswith("~/"):
            return str(self.home) + pattern[1:]
        return pattern

    def home_roots(self) -> frozenset[str]:
        """Paths that must never be granted wholesale."""
        return frozenset({"/", "/home", "/root", "/Users", "~", str(self.home)})
