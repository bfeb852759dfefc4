"""Filesystem helpers shared by every component that writes host state.

Every write of security-relevant state (the live configuration, restored
backups, the launcher, the sudoers rule) goes through
:func:`atomic_write_text`: the content is written to a temp file in the
destination directory, flushed, fsynced, chmod-ed and then renamed over the
target.  A crash mid-write leaves either the old file or the new one, never
a truncated mix.  The rename is also the only serialisation point between
two concurrent writers.

When running as root (``sudo``) files written into the operator's home keep
the ownership of the file they replace, or of their parent directory, so the
assistant can still read its own configuration afterwards.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path


def inherit_owner(path: Path | str, reference: Path) -> None:
    """chown *path* to the owner of *reference* (no-op unless root)."""
    if os.geteuid() != 0:
        return
    st = reference.stat()
    os.chown(path, st.st_uid, st.st_gid)


def atomic_write_text(
    path: Path,
    content: str,
    mode: int = 0o600,
    *,
    keep_owner: bool = True,
) -> None:
    """Write *content* to *path* atomically with permissions *mode*."""
    atomic_write_bytes(path, content.encode("utf-8"), mode, keep_owner=keep_owner)


def atomic_write_bytes(
    path: Path,
    content: bytes,
    mode: int = 0o600,
    *,
    keep_owner: bool = True,
) -> None:
    """Byte-exact variant of :func:`atomic_write_text`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, mode)
        if keep_owner:
            inherit_owner(tmp, path if path.exists() else path.parent)
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


def read_bytes_or_none(path: Path) -> bytes | None:
    """Return the file contents, or None when the file does not exist."""
    try:
        return path.read_bytes()
    except FileNotFoundError:
        return None
