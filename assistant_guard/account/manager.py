"""Account layer — Privilege separation manager.

Owns the lifecycle of the restricted OS account: creation, scoped access
to the shared project directory, the launcher, and the sudoers delegation
rule.  Everything touching the account database runs through
:class:`~assistant_guard.account.system.HostCommands` and inside an
:class:`~assistant_guard.account.lock.AccountLock`.

Access grant, best mechanism first:

  acl    ``setfacl`` grants ``u:<account>:rwX`` recursively, a default ACL on
         every directory so new files inherit it, and ``--x`` on ancestors
         that are not world-traversable.
  group  ``chgrp -R <operator group>``, ``chmod -R g+rwX``, setgid on every
         directory, and the account joins the operator's group.

Delegation: the target rule only lets the operator run the launcher as the
account.  ``DelegationMode.BROAD`` grants any command as the account; it is
accepted but logged as a degraded configuration.
"""

from __future__ import annotations

import os
import stat
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable, Iterator

from assistant_guard.account.launcher import (
    read_launcher_shared_dir,
    render_delegation_rule,
    render_launcher,
)
from assistant_guard.account.lock import AccountLock
from assistant_guard.account.models import AccessMechanism, AccountSpec, RestrictedAccount
from assistant_guard.account.system import HostCommands
from assistant_guard.config import AccountConfig, DelegationMode
from assistant_guard.exceptions import AccountError, AccountPermissionError, CommandError
from assistant_guard.fsutil import atomic_write_text
from assistant_guard.logging import get_logger
from assistant_guard.policy.invariants import broad_access_violations

if TYPE_CHECKING:
    from assistant_guard.orchestration.prompts import Confirmer

log = get_logger(__name__)

_USERDEL_NO_SUCH_USER = 6
_USERDEL_HOME_NOT_REMOVED = 12
_ARG_CHUNK = 200


def _chunks(items: list[str], size: int = _ARG_CHUNK) -> Iterator[list[str]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def _directories(root: Path) -> list[str]:
    dirs = [str(root)]
    for current, subdirs, _ in os.walk(root):
        dirs.extend(os.path.join(current, d) for d in subdirs)
    return dirs


def _exists(path: Path) -> bool | None:
    """True / False, or None when the caller may not look."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except PermissionError:
        return None
    return True


class PrivilegeSeparationManager:
    """Creates and removes the restricted account.

    Usage::

        manager = PrivilegeSeparationManager(HostCommands(), settings.account, confirmer)
        account = manager.create_account(spec)   # None if recreation declined
        manager.remove_account(spec.username, spec.shared_directory)
    """

    def __init__(
        self,
        commands: HostCommands,
        config: AccountConfig,
        confirmer: "Confirmer",
        *,
        home_roots: Iterable[str] = (),
        denied_paths: Iterable[str] = (),
    ) -> None:
        self._commands = commands
        self._config = config
        self._confirmer = confirmer
        self._home_roots = frozenset(home_roots)
        self._denied_paths = tuple(denied_paths)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def account_exists(self, username: str) -> bool:
        return self._commands.user_exists(username)

    def describe(self, username: str) -> dict[str, Any]:
        exists = self.account_exists(username)
        return {
            "username": username,
            "exists": exists,
            "home": self._commands.home_of(username) if exists else None,
            "launcher_path": str(self._config.launcher_path),
            "launcher_installed": _exists(self._config.launcher_path),
            "delegation_rule_path": str(self._config.sudoers_dir / username),
            "delegation_rule_installed": _exists(self._config.sudoers_dir / username),
            "delegation_mode": self._config.delegation.value,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_account(self, spec: AccountSpec) -> RestrictedAccount | None:
        """Provision the account described by *spec*.

        Returns None when the account already exists and the operator
        declined recreation; nothing is changed in that case.

        Raises:
            AccountPermissionError: Not running as root.
            AccountError: The shared directory is missing or too broad to share
                (filesystem root, a home root, or an ancestor of a denied
                path), or a host command failed (CommandError).
            AccountLockedError: Another invocation holds the account lock.
        """
        self._require_root("create-account")
        if not spec.shared_directory.is_dir():
            raise AccountError(
                f"Shared directory does not exist: {spec.shared_directory}",
                context={"shared_directory": str(spec.shared_directory)},
            )
        self._check_shared_directory(spec.shared_directory)

        with AccountLock(self._config.lock_dir, spec.username):
            if self.account_exists(spec.username):
                question = f"Account '{spec.username}' already exists. Delete and recreate?"
                if not self._confirmer.ask(question):
                    log.info("account_recreate_declined", username=spec.username)
                    return None
                log.warning("account_recreating", username=spec.username)
                previous = read_launcher_shared_dir(spec.launcher_path) or spec.shared_directory
                self._teardown(spec.username, previous, spec.launcher_path, spec.sudoers_path)

            self._run(["useradd", "-m", "-s", spec.shell, spec.username])
            self._run(["passwd", "-l", spec.username])
            home = self._commands.home_of(spec.username) or f"/home/{spec.username}"
            log.info("account_added", username=spec.username, home=home)

            mechanism = self._grant_access(spec)
            self._install_launcher(spec)
            self._install_rule(spec)

        account = RestrictedAccount(
            username=spec.username,
            home_directory=Path(home),
            shared_directory=spec.shared_directory,
            launcher_path=spec.launcher_path,
            delegation_rule_path=spec.sudoers_path,
            delegation_mode=spec.delegation,
            access_mechanism=mechanism,
        )
        log.info(
            "account_created",
            username=account.username,
            access=mechanism,
            delegation=spec.delegation.value,
        )
        return account

    def remove_account(self, username: str, shared_directory: Path | None = None) -> bool:
        """Delete the account, its home, the launcher and the delegation rule.

        ACL entries are revoked on the shared directory recorded in the
        installed launcher; *shared_directory* is only used when no launcher
        is readable.  Returns False when the account did not exist (leftover
        files are still removed).
        """
        self._require_root("remove-account")
        recorded = read_launcher_shared_dir(self._config.launcher_path)
        if recorded is not None and recorded != shared_directory:
            log.info("shared_directory_from_launcher", recorded=str(recorded))
        with AccountLock(self._config.lock_dir, username):
            return self._teardown(
                username,
                recorded or shared_directory,
                self._config.launcher_path,
                self._config.sudoers_dir / username,
            )

    def _check_shared_directory(self, shared_directory: Path) -> None:
        """Refuse a shared directory the policy could never allow."""
        violations = broad_access_violations(
            (str(shared_directory),), self._denied_paths, self._home_roots
        )
        if violations:
            raise AccountError(
                f"Refusing to share {shared_directory} with the restricted account: "
                + "; ".join(violations),
                context={"shared_directory": str(shared_directory), "violations": violations},
            )

    # ------------------------------------------------------------------
    # Private — teardown
    # ------------------------------------------------------------------

    def _teardown(
        self,
        username: str,
        shared_directory: Path | None,
        launcher_path: Path,
        sudoers_path: Path,
    ) -> bool:
        existed = self.account_exists(username)
        if existed:
            if shared_directory is not None:
                self._revoke_acl(username, shared_directory)
            result = self._commands.run(["userdel", "-r", username], check=False)
            if result.returncode == _USERDEL_NO_SUCH_USER:
                existed = False
            elif result.returncode == _USERDEL_HOME_NOT_REMOVED:
                log.warning("account_home_not_removed", username=username, stderr=result.stderr.strip())
            elif not result.ok:
                raise CommandError(result.argv, result.returncode, result.stderr)

        if not existed:
            log.warning("account_absent", username=username)

        for path in (launcher_path, sudoers_path):
            try:
                path.unlink()
                log.info("file_removed", path=str(path))
            except FileNotFoundError:
                pass
            except OSError as exc:
                raise AccountError(
                    f"Cannot remove {path}: {exc.strerror or exc}",
                    context={"path": str(path)},
                ) from exc

        if existed:
            log.info("account_removed", username=username)
        return existed

    def _revoke_acl(self, username: str, shared_directory: Path) -> None:
        if self._commands.which("setfacl") is None or not shared_directory.is_dir():
            return
        entry = f"u:{username}"
        self._commands.run(["setfacl", "-R", "-x", entry, str(shared_directory)], check=False)
        for batch in _chunks(_directories(shared_directory)):
            self._commands.run(["setfacl", "-d", "-x", entry, *batch], check=False)
        for ancestor in shared_directory.parents:
            self._commands.run(["setfacl", "-x", entry, str(ancestor)], check=False)
        log.info("acl_revoked", username=username, path=str(shared_directory))

    # ------------------------------------------------------------------
    # Private — provisioning
    # ------------------------------------------------------------------

    def _grant_access(self, spec: AccountSpec) -> AccessMechanism:
        if self._commands.which("setfacl") is not None:
            try:
                self._grant_acl(spec)
                return "acl"
            except CommandError as exc:
                log.warning("acl_unsupported", path=str(spec.shared_directory), error=exc.message)
        else:
            log.warning("setfacl_unavailable", fallback="group")
        self._grant_group(spec)
        return "group"

    def _grant_acl(self, spec: AccountSpec) -> None:
        shared = str(spec.shared_directory)
        entry = f"u:{spec.username}:rwX"
        self._run(["setfacl", "-R", "-m", entry, shared])
        for batch in _chunks(_directories(spec.shared_directory)):
            self._run(["setfacl", "-d", "-m", entry, *batch])
        for ancestor in self._closed_ancestors(spec.shared_directory):
            self._run(["setfacl", "-m", f"u:{spec.username}:--x", str(ancestor)])
        log.info("acl_granted", username=spec.username, path=shared)

    def _grant_group(self, spec: AccountSpec) -> None:
        shared = str(spec.shared_directory)
        self._run(["chgrp", "-R", spec.invoking_group, shared])
        self._run(["chmod", "-R", "g+rwX", shared])
        for batch in _chunks(_directories(spec.shared_directory)):
            self._run(["chmod", "g+s", *batch])
        self._run(["usermod", "-aG", spec.invoking_group, spec.username])
        closed = self._closed_ancestors(spec.shared_directory)
        if closed:
            log.warning(
                "ancestor_not_traversable",
                username=spec.username,
                paths=[str(p) for p in closed],
            )
        log.info("group_access_granted", username=spec.username, group=spec.invoking_group, path=shared)

    @staticmethod
    def _closed_ancestors(path: Path) -> list[Path]:
        """Ancestors of *path* that others cannot traverse."""
        closed = []
        for ancestor in path.parents:
            if not os.stat(ancestor).st_mode & stat.S_IXOTH:
                closed.append(ancestor)
        return closed

    def _install_launcher(self, spec: AccountSpec) -> None:
        try:
            atomic_write_text(spec.launcher_path, render_launcher(spec), mode=0o755, keep_owner=False)
        except OSError as exc:
            raise AccountError(
                f"Cannot install launcher {spec.launcher_path}: {exc.strerror or exc}",
                context={"path": str(spec.launcher_path)},
            ) from exc
        log.info("launcher_installed", path=str(spec.launcher_path))

    def _install_rule(self, spec: AccountSpec) -> None:
        content = render_delegation_rule(spec)
        self._validate_rule(content)
        try:
            atomic_write_text(spec.sudoers_path, content, mode=0o440, keep_owner=False)
        except OSError as exc:
            raise AccountError(
                f"Cannot install delegation rule {spec.sudoers_path}: {exc.strerror or exc}",
                context={"path": str(spec.sudoers_path)},
            ) from exc
        if spec.delegation is DelegationMode.BROAD:
            log.warning(
                "delegation_degraded",
                username=spec.username,
                rule=str(spec.sudoers_path),
                detail="operator may run any command as the restricted account",
            )
        log.info("delegation_rule_installed", path=str(spec.sudoers_path), mode=spec.delegation.value)

    def _validate_rule(self, content: str) -> None:
        visudo = self._commands.which("visudo")
        if visudo is None:
            log.warning("visudo_unavailable", detail="delegation rule installed unvalidated")
            return
        fd, tmp = tempfile.mkstemp(prefix="assistant-guard.", suffix=".sudoers")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            self._run([visudo, "-cf", tmp])
        finally:
            os.unlink(tmp)

    def _run(self, argv: list[str]) -> None:
        self._commands.run(argv, timeout=self._config.command_timeout_seconds)

    def _require_root(self, operation: str) -> None:
        if not self._commands.is_root():
            raise AccountPermissionError(
                operation,
                f"Re-run with sudo: sudo assistant-guard {operation}",
            )
