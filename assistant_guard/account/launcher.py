"""Account layer — Launcher script and delegation rule rendering.

The launcher is the only supported way to start the assistant under the
restricted account.  Run by the operator, it re-executes itself through
``sudo -n -u <account>`` forwarding an explicit allow-list of variable
names; run as the account, it changes into the shared directory and execs
the assistant.
"""

from __future__ import annotations

import shlex
from pathlib import Path

from assistant_guard.account.models import AccountSpec
from assistant_guard.config import DelegationMode

_LAUNCHER_TEMPLATE = """\
#!/bin/bash
# Installed by assistant-guard. Starts {command} as {user} inside {shared}.
set -euo pipefail

RESTRICTED_USER={q_user}
SHARED_DIR={q_shared}
LAUNCHER={q_launcher}

if [ "$(id -un)" = "$RESTRICTED_USER" ]; then
    cd "$SHARED_DIR"
    exec {q_command} "$@"
fi

exec sudo -n -u "$RESTRICTED_USER" -H{preserve} -- "$LAUNCHER" "$@"
"""


def render_launcher(spec: AccountSpec) -> str:
    preserve = ""
    if spec.env_allowlist:
        preserve = " --preserve-env=" + shlex.quote(",".join(spec.env_allowlist))
    return _LAUNCHER_TEMPLATE.format(
        command=spec.assistant_command,
        user=spec.username,
        shared=spec.shared_directory,
        q_user=shlex.quote(spec.username),
        q_shared=shlex.quote(str(spec.shared_directory)),
        q_launcher=shlex.quote(str(spec.launcher_path)),
        q_command=shlex.quote(spec.assistant_command),
        preserve=preserve,
    )


def render_delegation_rule(spec: AccountSpec) -> str:
    """Sudoers line letting the operator act as the restricted account."""
    if spec.delegation is DelegationMode.BROAD:
        rule = f"{spec.invoking_user} ALL=({spec.username}) NOPASSWD: ALL"
    else:
        rule = f"{spec.invoking_user} ALL=({spec.username}) NOPASSWD:SETENV: {spec.launcher_path}"
    return f"# Managed by assistant-guard ({spec.delegation.value} delegation)\n{rule}\n"


def read_launcher_shared_dir(path: Path) -> Path | None:
    """Shared directory recorded in an installed launcher, if readable."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None
    for line in text.splitlines():
        if line.startswith("SHARED_DIR="):
            try:
                values = shlex.split(line[len("SHARED_DIR=") :])
            except ValueError:
                return None
            return Path(values[0]) if values else None
    return None
