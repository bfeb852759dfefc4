"""Account layer — Restricted account data models.

``AccountSpec`` is the validated request handed to the manager;
``RestrictedAccount`` is the immutable description of what was provisioned.
"""

from __future__ import annotations

import os.path
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from assistant_guard.config import DelegationMode

# POSIX portable user name. Dots are excluded because sudo skips
# /etc/sudoers.d entries whose file name contains one.
_USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")
_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

AccessMechanism = Literal["acl", "group"]


class AccountSpec(BaseModel):
    """Everything needed to provision (or tear down) the restricted account."""

    model_config = ConfigDict(frozen=True)

    username: str
    shared_directory: Path
    invoking_user: str
    invoking_group: str
    shell: str = "/bin/bash"
    launcher_path: Path
    sudoers_path: Path
    assistant_command: str = Field(min_length=1)
    env_allowlist: tuple[str, ...] = ()
    delegation: DelegationMode = DelegationMode.LAUNCHER

    @field_validator("username")
    @classmethod
    def _valid_username(cls, v: str) -> str:
        if not _USERNAME_RE.match(v):
            raise ValueError(f"invalid account name: {v!r}")
        return v

    @field_validator("shared_directory", "launcher_path", "sudoers_path")
    @classmethod
    def _absolute(cls, v: Path) -> Path:
        if not v.is_absolute():
            raise ValueError(f"path must be absolute: {v}")
        return Path(os.path.normpath(v))

    @field_validator("env_allowlist")
    @classmethod
    def _env_names(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        for name in v:
            if not _ENV_NAME_RE.match(name):
                raise ValueError(f"not an environment variable name: {name!r}")
        return tuple(dict.fromkeys(v))


@dataclass(frozen=True)
class RestrictedAccount:
    username: str
    home_directory: Path
    shared_directory: Path
    launcher_path: Path
    delegation_rule_path: Path
    delegation_mode: DelegationMode
    access_mechanism: AccessMechanism
    has_sudo: bool = False


__all__ = ["AccessMechanism", "AccountSpec", "DelegationMode", "RestrictedAccount"]
