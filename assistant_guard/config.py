"""assistant-guard — Controller configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. Environment variables prefixed with ASSISTANT_GUARD_
    3. System config: /etc/assistant-guard/config.yaml
    4. User config:   ~/.config/assistant-guard/config.yaml
    5. An explicit ``--config`` file

YAML values are passed as init arguments, which pydantic-settings ranks
above the environment.

Paths that start with ``~`` are kept unexpanded here and resolved against
the invoking user's home by :class:`assistant_guard.host.HostContext`, so a
``sudo`` invocation still targets the operator's files.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class DelegationMode(str, Enum):
    """How narrowly the sudoers rule is scoped."""

    LAUNCHER = "launcher"  # invoker may only run the launcher as the account
    BROAD = "broad"  # invoker may run anything as the account (degraded)


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class ServiceConfig(BaseModel):
    command: str
    args: list[str] = Field(default_factory=list)


class PolicyConfig(BaseModel):
    settings_file: Path = Field(
        default=Path("~/.claude/settings.json"),
        description="Live configuration file read by the assistant at startup.",
    )
    backup_dir: Path = Field(
        default=Path("~/.claude/backups"),
        description="Directory holding timestamped copies of the live configuration.",
    )
    project_dir: Path | None = Field(
        default=None,
        description="The single directory the assistant may use. Defaults to the CWD.",
    )
    denied_paths: list[str] = Field(
        default_factory=lambda: [
            "~/.ssh",
            "~/.aws",
            "~/.config",
            "~/.kube",
            "~/.docker",
            "~/.gnupg",
            "~/.*rc",
            "~/.*history",
            "/etc/passwd",
            "/etc/shadow",
            "/etc/ssh",
        ],
        description="Paths or globs the assistant must never reach.",
    )
    required_denials: list[str] = Field(
        default_factory=lambda: [
            "~/.ssh",
            "~/.aws",
            "~/.config",
            "~/.kube",
            "~/.*history",
            "/etc/shadow",
        ],
        description="Denials the verifier insists on.",
    )
    persistence_service_name: str = "memory"
    persistence_service: ServiceConfig = Field(
        default_factory=lambda: ServiceConfig(
            command="npx", args=["-y", "@modelcontextprotocol/server-memory"]
        )
    )
    preferences: dict[str, Any] = Field(
        default_factory=lambda: {"alwaysThinkingEnabled": True},
        description="Other top-level assistant settings written verbatim.",
    )
    backup_list_limit: Annotated[int, Field(ge=1, le=100)] = 5


class AccountConfig(BaseModel):
    username: str = "claude-restricted"
    shell: str = "/bin/bash"
    launcher_path: Path = Path("/usr/local/bin/claude-restricted")
    sudoers_dir: Path = Path("/etc/sudoers.d")
    assistant_command: str = "claude"
    env_allowlist: list[str] = Field(
        default_factory=lambda: ["PATH", "TERM", "LANG", "ANTHROPIC_API_KEY"],
        description="Variable NAMES forwarded by the launcher. Never values.",
    )
    delegation: DelegationMode = DelegationMode.LAUNCHER
    lock_dir: Path = Path("/run/lock")
    probe_timeout_seconds: Annotated[float, Field(gt=0, le=60)] = 5.0
    command_timeout_seconds: Annotated[float, Field(gt=0, le=600)] = 60.0
    read_probe_file: str = Field(
        default="README.md",
        description="File inside the shared directory the account must be able to read.",
    )
    credential_probe_file: Path = Field(
        default=Path("~/.ssh/id_rsa"),
        description="Operator credential the account must NOT be able to read.",
    )

    @field_validator("env_allowlist")
    @classmethod
    def _names_only(cls, v: list[str]) -> list[str]:
        for name in v:
            if not _ENV_NAME_RE.match(name):
                raise ValueError(f"not an environment variable name: {name!r}")
        return v

    @property
    def sudoers_path(self) -> Path:
        return self.sudoers_dir / self.username


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None
    audit_file: Path | None = Path("~/.claude/assistant-guard-audit.ndjson")


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ASSISTANT_GUARD_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    account: AccountConfig = Field(default_factory=AccountConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_file: Path | None = None, user_home: Path | None = None) -> "Settings":
        """Load settings from YAML files + environment variables.

        *user_home* locates the user config; pass the invoking operator's home
        so a ``sudo`` run reads the operator's file rather than root's.
        """
        data: dict[str, object] = {}

        candidates = [
            Path("/etc/assistant-guard/config.yaml"),
            (user_home or Path.home()) / ".config" / "assistant-guard" / "config.yaml",
        ]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml

                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
                    for key, value in loaded.items():
                        if isinstance(value, dict) and isinstance(data.get(key), dict):
                            data[key] = {**data[key], **value}  # type: ignore[dict-item]
                        else:
                            data[key] = value

        return cls(**data)

