"""Policy layer — Built-in document and verifier expectations.

The document is constructed from settings defaults plus the detected host;
nothing read from the live configuration is trusted when building it.
"""

from __future__ import annotations

import os.path
from dataclasses import dataclass
from pathlib import Path

from assistant_guard.config import Settings
from assistant_guard.host import HostContext
from assistant_guard.policy.models import AuxiliaryService, PolicyDocument


@dataclass(frozen=True)
class PolicyExpectations:
    """What the verifier expects to find in the live document."""

    project_dir: str
    required_denials: tuple[str, ...]
    home_roots: frozenset[str]
    service_name: str
    service_command: str
    service_args: tuple[str, ...]


def resolve_project_dir(settings: Settings, host: HostContext, override: Path | None = None) -> Path:
    project = override or settings.policy.project_dir or Path.cwd()
    return Path(os.path.normpath(host.expand(project).absolute()))


def build_default_document(settings: Settings, host: HostContext, project_dir: Path) -> PolicyDocument:
    policy = settings.policy
    service = AuxiliaryService(
        command=policy.persistence_service.command,
        args=tuple(policy.persistence_service.args),
    )
    return PolicyDocument(
        allowed_directories=(str(project_dir),),
        denied_paths=tuple(host.expand_pattern(p) for p in policy.denied_paths),
        auxiliary_services={policy.persistence_service_name: service},
        preferences=dict(policy.preferences),
    )


def build_expectations(settings: Settings, host: HostContext, project_dir: Path) -> PolicyExpectations:
    policy = settings.policy
    return PolicyExpectations(
        project_dir=str(project_dir),
        required_denials=tuple(host.expand_pattern(p) for p in policy.required_denials),
        home_roots=host.home_roots(),
        service_name=policy.persistence_service_name,
        service_command=policy.persistence_service.command,
        service_args=tuple(policy.persistence_service.args),
    )
