"""Restricted account subsystem — lifecycle, launcher, probes, verification."""

from assistant_guard.account.manager import PrivilegeSeparationManager
from assistant_guard.account.models import AccountSpec, RestrictedAccount
from assistant_guard.account.probes import (
    Access,
    CommandProbe,
    FileAccessProbe,
    Probe,
    ProbeFactory,
    ProbeOutcome,
    SudoProbeFactory,
)
from assistant_guard.account.system import CommandResult, HostCommands
from assistant_guard.account.verifier import AccountVerifier

__all__ = [
    "Access",
    "AccountSpec",
    "AccountVerifier",
    "CommandProbe",
    "CommandResult",
    "FileAccessProbe",
    "HostCommands",
    "PrivilegeSeparationManager",
    "Probe",
    "ProbeFactory",
    "ProbeOutcome",
    "RestrictedAccount",
    "SudoProbeFactory",
]
