"""Policy subsystem — document, backups, applier and verifier."""

from assistant_guard.policy.applier import ApplyResult, PolicyApplier
from assistant_guard.policy.backup import BackupManager, BackupRecord
from assistant_guard.policy.defaults import PolicyExpectations
from assistant_guard.policy.models import AuxiliaryService, PolicyDocument
from assistant_guard.policy.verifier import PolicyVerifier

__all__ = [
    "ApplyResult",
    "AuxiliaryService",
    "BackupManager",
    "BackupRecord",
    "PolicyApplier",
    "PolicyDocument",
    "PolicyExpectations",
    "PolicyVerifier",
]
