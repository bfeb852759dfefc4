"""assistant-guard — Host hardening for a local AI coding assistant.

Restricts what the assistant process can reach on the host and proves the
restriction holds:

    1. Policy  — the assistant's permission document (one allowed project
                 directory, denied credential paths), backed up before
                 every write and restorable on demand
    2. Account — an unprivileged OS account with scoped access to the
                 project, a launcher and a narrow sudoers delegation rule
    3. Verify  — checks that re-read live state and probe real behaviour
                 as the restricted account
    4. Orchestration — apply / verify / full / check / rollback sequences
                 with per-step reports
"""

__version__ = "0.1.0"
__license__ = "Apache-2.0"

from assistant_guard.exceptions import GuardError
from assistant_guard.policy.models import PolicyDocument
from assistant_guard.report import VerificationReport

__all__ = [
    "__version__",
    "GuardError",
    "PolicyDocument",
    "VerificationReport",
]
