"""Security layer — audit trail."""

from assistant_guard.security.audit import AuditEvent, AuditLogger

__all__ = ["AuditEvent", "AuditLogger"]
