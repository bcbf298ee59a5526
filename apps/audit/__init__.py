"""Audit trail: `log_event` records one AuditEvents action through the configured backends."""

from .events import AuditEvents
from .services import log_event

__all__ = ["AuditEvents", "log_event"]
