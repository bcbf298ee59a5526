from __future__ import annotations

import logging

from django.conf import settings
from typing import Optional

from .backends import (
    AuditBackend,
    DatabaseAuditBackend,
    LoggingAuditBackend,
    NoopAuditBackend,
)
from .contracts import AuditEvent


logger = logging.getLogger(__name__)


class AuditService:
    """
    Unified entrypoint for audit logging.

    Modes:
    - primary_only (default): write only to primary backend
    - dual_write: write to primary and secondary backends
    """

    def __init__(self) -> None:
        self.primary_backend = self._build_backend(
            getattr(settings, "AUDIT_PRIMARY_BACKEND", "db")
        )
        self.secondary_backend = self._build_backend(
            getattr(settings, "AUDIT_SECONDARY_BACKEND", "logging")
        )
        self.mode = getattr(settings, "AUDIT_WRITE_MODE", "primary_only")

    def _build_backend(self, name: str) -> AuditBackend:
        if name == "db":
            return DatabaseAuditBackend()
        if name == "logging":
            return LoggingAuditBackend()
        return NoopAuditBackend()

    def log(self, event: AuditEvent) -> None:
        try:
            self.primary_backend.write(event)

            if self.mode == "dual_write":
                self.secondary_backend.write(event)
        except Exception:
            # Audit should not break main request flow.
            logger.exception("Audit write failed for %s", event.action)


def log_event(
    *,
    action: str,
    actor=None,
    object_type: str = "",
    object_id: str = "",
    level: str = "info",
    category: str = "system",
    ip_address: Optional[str] = None,
    metadata: Optional[dict] = None,
) -> None:
    event = AuditEvent(
        action=action,
        actor=actor,
        object_type=object_type,
        object_id=object_id,
        level=level,
        category=category,
        ip_address=ip_address,
        metadata=metadata,
    )
    AuditService().log(event)
