from __future__ import annotations

import logging
from typing import Protocol

from django.db import transaction

from .contracts import AuditEvent


logger = logging.getLogger("audit")

LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class AuditBackend(Protocol):
    def write(self, event: AuditEvent) -> None:
        ...


class DatabaseAuditBackend:
    """
    Primary backend.
    Writes to accounts.AuditLog.
    """

    def write(self, event: AuditEvent) -> None:
        from accounts.models import AuditLog

        actor = event.actor if getattr(event.actor, "pk", None) else None
        with transaction.atomic():
            AuditLog.log(
                action=event.action,
                user=actor,
                object_type=event.object_type,
                object_id=event.object_id,
                level=event.level,
                category=event.category,
                ip_address=event.ip_address,
                metadata=event.metadata,
            )


class LoggingAuditBackend:
    """Emits the event as a log record on the `audit` logger."""

    def write(self, event: AuditEvent) -> None:
        logger.log(
            LEVELS.get(event.level, logging.INFO),
            "%s %s:%s actor=%s",
            event.action,
            event.object_type or "-",
            event.object_id or "-",
            event.actor_id,
            extra={"audit": event.as_log_fields()},
        )


class NoopAuditBackend:
    def write(self, event: AuditEvent) -> None:  # pragma: no cover
        return None
