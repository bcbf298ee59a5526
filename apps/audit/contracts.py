from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class AuditEvent:
    action: str
    actor: Any = None
    object_type: str = ""
    object_id: str = ""
    level: str = "info"
    category: str = "system"
    ip_address: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    @property
    def actor_id(self) -> Optional[int]:
        return getattr(self.actor, "pk", None)

    def as_log_fields(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "actor_id": self.actor_id,
            "object_type": self.object_type,
            "object_id": self.object_id,
            "level": self.level,
            "category": self.category,
            "ip_address": self.ip_address,
            "metadata": self.metadata or {},
        }
