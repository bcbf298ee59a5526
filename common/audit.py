from __future__ import annotations

from typing import Optional


def client_ip(request) -> Optional[str]:
    xff = request.META.get("HTTP_X_FORWARDED_FOR")
    if xff:
        return xff.split(",")[0].strip()
    return request.META.get("REMOTE_ADDR")


class BaseAuditService:
    @staticmethod
    def _ip(request) -> Optional[str]:
        return client_ip(request)

    @staticmethod
    def _actor(request):
        user = getattr(request, "user", None)
        return user if user is not None and user.is_authenticated else None
