from __future__ import annotations

from apps.audit import AuditEvents, log_event
from common.audit import BaseAuditService


class AccountsAuditService(BaseAuditService):
    @classmethod
    def log_login_success(cls, request, user) -> None:
        log_event(
            action=AuditEvents.LOGIN_SUCCESS,
            actor=user,
            object_type="user",
            object_id=str(user.id),
            category="auth",
            ip_address=cls._ip(request),
        )

    @classmethod
    def log_login_failed(cls, request, username: str) -> None:
        log_event(
            action=AuditEvents.LOGIN_FAILED,
            level="warning",
            category="auth",
            object_type="user",
            ip_address=cls._ip(request),
            metadata={"username": username},
        )

    @classmethod
    def log_user_registered(cls, request, user) -> None:
        log_event(
            action=AuditEvents.USER_REGISTERED,
            actor=cls._actor(request),
            object_type="user",
            object_id=str(user.id),
            category="user",
            ip_address=cls._ip(request),
            metadata={"employee_id": user.employee_id, "department": user.department},
        )

    @classmethod
    def log_access_requested(cls, request, user) -> None:
        log_event(
            action=AuditEvents.ACCESS_REQUESTED,
            object_type="user",
            object_id=str(user.id),
            category="user",
            ip_address=cls._ip(request),
            metadata={"employee_id": user.employee_id, "email": user.email},
        )

    @classmethod
    def log_password_changed(cls, request, user) -> None:
        log_event(
            action=AuditEvents.PASSWORD_CHANGED,
            actor=user,
            object_type="user",
            object_id=str(user.id),
            category="security",
            ip_address=cls._ip(request),
        )

    @classmethod
    def log_department_verification(cls, request, department: str, granted: bool) -> None:
        # The submitted code is deliberately left out of the record.
        log_event(
            action=AuditEvents.DEPARTMENT_ACCESS_GRANTED if granted else AuditEvents.DEPARTMENT_ACCESS_DENIED,
            actor=cls._actor(request),
            level="info" if granted else "warning",
            category="security",
            object_type="department",
            object_id=department or "",
            ip_address=cls._ip(request),
        )
