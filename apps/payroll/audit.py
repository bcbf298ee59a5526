from __future__ import annotations

from apps.audit import AuditEvents, log_event
from common.audit import BaseAuditService


class PayrollAuditService(BaseAuditService):
    @classmethod
    def log_payslip_created(cls, request, payslip) -> None:
        log_event(
            action=AuditEvents.PAYSLIP_CREATED,
            actor=request.user,
            object_type="payslip",
            object_id=str(payslip.id),
            category="payroll",
            ip_address=cls._ip(request),
            metadata={
                "employee_id": payslip.employee_id,
                "month": payslip.month,
                "year": payslip.year,
                "net_pay": str(payslip.net_pay),
            },
        )

    @classmethod
    def log_payslip_updated(cls, request, payslip, changed_fields) -> None:
        log_event(
            action=AuditEvents.PAYSLIP_UPDATED,
            actor=request.user,
            object_type="payslip",
            object_id=str(payslip.id),
            category="payroll",
            ip_address=cls._ip(request),
            metadata={"changed_fields": sorted(changed_fields), "net_pay": str(payslip.net_pay)},
        )

    @classmethod
    def log_status_changed(cls, request, payslip, previous_status: str) -> None:
        log_event(
            action=AuditEvents.PAYSLIP_STATUS_CHANGED,
            actor=request.user,
            object_type="payslip",
            object_id=str(payslip.id),
            category="payroll",
            ip_address=cls._ip(request),
            metadata={"from": previous_status, "to": payslip.status, "employee_id": payslip.employee_id},
        )

    @classmethod
    def log_reference_assigned(cls, request, payslip) -> None:
        log_event(
            action=AuditEvents.PAYSLIP_REFERENCE_ASSIGNED,
            actor=request.user,
            object_type="payslip",
            object_id=str(payslip.id),
            category="payroll",
            ip_address=cls._ip(request),
            metadata={"reference_no": payslip.reference_no},
        )
