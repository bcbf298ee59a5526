from __future__ import annotations


class PayrollPolicy:
    @staticmethod
    def can_manage_payroll(user) -> bool:
        return bool(
            user
            and user.is_authenticated
            and user.is_active
            and (user.is_staff or user.is_superuser)
        )

    @staticmethod
    def can_view_own(user) -> bool:
        return bool(user and user.is_authenticated and getattr(user, "employee_id", None))

    @classmethod
    def can_change_status(cls, user, payslip, target_status: str) -> bool:
        # Hook for restricting approvals to a dedicated approver role.
        return cls.can_manage_payroll(user)
