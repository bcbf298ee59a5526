from django.contrib import admin

from .calculations import TOTAL_FIELDS
from .models import Payslip
from .policies import PayrollPolicy


class PayrollManageAdminMixin:
    def _can_manage(self, request) -> bool:
        return PayrollPolicy.can_manage_payroll(request.user)

    def has_module_permission(self, request):
        return self._can_manage(request)

    def has_view_permission(self, request, obj=None):
        return self._can_manage(request)

    def has_add_permission(self, request):
        return self._can_manage(request)

    def has_change_permission(self, request, obj=None):
        if obj is not None and obj.status != Payslip.Status.DRAFT:
            return False
        return self._can_manage(request)

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Payslip)
class PayslipAdmin(PayrollManageAdminMixin, admin.ModelAdmin):
    list_display = ("staff_no", "employee_name", "month", "year", "total_earnings", "total_deductions", "net_pay", "status")
    list_filter = ("status", "year", "month", "department")
    search_fields = ("employee__employee_id", "employee_name", "reference_no")
    readonly_fields = (*TOTAL_FIELDS, "status", "approved_at", "paid_at", "created_at", "updated_at")
    raw_id_fields = ("employee",)
