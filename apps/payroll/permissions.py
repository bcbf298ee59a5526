from rest_framework.permissions import BasePermission

from .policies import PayrollPolicy


class IsPayrollManager(BasePermission):
    def has_permission(self, request, view):
        return PayrollPolicy.can_manage_payroll(request.user)


class IsPayrollAuthenticated(BasePermission):
    def has_permission(self, request, view):
        return PayrollPolicy.can_view_own(request.user)
