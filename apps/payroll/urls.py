from django.urls import path

from .views import (
    MyPayslipsAPIView,
    PayslipAdminAPIView,
    PayslipDetailAdminAPIView,
    PayslipReferenceAPIView,
    PayslipStatusAPIView,
)


urlpatterns = [
    path("", MyPayslipsAPIView.as_view(), name="payroll-my"),
    path("admin/payslips/", PayslipAdminAPIView.as_view(), name="payroll-payslips"),
    path("admin/payslips/<int:payslip_id>/", PayslipDetailAdminAPIView.as_view(), name="payroll-payslip-detail"),
    path("admin/payslips/<int:payslip_id>/status/", PayslipStatusAPIView.as_view(), name="payroll-payslip-status"),
    path("admin/payslips/<int:payslip_id>/reference/", PayslipReferenceAPIView.as_view(), name="payroll-payslip-reference"),
]
