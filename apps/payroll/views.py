from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.exceptions import NotFound

from .audit import PayrollAuditService
from .calculations import MONEY_FIELDS
from .models import Payslip
from .permissions import IsPayrollAuthenticated, IsPayrollManager
from .policies import PayrollPolicy
from .serializers import (
    PayslipComponentsSerializer,
    PayslipCreateSerializer,
    PayslipFilterSerializer,
    PayslipReferenceSerializer,
    PayslipSerializer,
    PayslipStatusSerializer,
    PeriodQuerySerializer,
)
from .services import DETAIL_FIELDS, SNAPSHOT_FIELDS, PayslipLedger, default_rates


def get_payslip_or_404(payslip_id: int) -> Payslip:
    payslip = Payslip.objects.select_related("employee").filter(id=payslip_id).first()
    if not payslip:
        raise NotFound("Payslip not found.")
    return payslip


class MyPayslipsAPIView(APIView):
    permission_classes = [IsAuthenticated, IsPayrollAuthenticated]

    def get(self, request):
        query = PeriodQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        employee_id = request.user.employee_id

        if "month" in query.validated_data:
            payslip = PayslipLedger.get_by_period(
                employee_id=employee_id,
                month=query.validated_data["month"],
                year=query.validated_data["year"],
            )
            if not payslip:
                raise NotFound("No payslip for this period.")
            return Response({"success": True, "payslip": PayslipSerializer(payslip).data}, status=status.HTTP_200_OK)

        payslips = PayslipLedger.list_for_employee(employee_id=employee_id)
        return Response(
            {
                "success": True,
                "count": len(payslips),
                "payslips": PayslipSerializer(payslips, many=True).data,
            },
            status=status.HTTP_200_OK,
        )


class PayslipAdminAPIView(APIView):
    permission_classes = [IsAuthenticated, IsPayrollManager]

    def get(self, request):
        query = PayslipFilterSerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        qs = Payslip.objects.filter(**query.validated_data).order_by("-year", "employee_id", "id")
        return Response(
            {
                "success": True,
                "count": qs.count(),
                "payslips": PayslipSerializer(qs, many=True).data,
            },
            status=status.HTTP_200_OK,
        )

    def post(self, request):
        serializer = PayslipCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        payslip = PayslipLedger.create_payslip(
            employee=serializer.context["employee"],
            month=data["month"],
            year=data["year"],
            inputs={field: data[field] for field in MONEY_FIELDS + DETAIL_FIELDS if field in data},
            snapshot={field: data[field] for field in SNAPSHOT_FIELDS if field in data},
            reference_no=data.get("reference_no"),
            rates=default_rates() if data.get("apply_statutory_rates") else None,
        )
        PayrollAuditService.log_payslip_created(request, payslip)
        return Response(
            {
                "success": True,
                "message": "Payslip created successfully!",
                "payslip": PayslipSerializer(payslip).data,
            },
            status=status.HTTP_201_CREATED,
        )


class PayslipDetailAdminAPIView(APIView):
    permission_classes = [IsAuthenticated, IsPayrollManager]

    def get(self, request, payslip_id: int):
        payslip = get_payslip_or_404(payslip_id)
        return Response({"success": True, "payslip": PayslipSerializer(payslip).data}, status=status.HTTP_200_OK)

    def patch(self, request, payslip_id: int):
        payslip = get_payslip_or_404(payslip_id)
        serializer = PayslipComponentsSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        payslip = PayslipLedger.recompute_totals(payslip=payslip, inputs=serializer.validated_data)
        PayrollAuditService.log_payslip_updated(request, payslip, serializer.validated_data.keys())
        return Response(
            {
                "success": True,
                "message": "Payslip updated.",
                "payslip": PayslipSerializer(payslip).data,
            },
            status=status.HTTP_200_OK,
        )


class PayslipStatusAPIView(APIView):
    permission_classes = [IsAuthenticated, IsPayrollManager]

    def patch(self, request, payslip_id: int):
        payslip = get_payslip_or_404(payslip_id)
        serializer = PayslipStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if not PayrollPolicy.can_change_status(request.user, payslip, serializer.validated_data["status"]):
            raise PermissionDenied("You cannot change the status of this payslip.")

        payslip, previous = PayslipLedger.advance_status(
            payslip=payslip,
            target_status=serializer.validated_data["status"],
        )
        PayrollAuditService.log_status_changed(request, payslip, previous_status=previous)
        return Response(
            {
                "success": True,
                "message": f"Payslip moved from {previous} to {payslip.status}.",
                "payslip": PayslipSerializer(payslip).data,
            },
            status=status.HTTP_200_OK,
        )


class PayslipReferenceAPIView(APIView):
    permission_classes = [IsAuthenticated, IsPayrollManager]

    def post(self, request, payslip_id: int):
        payslip = get_payslip_or_404(payslip_id)
        serializer = PayslipReferenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        payslip = PayslipLedger.assign_reference(
            payslip=payslip,
            reference_no=serializer.validated_data.get("reference_no") or None,
        )
        PayrollAuditService.log_reference_assigned(request, payslip)
        return Response(
            {
                "success": True,
                "message": "Reference number assigned.",
                "payslip": PayslipSerializer(payslip).data,
            },
            status=status.HTTP_200_OK,
        )
