from unittest.mock import patch

from django.core.cache import cache
from django.test import TestCase
from rest_framework.test import APIClient

from accounts.models import AuditLog
from accounts.services import CredentialStore
from apps.payroll.models import Payslip
from apps.payroll.services import PayslipLedger


class PayrollApiTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.employee = self._user("EMP001", "kmensah", "Kwame Mensah")
        self.other_employee = self._user("EMP002", "aowusu", "Ama Owusu")
        self.admin = self._user("EMP900", "payroll_admin", "Payroll Admin", is_staff=True)

    @staticmethod
    def _user(employee_id, username, name, is_staff=False):
        user = CredentialStore.create_user(
            employee_id=employee_id,
            username=username,
            password="StrongPass123!",
            name=name,
            department="admin-finance",
        )
        if is_staff:
            user.is_staff = True
            user.save(update_fields=["is_staff"])
        return user

    def _create(self, employee_id="EMP001", month="March", year=2025, **components):
        payload = {
            "employee_id": employee_id,
            "month": month,
            "year": year,
            "basic_salary_amount": "3000.00",
            "housing_allowance": "500.00",
            "transport_allowance": "200.50",
            "income_tax": "450.25",
            "ssf_employee": "165.00",
            "employer_ssf": "390.00",
        }
        payload.update(components)
        return self.client.post("/api/v1/payroll/admin/payslips/", payload, format="json")

    def test_employee_cannot_access_payroll_admin_endpoints(self):
        self.client.force_authenticate(user=self.employee)
        response = self.client.get("/api/v1/payroll/admin/payslips/")
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.data["success"])

        response = self._create()
        self.assertEqual(response.status_code, 403)
        self.assertFalse(Payslip.objects.exists())

    def test_anonymous_cannot_read_payslips(self):
        response = self.client.get("/api/v1/payroll/")
        self.assertEqual(response.status_code, 401)

    def test_admin_creates_payslip_with_derived_totals(self):
        self.client.force_authenticate(user=self.admin)
        response = self._create(total_earnings="99999.00")

        self.assertEqual(response.status_code, 201)
        payslip = response.data["payslip"]
        self.assertEqual(payslip["employee_id"], "EMP001")
        self.assertEqual(payslip["employee_name"], "Kwame Mensah")
        self.assertEqual(payslip["total_earnings"], "3700.50")
        self.assertEqual(payslip["total_deductions"], "615.25")
        self.assertEqual(payslip["net_pay"], "3085.25")
        self.assertEqual(payslip["total_ssf"], "555.00")
        self.assertEqual(payslip["status"], "draft")
        self.assertTrue(AuditLog.objects.filter(action="payslip_created", user=self.admin).exists())

    def test_duplicate_period_returns_conflict(self):
        self.client.force_authenticate(user=self.admin)
        self.assertEqual(self._create().status_code, 201)

        response = self._create()
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "duplicate_period")
        self.assertEqual(Payslip.objects.count(), 1)

    def test_negative_amount_returns_invalid_amount(self):
        self.client.force_authenticate(user=self.admin)
        response = self._create(bonus="-5.00")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_amount")
        self.assertIn("bonus", response.data["error"])

    def test_unknown_employee_is_a_validation_error(self):
        self.client.force_authenticate(user=self.admin)
        response = self._create(employee_id="EMP404")

        self.assertEqual(response.status_code, 400)
        self.assertIn("employee_id", response.data["error"])

    def test_employee_sees_only_own_payslips(self):
        self.client.force_authenticate(user=self.admin)
        self._create(month="January")
        self._create(month="March")
        self._create(employee_id="EMP002", month="March")

        self.client.force_authenticate(user=self.employee)
        response = self.client.get("/api/v1/payroll/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual([row["month"] for row in response.data["payslips"]], ["March", "January"])
        self.assertTrue(all(row["employee_id"] == "EMP001" for row in response.data["payslips"]))

    def test_employee_reads_single_period(self):
        self.client.force_authenticate(user=self.admin)
        self._create()

        self.client.force_authenticate(user=self.employee)
        response = self.client.get("/api/v1/payroll/?month=March&year=2025")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["payslip"]["net_pay"], "3085.25")

        response = self.client.get("/api/v1/payroll/?month=April&year=2025")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data["code"], "not_found")

    def test_month_without_year_is_rejected(self):
        self.client.force_authenticate(user=self.employee)
        response = self.client.get("/api/v1/payroll/?month=March")
        self.assertEqual(response.status_code, 400)

    def test_admin_filters_list(self):
        self.client.force_authenticate(user=self.admin)
        self._create()
        self._create(employee_id="EMP002")

        response = self.client.get("/api/v1/payroll/admin/payslips/?employee_id=EMP002")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["payslips"][0]["employee_id"], "EMP002")

    def test_patch_recomputes_totals(self):
        self.client.force_authenticate(user=self.admin)
        payslip_id = self._create().data["payslip"]["id"]

        response = self.client.patch(
            f"/api/v1/payroll/admin/payslips/{payslip_id}/",
            {"bonus": "100.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["payslip"]["total_earnings"], "3800.50")
        self.assertEqual(response.data["payslip"]["net_pay"], "3185.25")

    def test_status_flow_and_invalid_transition(self):
        self.client.force_authenticate(user=self.admin)
        payslip_id = self._create().data["payslip"]["id"]
        url = f"/api/v1/payroll/admin/payslips/{payslip_id}/status/"

        response = self.client.patch(url, {"status": "approved"}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["payslip"]["status"], "approved")

        response = self.client.patch(
            f"/api/v1/payroll/admin/payslips/{payslip_id}/",
            {"bonus": "100.00"},
            format="json",
        )
        self.assertEqual(response.status_code, 409)

        response = self.client.patch(url, {"status": "paid"}, format="json")
        self.assertEqual(response.status_code, 200)

        response = self.client.patch(url, {"status": "draft"}, format="json")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "invalid_transition")
        self.assertEqual(Payslip.objects.get(id=payslip_id).status, Payslip.Status.PAID)
        self.assertEqual(AuditLog.objects.filter(action="payslip_status_changed").count(), 2)

    @patch("apps.payroll.views.PayrollPolicy.can_change_status", return_value=False)
    def test_status_change_respects_policy_hook(self, can_change_status):
        self.client.force_authenticate(user=self.admin)
        payslip_id = self._create().data["payslip"]["id"]

        response = self.client.patch(
            f"/api/v1/payroll/admin/payslips/{payslip_id}/status/",
            {"status": "approved"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)
        can_change_status.assert_called_once()
        self.assertEqual(Payslip.objects.get(id=payslip_id).status, Payslip.Status.DRAFT)

    def test_assign_reference(self):
        self.client.force_authenticate(user=self.admin)
        first_id = self._create().data["payslip"]["id"]
        second_id = self._create(employee_id="EMP002").data["payslip"]["id"]

        response = self.client.post(f"/api/v1/payroll/admin/payslips/{first_id}/reference/", {}, format="json")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["payslip"]["reference_no"], "PS-202503-EMP001")

        response = self.client.post(
            f"/api/v1/payroll/admin/payslips/{second_id}/reference/",
            {"reference_no": "PS-202503-EMP001"},
            format="json",
        )
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["code"], "duplicate_reference")

    def test_missing_payslip_returns_not_found(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get("/api/v1/payroll/admin/payslips/9999/")
        self.assertEqual(response.status_code, 404)

    def test_snapshot_is_frozen_after_profile_change(self):
        self.client.force_authenticate(user=self.admin)
        payslip_id = self._create().data["payslip"]["id"]
        CredentialStore.update_user(self.employee, name="Kwame A. Mensah")

        response = self.client.get(f"/api/v1/payroll/admin/payslips/{payslip_id}/")
        self.assertEqual(response.data["payslip"]["employee_name"], "Kwame Mensah")
        self.assertEqual(PayslipLedger.get_by_period(employee_id="EMP001", month="March", year=2025).id, payslip_id)

    def test_deductions_above_earnings_return_invalid_amount(self):
        self.client.force_authenticate(user=self.admin)
        response = self._create(loans="5000.00")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_amount")
        self.assertIn("net_pay", response.data["error"])
        self.assertFalse(Payslip.objects.exists())

    def test_oversized_totals_return_invalid_amount(self):
        self.client.force_authenticate(user=self.admin)
        response = self._create(
            basic_salary_amount="9999999999.99",
            housing_allowance="9999999999.99",
            bonus="9999999999.99",
            other_allowances="9999999999.99",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "invalid_amount")
        self.assertIn("total_earnings", response.data["error"])
        self.assertFalse(Payslip.objects.exists())

    def test_float_amount_is_rejected(self):
        self.client.force_authenticate(user=self.admin)
        response = self._create(bonus=12.5)

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["code"], "validation_error")
        self.assertIn("bonus", response.data["error"])
        self.assertFalse(Payslip.objects.exists())

    def test_integer_amount_is_accepted(self):
        self.client.force_authenticate(user=self.admin)
        response = self._create(bonus=100)

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["payslip"]["bonus"], "100.00")
