from decimal import Decimal
from unittest.mock import patch

import pytest

from accounts.services import CredentialStore
from apps.payroll.models import Payslip
from apps.payroll.services import PayslipLedger, default_rates
from common.exceptions import (
    DuplicatePeriod,
    DuplicateReference,
    InvalidAmount,
    InvalidTransition,
    ValidationError,
)


def create_employee(employee_id="EMP001", username="kmensah", **extra):
    extra.setdefault("name", "Kwame Mensah")
    extra.setdefault("department", "technical")
    extra.setdefault("position", "Engineer")
    return CredentialStore.create_user(
        employee_id=employee_id,
        username=username,
        password="StrongPass123!",
        **extra,
    )


def create_payslip(employee, month="March", year=2025, **inputs):
    inputs.setdefault("basic_salary_amount", "3000.00")
    inputs.setdefault("income_tax", "450.25")
    return PayslipLedger.create_payslip(employee=employee, month=month, year=year, inputs=inputs)


@pytest.mark.django_db
def test_create_payslip_stores_totals_and_snapshot():
    employee = create_employee()

    payslip = create_payslip(employee, housing_allowance="500.00", ssf_employee="165.00")
    payslip.refresh_from_db()

    assert payslip.status == Payslip.Status.DRAFT
    assert payslip.total_earnings == Decimal("3500.00")
    assert payslip.total_deductions == Decimal("615.25")
    assert payslip.net_pay == Decimal("2884.75")
    assert payslip.staff_no == "EMP001"
    assert payslip.employee_name == "Kwame Mensah"
    assert payslip.department == "technical"
    assert payslip.position == "Engineer"
    assert payslip.region == "Headquarters"


@pytest.mark.django_db
def test_create_payslip_applies_statutory_rates_on_request():
    employee = create_employee()

    payslip = PayslipLedger.create_payslip(
        employee=employee,
        month="March",
        year=2025,
        inputs={"basic_salary_amount": "1000.00"},
        rates=default_rates(),
    )

    assert payslip.ssf_employee == Decimal("55.00")
    assert payslip.total_ssf == Decimal("185.00")
    assert payslip.total_pf == Decimal("100.00")
    assert payslip.net_pay == Decimal("895.00")


@pytest.mark.django_db
def test_duplicate_period_is_rejected():
    employee = create_employee()
    create_payslip(employee)

    with pytest.raises(DuplicatePeriod):
        create_payslip(employee)

    assert Payslip.objects.count() == 1


@pytest.mark.django_db
def test_duplicate_period_is_rejected_by_constraint():
    employee = create_employee()
    create_payslip(employee)

    with patch.object(PayslipLedger, "get_by_period", return_value=None):
        with pytest.raises(DuplicatePeriod):
            create_payslip(employee)

    assert Payslip.objects.count() == 1


@pytest.mark.django_db
def test_same_month_in_another_year_is_allowed():
    employee = create_employee()
    create_payslip(employee, year=2024)
    create_payslip(employee, year=2025)

    assert Payslip.objects.count() == 2


@pytest.mark.django_db
def test_negative_amount_creates_nothing():
    employee = create_employee()

    with pytest.raises(InvalidAmount):
        create_payslip(employee, bonus="-10.00")

    assert not Payslip.objects.exists()


@pytest.mark.django_db
def test_invalid_period_is_rejected():
    employee = create_employee()

    with pytest.raises(ValidationError) as exc:
        create_payslip(employee, month="Smarch", year=1999)

    assert set(exc.value.detail) == {"month", "year"}


@pytest.mark.django_db
def test_snapshot_survives_profile_changes():
    employee = create_employee()
    payslip = create_payslip(employee)

    CredentialStore.update_user(employee, name="Kwame A. Mensah", position="Lead Engineer")
    payslip.refresh_from_db()

    assert payslip.employee_name == "Kwame Mensah"
    assert payslip.position == "Engineer"


@pytest.mark.django_db
def test_recompute_totals_in_draft():
    employee = create_employee()
    payslip = create_payslip(employee)

    payslip = PayslipLedger.recompute_totals(payslip=payslip, inputs={"bonus": "250.00", "bank_name": "GCB"})
    payslip.refresh_from_db()

    assert payslip.bonus == Decimal("250.00")
    assert payslip.total_earnings == Decimal("3250.00")
    assert payslip.net_pay == Decimal("2799.75")
    assert payslip.bank_name == "GCB"


@pytest.mark.django_db
def test_recompute_totals_rejects_unknown_fields():
    payslip = create_payslip(create_employee())

    with pytest.raises(ValidationError):
        PayslipLedger.recompute_totals(payslip=payslip, inputs={"net_pay": "1000000.00"})


@pytest.mark.django_db
def test_approved_payslip_is_frozen():
    payslip = create_payslip(create_employee())
    PayslipLedger.advance_status(payslip=payslip, target_status=Payslip.Status.APPROVED)

    with pytest.raises(InvalidTransition):
        PayslipLedger.recompute_totals(payslip=payslip, inputs={"bonus": "1.00"})


@pytest.mark.django_db
def test_status_moves_forward_only():
    payslip = create_payslip(create_employee())

    payslip, previous = PayslipLedger.advance_status(payslip=payslip, target_status=Payslip.Status.APPROVED)
    assert previous == Payslip.Status.DRAFT
    assert payslip.approved_at is not None

    payslip, previous = PayslipLedger.advance_status(payslip=payslip, target_status=Payslip.Status.PAID)
    assert previous == Payslip.Status.APPROVED
    assert payslip.paid_at is not None

    with pytest.raises(InvalidTransition):
        PayslipLedger.advance_status(payslip=payslip, target_status=Payslip.Status.DRAFT)

    payslip.refresh_from_db()
    assert payslip.status == Payslip.Status.PAID


@pytest.mark.django_db
def test_draft_cannot_skip_to_paid():
    payslip = create_payslip(create_employee())

    with pytest.raises(InvalidTransition):
        PayslipLedger.advance_status(payslip=payslip, target_status=Payslip.Status.PAID)


@pytest.mark.django_db
def test_unknown_status_is_a_validation_error():
    payslip = create_payslip(create_employee())

    with pytest.raises(ValidationError):
        PayslipLedger.advance_status(payslip=payslip, target_status="cancelled")


@pytest.mark.django_db
def test_generated_reference_and_uniqueness():
    first = create_payslip(create_employee())
    second = create_payslip(create_employee(employee_id="EMP002", username="aowusu"))

    first = PayslipLedger.assign_reference(payslip=first)
    assert first.reference_no == "PS-202503-EMP001"

    with pytest.raises(DuplicateReference):
        PayslipLedger.assign_reference(payslip=second, reference_no="PS-202503-EMP001")


@pytest.mark.django_db
def test_create_with_taken_reference_is_rejected():
    first_employee = create_employee()
    PayslipLedger.create_payslip(
        employee=first_employee, month="March", year=2025, inputs={}, reference_no="REF-1",
    )

    with pytest.raises(DuplicateReference):
        PayslipLedger.create_payslip(
            employee=create_employee(employee_id="EMP002", username="aowusu"),
            month="March",
            year=2025,
            inputs={},
            reference_no="REF-1",
        )


@pytest.mark.django_db
def test_list_for_employee_newest_period_first():
    employee = create_employee()
    other = create_employee(employee_id="EMP002", username="aowusu")
    create_payslip(employee, month="January", year=2025)
    create_payslip(employee, month="December", year=2024)
    create_payslip(employee, month="March", year=2025)
    create_payslip(other, month="April", year=2025)

    payslips = PayslipLedger.list_for_employee(employee_id="EMP001")

    assert [(p.month, p.year) for p in payslips] == [("March", 2025), ("January", 2025), ("December", 2024)]


@pytest.mark.django_db
def test_get_by_period():
    employee = create_employee()
    payslip = create_payslip(employee)

    assert PayslipLedger.get_by_period(employee_id="EMP001", month="March", year=2025) == payslip
    assert PayslipLedger.get_by_period(employee_id="EMP001", month="April", year=2025) is None


@pytest.mark.django_db
def test_deductions_above_earnings_create_nothing():
    employee = create_employee()

    with pytest.raises(InvalidAmount) as exc:
        PayslipLedger.create_payslip(
            employee=employee,
            month="March",
            year=2025,
            inputs={"basic_salary_amount": "100.00", "loans": "500.00"},
        )

    assert "net_pay" in exc.value.detail
    assert not Payslip.objects.exists()


@pytest.mark.django_db
def test_recompute_cannot_push_net_pay_below_zero():
    payslip = create_payslip(create_employee())

    with pytest.raises(InvalidAmount):
        PayslipLedger.recompute_totals(payslip=payslip, inputs={"loans": "5000.00"})

    payslip.refresh_from_db()
    assert payslip.loans == Decimal("0.00")
    assert payslip.net_pay == Decimal("2549.75")


@pytest.mark.django_db
def test_duplicate_reference_is_rejected_by_constraint_on_assign():
    first = PayslipLedger.assign_reference(payslip=create_payslip(create_employee()))
    second = create_payslip(create_employee(employee_id="EMP002", username="aowusu"))

    with patch.object(PayslipLedger, "_reference_taken", return_value=False):
        with pytest.raises(DuplicateReference):
            PayslipLedger.assign_reference(payslip=second, reference_no=first.reference_no)

    second.refresh_from_db()
    assert second.reference_no is None


@pytest.mark.django_db
def test_duplicate_reference_is_rejected_by_constraint_on_create():
    PayslipLedger.create_payslip(
        employee=create_employee(), month="March", year=2025, inputs={}, reference_no="REF-1",
    )

    with patch.object(PayslipLedger, "_reference_taken", side_effect=[False, True]):
        with pytest.raises(DuplicateReference):
            PayslipLedger.create_payslip(
                employee=create_employee(employee_id="EMP002", username="aowusu"),
                month="March",
                year=2025,
                inputs={},
                reference_no="REF-1",
            )

    assert Payslip.objects.count() == 1
