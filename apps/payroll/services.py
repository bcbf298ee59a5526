from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from common.exceptions import (
    DuplicatePeriod,
    DuplicateReference,
    InvalidTransition,
    ValidationError,
)

from .calculations import (
    MONEY_FIELDS,
    RATE_TARGETS,
    StatutoryRates,
    apply_statutory_rates,
    normalize_components,
)
from .models import Payslip


logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = (
    "staff_no",
    "employee_name",
    "department",
    "position",
    "cost_centre",
    "region",
    "band",
)

DETAIL_FIELDS = (
    "bank_name",
    "account_number",
    "psf_no",
)

EDITABLE_FIELDS = MONEY_FIELDS + DETAIL_FIELDS

ALLOWED_TRANSITIONS = {
    Payslip.Status.DRAFT: [Payslip.Status.APPROVED],
    Payslip.Status.APPROVED: [Payslip.Status.PAID],
    Payslip.Status.PAID: [],
}


def default_rates() -> StatutoryRates:
    return StatutoryRates.from_mapping(getattr(settings, "PAYROLL_STATUTORY_RATES", None))


class PayslipLedger:
    @staticmethod
    def validate_period(month: Optional[str], year: Any) -> tuple[str, int]:
        errors = {}
        if month not in Payslip.Month.values:
            errors["month"] = [f"Month must be one of: {', '.join(Payslip.Month.values)}."]
        try:
            year = int(year)
        except (TypeError, ValueError):
            errors["year"] = ["Year must be an integer."]
        else:
            if not 2000 <= year <= 2100:
                errors["year"] = ["Year must be between 2000 and 2100."]
        if errors:
            raise ValidationError("Invalid payroll period.", detail=errors)
        return month, year

    @staticmethod
    def capture_snapshot(user, **overrides) -> dict[str, str]:
        snapshot = {
            "staff_no": user.employee_id,
            "employee_name": user.name,
            "department": user.department,
            "position": user.position or "",
            "cost_centre": "",
            "region": getattr(settings, "PAYROLL_DEFAULT_REGION", "Headquarters"),
            "band": "",
        }
        snapshot.update({field: value for field, value in overrides.items() if field in SNAPSHOT_FIELDS and value is not None})
        return snapshot

    @staticmethod
    def get_by_period(*, employee_id: str, month: str, year: int) -> Optional[Payslip]:
        return Payslip.objects.filter(employee_id=employee_id, month=month, year=year).first()

    @staticmethod
    def list_for_employee(*, employee_id: str):
        payslips = list(Payslip.objects.filter(employee_id=employee_id))
        payslips.sort(key=lambda payslip: (payslip.year, payslip.month_number), reverse=True)
        return payslips

    @staticmethod
    def _reference_taken(reference_no: Optional[str], exclude_pk=None) -> bool:
        if not reference_no:
            return False
        qs = Payslip.objects.filter(reference_no=reference_no)
        if exclude_pk is not None:
            qs = qs.exclude(pk=exclude_pk)
        return qs.exists()

    @staticmethod
    def _duplicate_reference(reference_no: str) -> DuplicateReference:
        return DuplicateReference(
            f"Reference number {reference_no} is already in use.",
            detail={"reference_no": ["This reference number is already in use."]},
        )

    @staticmethod
    def _duplicate_period(employee_id: str, month: str, year: int) -> DuplicatePeriod:
        return DuplicatePeriod(
            f"Payslip for {employee_id} for {month} {year} already exists.",
            detail={"employee_id": employee_id, "month": month, "year": year},
        )

    @classmethod
    def create_payslip(
        cls,
        *,
        employee,
        month: str,
        year: int,
        inputs: Mapping[str, Any],
        snapshot: Optional[Mapping[str, Any]] = None,
        reference_no: Optional[str] = None,
        rates: Optional[StatutoryRates] = None,
    ) -> Payslip:
        month, year = cls.validate_period(month, year)
        components = normalize_components(inputs)
        if rates is not None:
            supplied = frozenset(field for field in RATE_TARGETS if inputs.get(field) not in (None, ""))
            components = apply_statutory_rates(components, rates, supplied=supplied)

        if cls.get_by_period(employee_id=employee.employee_id, month=month, year=year):
            raise cls._duplicate_period(employee.employee_id, month, year)
        reference_no = reference_no or None
        if cls._reference_taken(reference_no):
            raise cls._duplicate_reference(reference_no)

        payslip = Payslip(
            employee=employee,
            month=month,
            year=year,
            status=Payslip.Status.DRAFT,
            reference_no=reference_no,
            **cls.capture_snapshot(employee, **(snapshot or {})),
            **components,
            **{field: inputs.get(field) or "" for field in DETAIL_FIELDS},
        )
        try:
            with transaction.atomic():
                payslip.save()
        except IntegrityError as exc:
            # Lost a race with a concurrent insert; the constraint is authoritative.
            if cls._reference_taken(reference_no):
                raise cls._duplicate_reference(reference_no) from exc
            raise cls._duplicate_period(employee.employee_id, month, year) from exc

        logger.info(
            "Created payslip %s for %s %s %s (net %s)",
            payslip.pk, payslip.employee_id, month, year, payslip.net_pay,
        )
        return payslip

    @classmethod
    @transaction.atomic
    def recompute_totals(cls, *, payslip: Payslip, inputs: Mapping[str, Any]) -> Payslip:
        """Apply component changes and re-derive the aggregates in the same write."""
        locked = Payslip.objects.select_for_update().get(pk=payslip.pk)
        if locked.status != Payslip.Status.DRAFT:
            raise InvalidTransition(
                f"Only draft payslips can be edited; this one is {locked.status}.",
                detail={"status": locked.status},
            )

        unknown = sorted(set(inputs) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(
                f"Unsupported fields: {', '.join(unknown)}",
                detail={field: ["This field cannot be edited."] for field in unknown},
            )

        money = [field for field in MONEY_FIELDS if field in inputs]
        changes = normalize_components(inputs, fields=money)
        changes.update({field: inputs[field] or "" for field in DETAIL_FIELDS if field in inputs})
        for field, value in changes.items():
            setattr(locked, field, value)

        locked.save(update_fields=list(changes))
        logger.info("Recomputed payslip %s totals (net %s)", locked.pk, locked.net_pay)
        return locked

    @staticmethod
    @transaction.atomic
    def advance_status(*, payslip: Payslip, target_status: str) -> tuple[Payslip, str]:
        if target_status not in Payslip.Status.values:
            raise ValidationError(
                f"Unknown status {target_status!r}.",
                detail={"status": [f"Must be one of: {', '.join(Payslip.Status.values)}."]},
            )

        locked = Payslip.objects.select_for_update().get(pk=payslip.pk)
        previous = locked.status
        if target_status not in ALLOWED_TRANSITIONS.get(previous, []):
            raise InvalidTransition(
                f"Cannot change status from {previous} to {target_status}",
                detail={"from": previous, "to": target_status},
            )

        locked.status = target_status
        update_fields = ["status"]
        if target_status == Payslip.Status.APPROVED:
            locked.approved_at = timezone.now()
            update_fields.append("approved_at")
        elif target_status == Payslip.Status.PAID:
            locked.paid_at = timezone.now()
            update_fields.append("paid_at")
        locked.save(update_fields=update_fields)

        logger.info("Payslip %s status %s -> %s", locked.pk, previous, target_status)
        return locked, previous

    @staticmethod
    def generate_reference(payslip: Payslip) -> str:
        return f"PS-{payslip.year}{payslip.month_number:02d}-{payslip.employee_id}"

    @classmethod
    def assign_reference(cls, *, payslip: Payslip, reference_no: Optional[str] = None) -> Payslip:
        reference_no = reference_no or cls.generate_reference(payslip)
        if cls._reference_taken(reference_no, exclude_pk=payslip.pk):
            raise cls._duplicate_reference(reference_no)

        payslip.reference_no = reference_no
        try:
            with transaction.atomic():
                payslip.save(update_fields=["reference_no"])
        except IntegrityError as exc:
            raise cls._duplicate_reference(reference_no) from exc
        return payslip
