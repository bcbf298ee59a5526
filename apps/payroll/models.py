from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from common.exceptions import InvalidAmount

from .calculations import COMPONENT_FIELDS, TOTAL_FIELDS, compute_totals


def money_field(**kwargs):
    kwargs.setdefault("default", 0)
    return models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)], **kwargs)


class Payslip(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        APPROVED = "approved", "Approved"
        PAID = "paid", "Paid"

    class Month(models.TextChoices):
        JANUARY = "January", "January"
        FEBRUARY = "February", "February"
        MARCH = "March", "March"
        APRIL = "April", "April"
        MAY = "May", "May"
        JUNE = "June", "June"
        JULY = "July", "July"
        AUGUST = "August", "August"
        SEPTEMBER = "September", "September"
        OCTOBER = "October", "October"
        NOVEMBER = "November", "November"
        DECEMBER = "December", "December"

    employee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        to_field="employee_id",
        db_column="employee_id",
        on_delete=models.PROTECT,
        related_name="payslips",
    )

    # Period
    month = models.CharField(max_length=9, choices=Month.choices)
    year = models.PositiveIntegerField(validators=[MinValueValidator(2000), MaxValueValidator(2100)])

    # Employee snapshot, frozen at creation
    staff_no = models.CharField(max_length=50)
    employee_name = models.CharField(max_length=255)
    department = models.CharField(max_length=100)
    position = models.CharField(max_length=150, blank=True, default="")
    cost_centre = models.CharField(max_length=100, blank=True, default="")
    region = models.CharField(max_length=100, blank=True, default="Headquarters")
    band = models.CharField(max_length=50, blank=True, default="")
    annual_salary = money_field()

    # Earnings
    basic_salary_hours = money_field()
    basic_salary_amount = money_field()
    fuel_allowance = money_field()
    housing_allowance = money_field()
    transport_allowance = money_field()
    utility_subsidy = money_field()
    maintenance_allowance = money_field()
    bonus = money_field()
    other_allowances = money_field()
    total_earnings = money_field()

    # Employer contributions
    employer_ssf = money_field()
    total_ssf = money_field()
    employer_pf = money_field()
    total_pf = money_field()

    # Deductions
    ssf_employee = money_field()
    income_tax = money_field()
    provident_fund = money_field()
    loans = money_field()
    other_deductions = money_field()
    total_deductions = money_field()

    net_pay = money_field()

    # Bank details
    bank_name = models.CharField(max_length=150, blank=True, default="")
    account_number = models.CharField(max_length=50, blank=True, default="")

    psf_no = models.CharField(max_length=50, blank=True, default="")
    taxable_benefits = money_field()

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    reference_no = models.CharField(max_length=100, unique=True, null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-year", "employee_id", "id"]
        indexes = [
            models.Index(fields=["status"], name="payroll_payslip_status_idx"),
            models.Index(fields=["year", "month"], name="payroll_payslip_period_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["employee", "month", "year"],
                name="payroll_unique_payslip_employee_period",
            ),
        ]

    def __str__(self):
        return f"{self.employee_id}:{self.month} {self.year}:{self.net_pay}"

    @property
    def month_number(self) -> int:
        return self.Month.values.index(self.month) + 1

    def apply_totals(self):
        totals = compute_totals({field: getattr(self, field) for field in COMPONENT_FIELDS})
        for field, value in totals.as_dict().items():
            setattr(self, field, value)
        return totals

    def clean(self):
        super().clean()
        try:
            self.apply_totals()
        except InvalidAmount as exc:
            raise ValidationError(exc.message) from exc

    def save(self, *args, **kwargs):
        # Aggregates are always derived from the components being written.
        self.apply_totals()
        update_fields = kwargs.get("update_fields")
        if update_fields is not None:
            kwargs["update_fields"] = list({*update_fields, *TOTAL_FIELDS, "updated_at"})
        super().save(*args, **kwargs)