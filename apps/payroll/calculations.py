"""
Payslip arithmetic.

All amounts are ``Decimal`` quantized to cents with ROUND_HALF_UP. Floats are
refused outright so binary approximations never reach a stored total.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from common.exceptions import InvalidAmount


CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
# Largest value a DecimalField(max_digits=12, decimal_places=2) column holds.
MAX_AMOUNT = Decimal("9999999999.99")

EARNING_FIELDS = (
    "basic_salary_amount",
    "fuel_allowance",
    "housing_allowance",
    "transport_allowance",
    "utility_subsidy",
    "maintenance_allowance",
    "bonus",
    "other_allowances",
)

DEDUCTION_FIELDS = (
    "ssf_employee",
    "income_tax",
    "provident_fund",
    "loans",
    "other_deductions",
)

CONTRIBUTION_FIELDS = (
    "employer_ssf",
    "employer_pf",
)

# Stored but not part of any total.
INFORMATIONAL_FIELDS = (
    "annual_salary",
    "basic_salary_hours",
    "taxable_benefits",
)

COMPONENT_FIELDS = EARNING_FIELDS + DEDUCTION_FIELDS + CONTRIBUTION_FIELDS
MONEY_FIELDS = COMPONENT_FIELDS + INFORMATIONAL_FIELDS

TOTAL_FIELDS = (
    "total_earnings",
    "total_deductions",
    "net_pay",
    "total_ssf",
    "total_pf",
)


def to_money(value: Any, field: str = "amount") -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, (bool, float)):
        raise InvalidAmount(
            f"{field} must be a decimal string or integer, not {type(value).__name__}.",
            detail={field: ["Use a decimal string such as \"1250.50\"."]},
        )
    try:
        amount = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(f"{field} is not a valid amount.", detail={field: ["Not a valid amount."]})
    if not amount.is_finite():
        raise InvalidAmount(f"{field} is not a valid amount.", detail={field: ["Not a valid amount."]})
    if amount < 0:
        raise InvalidAmount(f"{field} cannot be negative.", detail={field: ["Must be zero or greater."]})
    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    if amount > MAX_AMOUNT:
        raise InvalidAmount(f"{field} exceeds {MAX_AMOUNT}.", detail={field: [f"Must not exceed {MAX_AMOUNT}."]})
    return amount


def normalize_components(inputs: Mapping[str, Any], fields=MONEY_FIELDS) -> dict[str, Decimal]:
    """Normalize every money field of ``fields``; absent fields become 0.00."""
    return {field: to_money(inputs.get(field), field) for field in fields}


@dataclass(frozen=True)
class PayslipTotals:
    total_earnings: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    total_ssf: Decimal
    total_pf: Decimal

    def as_dict(self) -> dict[str, Decimal]:
        return {field: getattr(self, field) for field in TOTAL_FIELDS}


def _sum(components: Mapping[str, Any], fields) -> Decimal:
    return sum((to_money(components.get(field), field) for field in fields), ZERO)


def compute_totals(components: Mapping[str, Any]) -> PayslipTotals:
    total_earnings = _sum(components, EARNING_FIELDS)
    total_deductions = _sum(components, DEDUCTION_FIELDS)
    totals = PayslipTotals(
        total_earnings=total_earnings,
        total_deductions=total_deductions,
        net_pay=total_earnings - total_deductions,
        total_ssf=_sum(components, ("ssf_employee", "employer_ssf")),
        total_pf=_sum(components, ("provident_fund", "employer_pf")),
    )
    check_totals(totals)
    return totals


def check_totals(totals: PayslipTotals) -> None:
    """Aggregates obey the same bounds as their inputs: non-negative and within column capacity."""
    if totals.net_pay < 0:
        raise InvalidAmount(
            f"Deductions ({totals.total_deductions}) exceed earnings ({totals.total_earnings}).",
            detail={"net_pay": ["Net pay cannot be negative."]},
        )
    oversized = [field for field, value in totals.as_dict().items() if value > MAX_AMOUNT]
    if oversized:
        raise InvalidAmount(
            f"Totals exceed {MAX_AMOUNT}: {', '.join(oversized)}.",
            detail={field: [f"Must not exceed {MAX_AMOUNT}."] for field in oversized},
        )


@dataclass(frozen=True)
class StatutoryRates:
    """Contribution rates as percentages of the basic salary amount."""

    employee_ssf: Decimal = Decimal("5.5")
    employer_ssf: Decimal = Decimal("13")
    employee_pf: Decimal = Decimal("5")
    employer_pf: Decimal = Decimal("5")

    @classmethod
    def from_mapping(cls, rates: Optional[Mapping[str, Any]]) -> "StatutoryRates":
        rates = rates or {}
        defaults = cls()
        return cls(**{
            name: Decimal(str(rates.get(name, getattr(defaults, name))))
            for name in ("employee_ssf", "employer_ssf", "employee_pf", "employer_pf")
        })


RATE_TARGETS = {
    "ssf_employee": "employee_ssf",
    "employer_ssf": "employer_ssf",
    "provident_fund": "employee_pf",
    "employer_pf": "employer_pf",
}


def apply_statutory_rates(
    components: Mapping[str, Decimal],
    rates: StatutoryRates,
    supplied: frozenset = frozenset(),
) -> dict[str, Decimal]:
    """
    Fill statutory fields from ``basic_salary_amount`` x rate, leaving any
    field listed in ``supplied`` untouched.
    """
    result = dict(components)
    basic = to_money(result.get("basic_salary_amount"), "basic_salary_amount")
    for field, rate_name in RATE_TARGETS.items():
        if field in supplied:
            continue
        rate = getattr(rates, rate_name)
        result[field] = (basic * rate / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
    return result
