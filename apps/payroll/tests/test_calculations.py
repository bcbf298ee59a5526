from decimal import Decimal

import pytest

from apps.payroll.calculations import (
    StatutoryRates,
    apply_statutory_rates,
    compute_totals,
    normalize_components,
    to_money,
)
from common.exceptions import InvalidAmount


def test_totals_are_sums_of_components():
    totals = compute_totals(
        {
            "basic_salary_amount": Decimal("3000.00"),
            "housing_allowance": Decimal("500.00"),
            "transport_allowance": Decimal("200.50"),
            "income_tax": Decimal("450.25"),
            "ssf_employee": Decimal("165.00"),
            "employer_ssf": Decimal("390.00"),
        }
    )

    assert totals.total_earnings == Decimal("3700.50")
    assert totals.total_deductions == Decimal("615.25")
    assert totals.net_pay == Decimal("3085.25")
    assert totals.total_ssf == Decimal("555.00")
    assert totals.total_pf == Decimal("0.00")


def test_employer_contributions_do_not_reduce_net_pay():
    totals = compute_totals({"basic_salary_amount": "1000", "employer_pf": "50", "employer_ssf": "130"})

    assert totals.net_pay == Decimal("1000.00")
    assert totals.total_deductions == Decimal("0.00")


def test_deductions_above_earnings_are_rejected():
    with pytest.raises(InvalidAmount) as exc_info:
        compute_totals({"basic_salary_amount": "100.00", "loans": "200.00"})

    assert "net_pay" in exc_info.value.detail


def test_net_pay_of_zero_is_allowed():
    totals = compute_totals({"basic_salary_amount": "200.00", "loans": "200.00"})

    assert totals.net_pay == Decimal("0.00")


def test_amount_above_column_capacity_is_rejected():
    assert to_money("9999999999.99") == Decimal("9999999999.99")
    with pytest.raises(InvalidAmount):
        to_money("10000000000.00")


def test_totals_above_column_capacity_are_rejected():
    components = {
        "basic_salary_amount": "9999999999.99",
        "housing_allowance": "9999999999.99",
        "bonus": "9999999999.99",
        "other_allowances": "9999999999.99",
    }

    with pytest.raises(InvalidAmount) as exc_info:
        compute_totals(components)

    assert "total_earnings" in exc_info.value.detail
    assert "net_pay" in exc_info.value.detail


def test_informational_fields_are_not_summed():
    totals = compute_totals({"annual_salary": "36000", "taxable_benefits": "250", "basic_salary_hours": "160"})

    assert totals.total_earnings == Decimal("0.00")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (None, Decimal("0.00")),
        ("", Decimal("0.00")),
        ("10.005", Decimal("10.01")),
        ("10.004", Decimal("10.00")),
        (" 12.5 ", Decimal("12.50")),
        (7, Decimal("7.00")),
        (Decimal("1.235"), Decimal("1.24")),
    ],
)
def test_to_money_quantizes_half_up(raw, expected):
    assert to_money(raw) == expected


@pytest.mark.parametrize("raw", ["-0.01", "abc", "NaN", "Infinity", 1.5, True])
def test_to_money_rejects_bad_amounts(raw):
    with pytest.raises(InvalidAmount):
        to_money(raw, "bonus")


def test_normalize_components_fills_missing_with_zero():
    components = normalize_components({"bonus": "12.30"}, fields=("bonus", "loans"))

    assert components == {"bonus": Decimal("12.30"), "loans": Decimal("0.00")}


def test_statutory_rates_fill_contributions_from_basic():
    components = normalize_components({"basic_salary_amount": "1000.00"})

    result = apply_statutory_rates(components, StatutoryRates())

    assert result["ssf_employee"] == Decimal("55.00")
    assert result["employer_ssf"] == Decimal("130.00")
    assert result["provident_fund"] == Decimal("50.00")
    assert result["employer_pf"] == Decimal("50.00")


def test_statutory_rates_keep_supplied_values():
    components = normalize_components({"basic_salary_amount": "1000.00", "ssf_employee": "60.00"})

    result = apply_statutory_rates(components, StatutoryRates(), supplied=frozenset({"ssf_employee"}))

    assert result["ssf_employee"] == Decimal("60.00")
    assert result["employer_ssf"] == Decimal("130.00")


def test_statutory_rates_from_mapping_overrides_defaults():
    rates = StatutoryRates.from_mapping({"employee_ssf": "6"})

    assert rates.employee_ssf == Decimal("6")
    assert rates.employer_ssf == Decimal("13")
