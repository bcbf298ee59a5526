from django.contrib.auth import get_user_model
from rest_framework import serializers

from .models import Payslip


User = get_user_model()


class MoneyField(serializers.DecimalField):
    default_error_messages = {
        "float": "Use a decimal string such as \"1250.50\" or an integer.",
    }

    def to_internal_value(self, data):
        if isinstance(data, (bool, float)):
            self.fail("float")
        return super().to_internal_value(data)


def money(**kwargs):
    # Sign is checked by the ledger so negatives surface as invalid_amount.
    kwargs.setdefault("required", False)
    kwargs.setdefault("allow_null", True)
    return MoneyField(max_digits=12, decimal_places=2, **kwargs)


class PeriodQuerySerializer(serializers.Serializer):
    month = serializers.ChoiceField(choices=Payslip.Month.choices, required=False)
    year = serializers.IntegerField(min_value=2000, max_value=2100, required=False)

    def validate(self, attrs):
        if ("month" in attrs) != ("year" in attrs):
            raise serializers.ValidationError("month and year must be supplied together.")
        return attrs


class PayslipFilterSerializer(serializers.Serializer):
    employee_id = serializers.CharField(required=False)
    month = serializers.ChoiceField(choices=Payslip.Month.choices, required=False)
    year = serializers.IntegerField(min_value=2000, max_value=2100, required=False)
    status = serializers.ChoiceField(choices=Payslip.Status.choices, required=False)


class PayslipComponentsSerializer(serializers.Serializer):
    annual_salary = money()

    basic_salary_hours = money()
    basic_salary_amount = money()
    fuel_allowance = money()
    housing_allowance = money()
    transport_allowance = money()
    utility_subsidy = money()
    maintenance_allowance = money()
    bonus = money()
    other_allowances = money()

    employer_ssf = money()
    employer_pf = money()

    ssf_employee = money()
    income_tax = money()
    provident_fund = money()
    loans = money()
    other_deductions = money()

    taxable_benefits = money()

    bank_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    account_number = serializers.CharField(max_length=50, required=False, allow_blank=True)
    psf_no = serializers.CharField(max_length=50, required=False, allow_blank=True)


class PayslipCreateSerializer(PayslipComponentsSerializer):
    employee_id = serializers.CharField()
    month = serializers.ChoiceField(choices=Payslip.Month.choices)
    year = serializers.IntegerField(min_value=2000, max_value=2100)
    reference_no = serializers.CharField(max_length=100, required=False, allow_blank=True, allow_null=True)
    apply_statutory_rates = serializers.BooleanField(required=False, default=False)

    staff_no = serializers.CharField(max_length=50, required=False)
    position = serializers.CharField(max_length=150, required=False, allow_blank=True)
    cost_centre = serializers.CharField(max_length=100, required=False, allow_blank=True)
    region = serializers.CharField(max_length=100, required=False, allow_blank=True)
    band = serializers.CharField(max_length=50, required=False, allow_blank=True)

    def validate_employee_id(self, value: str):
        employee = User.objects.filter(employee_id=value).first()
        if not employee:
            raise serializers.ValidationError("Employee not found.")
        self.context["employee"] = employee
        return value


class PayslipStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Payslip.Status.choices)


class PayslipReferenceSerializer(serializers.Serializer):
    reference_no = serializers.CharField(max_length=100, required=False, allow_blank=True)


class PayslipSerializer(serializers.ModelSerializer):
    employee_id = serializers.CharField(read_only=True)

    class Meta:
        model = Payslip
        exclude = ("employee",)
        read_only_fields = (
            "total_earnings",
            "total_deductions",
            "net_pay",
            "total_ssf",
            "total_pf",
            "status",
            "approved_at",
            "paid_at",
            "created_at",
            "updated_at",
        )
