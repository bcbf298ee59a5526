from unittest.mock import patch

from django.db import OperationalError
from django.test import TestCase
from rest_framework import exceptions as drf_exceptions
from rest_framework.test import APIClient

from common.exceptions import (
    DuplicatePeriod,
    InvalidCredentials,
    StoreUnavailable,
    envelope_exception_handler,
)


def test_service_error_renders_envelope():
    exc = DuplicatePeriod("Payslip for EMP001 for March 2025 already exists.", detail={"employee_id": "EMP001"})

    response = envelope_exception_handler(exc, {"view": None})

    assert response.status_code == 409
    assert response.data == {
        "success": False,
        "message": "Payslip for EMP001 for March 2025 already exists.",
        "code": "duplicate_period",
        "error": {"employee_id": "EMP001"},
    }


def test_default_message_is_used_without_override():
    response = envelope_exception_handler(InvalidCredentials(), {"view": None})

    assert response.status_code == 401
    assert response.data["message"] == "Invalid username or password"
    assert "error" not in response.data


def test_store_failure_hides_internal_detail():
    response = envelope_exception_handler(OperationalError("could not connect to 10.0.0.5"), {"view": None})

    assert response.status_code == 503
    assert response.data["code"] == StoreUnavailable.code
    assert "10.0.0.5" not in str(response.data)


def test_drf_validation_error_keeps_field_errors():
    exc = drf_exceptions.ValidationError({"month": ["This field is required."]})

    response = envelope_exception_handler(exc, {"view": None})

    assert response.status_code == 400
    assert response.data["success"] is False
    assert response.data["code"] == "validation_error"
    assert response.data["error"] == {"month": ["This field is required."]}


def test_other_drf_errors_use_their_status():
    response = envelope_exception_handler(drf_exceptions.PermissionDenied(), {"view": None})

    assert response.status_code == 403
    assert response.data["success"] is False
    assert response.data["code"] == "permission_denied"


def test_unexpected_errors_render_generic_envelope():
    response = envelope_exception_handler(RuntimeError("boom"), {"view": None})

    assert response.status_code == 500
    assert response.data["success"] is False
    assert response.data["code"] == "server_error"
    assert "boom" not in str(response.data)


class HealthCheckTests(TestCase):
    def setUp(self):
        self.client = APIClient()

    def test_health_reports_database(self):
        response = self.client.get("/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["database"], "ok")

    @patch("config.health.connection.ensure_connection", side_effect=OperationalError("down"))
    def test_health_reports_unavailable_store(self, ensure_connection):
        response = self.client.get("/health/")
        self.assertEqual(response.status_code, 503)
        self.assertFalse(response.json()["success"])
        self.assertEqual(response.json()["database"], "unavailable")
