import pytest
from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from common.exceptions import DuplicateIdentity, InvalidCredentials, ValidationError

from .access_codes import AccessCodeRegistry
from .hashers import ConfigurableBCryptSHA256PasswordHasher
from .models import AuditLog, User
from .serializers import PublicUserSerializer
from .services import AccessRequestService, CredentialStore, EmployeeIdAllocator


def create_test_user(employee_id="EMP001", username="kmensah", password="StrongPass123!", **extra):
    extra.setdefault("name", "Kwame Mensah")
    extra.setdefault("department", "technical")
    return CredentialStore.create_user(
        employee_id=employee_id,
        username=username,
        password=password,
        **extra,
    )


# ================= API =================

class RegisterLoginApiTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()

    def test_register_returns_profile_without_password(self):
        response = self.client.post(
            "/api/v1/accounts/register/",
            {
                "employee_id": "EMP001",
                "username": "kmensah",
                "password": "StrongPass123!",
                "name": "Kwame Mensah",
                "department": "technical",
                "email": "kmensah@gogmi.org.gh",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data["success"])
        self.assertEqual(response.data["user"]["employee_id"], "EMP001")
        self.assertNotIn("password", response.data["user"])

        user = User.objects.get(employee_id="EMP001")
        self.assertTrue(user.password.startswith("bcrypt_sha256$"))
        self.assertTrue(user.check_password("StrongPass123!"))
        self.assertTrue(AuditLog.objects.filter(action="user_registered").exists())

    def test_register_duplicate_employee_id_returns_conflict(self):
        create_test_user()
        response = self.client.post(
            "/api/v1/accounts/register/",
            {
                "employee_id": "EMP001",
                "username": "another",
                "password": "StrongPass123!",
                "name": "Ama Owusu",
                "department": "technical",
            },
            format="json",
        )
        self.assertEqual(response.status_code, 409)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["code"], "duplicate_identity")
        self.assertEqual(response.data["message"], "User with this Employee ID already exists")
        self.assertEqual(User.objects.count(), 1)

    def test_register_missing_fields_returns_validation_envelope(self):
        response = self.client.post("/api/v1/accounts/register/", {"username": "x"}, format="json")
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data["success"])
        self.assertEqual(response.data["code"], "validation_error")
        self.assertIn("employee_id", response.data["error"])
        self.assertIn("password", response.data["error"])

    def test_login_returns_profile_and_tokens(self):
        create_test_user()
        response = self.client.post(
            "/api/v1/accounts/login/",
            {"username": "kmensah", "password": "StrongPass123!"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)
        self.assertEqual(response.data["user"]["username"], "kmensah")
        self.assertNotIn("password", response.data["user"])

    def test_login_failures_are_indistinguishable(self):
        create_test_user()
        wrong_password = self.client.post(
            "/api/v1/accounts/login/",
            {"username": "kmensah", "password": "nope"},
            format="json",
        )
        unknown_user = self.client.post(
            "/api/v1/accounts/login/",
            {"username": "ghost", "password": "nope"},
            format="json",
        )
        self.assertEqual(wrong_password.status_code, 401)
        self.assertEqual(unknown_user.status_code, 401)
        self.assertEqual(wrong_password.data, unknown_user.data)
        self.assertEqual(wrong_password.data["message"], "Invalid username or password")
        self.assertEqual(AuditLog.objects.filter(action="login_failed").count(), 2)

    def test_access_token_authenticates_requests(self):
        create_test_user()
        login = self.client.post(
            "/api/v1/accounts/login/",
            {"username": "kmensah", "password": "StrongPass123!"},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {login.data['access']}")
        response = self.client.get("/api/v1/accounts/users/me/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["user"]["employee_id"], "EMP001")


class UserApiTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()
        self.first = create_test_user()
        self.second = create_test_user(employee_id="EMP002", username="aowusu", name="Ama Owusu")

    def test_anonymous_cannot_list_users(self):
        response = self.client.get("/api/v1/accounts/users/")
        self.assertEqual(response.status_code, 401)
        self.assertFalse(response.data["success"])

    def test_list_users_ordered_by_creation_without_passwords(self):
        self.client.force_authenticate(user=self.first)
        response = self.client.get("/api/v1/accounts/users/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 2)
        self.assertEqual([row["employee_id"] for row in response.data["users"]], ["EMP001", "EMP002"])
        for row in response.data["users"]:
            self.assertNotIn("password", row)

    def test_update_own_profile(self):
        self.client.force_authenticate(user=self.first)
        response = self.client.patch(
            "/api/v1/accounts/users/me/",
            {"name": "Kwame A. Mensah", "position": "Engineer"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.first.refresh_from_db()
        self.assertEqual(self.first.name, "Kwame A. Mensah")
        self.assertEqual(self.first.position, "Engineer")
        self.assertEqual(self.first.employee_id, "EMP001")

    def test_update_profile_email_collision_returns_conflict(self):
        self.second.email = "aowusu@gogmi.org.gh"
        self.second.save(update_fields=["email"])
        self.client.force_authenticate(user=self.first)
        response = self.client.patch(
            "/api/v1/accounts/users/me/",
            {"email": "aowusu@gogmi.org.gh"},
            format="json",
        )
        self.assertEqual(response.status_code, 409)
        self.assertIn("email", response.data["error"])

    def test_change_password(self):
        self.client.force_authenticate(user=self.first)
        response = self.client.post(
            "/api/v1/accounts/users/me/password/",
            {"current_password": "StrongPass123!", "new_password": "NewSecurePass2025!"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.first.refresh_from_db()
        self.assertTrue(self.first.check_password("NewSecurePass2025!"))
        self.assertTrue(AuditLog.objects.filter(action="password_changed", user=self.first).exists())

    def test_change_password_rejects_wrong_current_password(self):
        self.client.force_authenticate(user=self.first)
        response = self.client.post(
            "/api/v1/accounts/users/me/password/",
            {"current_password": "wrong", "new_password": "NewSecurePass2025!"},
            format="json",
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("current_password", response.data["error"])


class RequestAccessApiTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()

    def _request(self, username, email):
        return self.client.post(
            "/api/v1/accounts/request-access/",
            {"email": email, "username": username, "name": username.title()},
            format="json",
        )

    def test_allocates_sequential_employee_ids(self):
        first = self._request("kmensah", "kmensah@gogmi.org.gh")
        second = self._request("aowusu", "aowusu@gogmi.org.gh")

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 201)
        self.assertEqual(first.data["credentials"]["employee_id"], "EMP-GEN-001")
        self.assertEqual(second.data["credentials"]["employee_id"], "EMP-GEN-002")
        self.assertEqual(first.data["credentials"]["temp_password"], "Welcome2025!")
        self.assertEqual(first.data["user"]["department"], "general")
        self.assertEqual(first.data["user"]["position"], "Employee")

    def test_temporary_password_logs_in(self):
        self._request("kmensah", "kmensah@gogmi.org.gh")
        response = self.client.post(
            "/api/v1/accounts/login/",
            {"username": "kmensah", "password": "Welcome2025!"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)

    def test_foreign_email_domain_is_rejected_without_side_effects(self):
        response = self._request("outsider", "outsider@example.com")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["message"], "Only @gogmi.org.gh emails are allowed")
        self.assertFalse(User.objects.exists())

    def test_email_domain_check_is_case_insensitive(self):
        response = self._request("kmensah", "KMensah@GOGMI.ORG.GH")
        self.assertEqual(response.status_code, 201)

    def test_taken_username_returns_conflict(self):
        create_test_user(username="kmensah")
        response = self._request("kmensah", "kmensah@gogmi.org.gh")
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["message"], "This username is already taken")
        self.assertEqual(User.objects.count(), 1)


class DepartmentAccessApiTests(TestCase):
    def setUp(self):
        cache.clear()
        self.client = APIClient()

    def test_correct_code_grants_access(self):
        response = self.client.post(
            "/api/v1/accounts/verify-department/",
            {"department": "technical", "access_code": "TECH2025"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["success"])
        self.assertTrue(AuditLog.objects.filter(action="department_access_granted").exists())

    def test_wrong_code_is_forbidden(self):
        response = self.client.post(
            "/api/v1/accounts/verify-department/",
            {"department": "technical", "access_code": "tech2025"},
            format="json",
        )
        self.assertEqual(response.status_code, 403)
        self.assertFalse(response.data["success"])
        entry = AuditLog.objects.get(action="department_access_denied")
        self.assertNotIn("tech2025", str(entry.metadata))

    def test_open_department_needs_no_code(self):
        response = self.client.post(
            "/api/v1/accounts/verify-department/",
            {"department": "general"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)

    def test_department_list_does_not_expose_codes(self):
        response = self.client.get("/api/v1/accounts/departments/")
        self.assertEqual(response.status_code, 200)
        keys = [row["key"] for row in response.data["departments"]]
        self.assertIn("general", keys)
        self.assertIn("technical", keys)
        self.assertNotIn("TECH2025", str(response.data))


# ================= SERVICES =================

def test_registry_verifies_codes():
    registry = AccessCodeRegistry({"technical": "TECH2025", "directorate": "DIR2025"})

    assert registry.verify("technical", "TECH2025") is True
    assert registry.verify("technical", "DIR2025") is False
    assert registry.verify("technical", None) is False
    assert registry.verify("unknown", "TECH2025") is False
    assert registry.verify(None, None) is False
    assert registry.verify("general", None) is True
    assert registry.departments() == ["directorate", "general", "technical"]


def test_registry_accepts_injected_open_department():
    registry = AccessCodeRegistry({}, open_department="lobby")

    assert registry.verify("lobby", "") is True
    assert registry.verify("general", "") is False


@pytest.mark.django_db
def test_password_round_trip_uses_fresh_salt():
    first = create_test_user()
    second = create_test_user(employee_id="EMP002", username="aowusu")

    assert first.password != "StrongPass123!"
    assert first.password != second.password
    assert CredentialStore.authenticate("kmensah", "StrongPass123!") == first


@pytest.mark.django_db
def test_password_hash_uses_configured_work_factor():
    with override_settings(PASSWORD_HASH_ROUNDS=11):
        user = create_test_user()

    assert user.password.startswith("bcrypt_sha256$$2b$11$")
    assert CredentialStore.authenticate("kmensah", "StrongPass123!") == user


@pytest.mark.parametrize("configured, expected", [(4, 10), (10, 10), (12, 12)])
def test_work_factor_never_drops_below_ten(configured, expected):
    with override_settings(PASSWORD_HASH_ROUNDS=configured):
        assert ConfigurableBCryptSHA256PasswordHasher().rounds == expected


@pytest.mark.django_db
def test_authenticate_failures_share_one_error():
    create_test_user()

    with pytest.raises(InvalidCredentials) as wrong_password:
        CredentialStore.authenticate("kmensah", "nope")
    with pytest.raises(InvalidCredentials) as unknown_user:
        CredentialStore.authenticate("ghost", "nope")

    assert wrong_password.value.to_dict() == unknown_user.value.to_dict()


@pytest.mark.django_db
def test_inactive_user_cannot_authenticate():
    user = create_test_user()
    user.is_active = False
    user.save(update_fields=["is_active"])

    with pytest.raises(InvalidCredentials):
        CredentialStore.authenticate("kmensah", "StrongPass123!")


@pytest.mark.django_db
def test_create_user_reports_every_colliding_field():
    create_test_user(email="kmensah@gogmi.org.gh")

    with pytest.raises(DuplicateIdentity) as exc:
        create_test_user(employee_id="EMP001", username="kmensah", email="kmensah@gogmi.org.gh")

    assert set(exc.value.detail) == {"employee_id", "username", "email"}


@pytest.mark.django_db
def test_create_user_requires_password():
    with pytest.raises(ValidationError):
        create_test_user(password="")
    assert not User.objects.exists()


@pytest.mark.django_db
def test_employee_id_is_immutable():
    user = create_test_user()

    with pytest.raises(ValidationError):
        CredentialStore.update_user(user, employee_id="EMP999")


@pytest.mark.django_db
def test_list_users_never_serializes_password():
    create_test_user()
    create_test_user(employee_id="EMP002", username="aowusu")

    rows = PublicUserSerializer(CredentialStore.list_users(), many=True).data

    assert [row["employee_id"] for row in rows] == ["EMP001", "EMP002"]
    assert all("password" not in row for row in rows)


def test_allocator_formats_and_parses():
    allocator = EmployeeIdAllocator()

    assert allocator.format(1) == "EMP-GEN-001"
    assert allocator.format(1000) == "EMP-GEN-1000"
    assert allocator.parse("EMP-GEN-042") == 42
    assert allocator.parse("EMP001") is None
    assert allocator.parse(None) is None


@pytest.mark.django_db
def test_allocator_starts_at_one_and_widens():
    allocator = EmployeeIdAllocator()
    assert allocator.allocate() == "EMP-GEN-001"

    create_test_user(employee_id="EMP-GEN-999", username="last")
    assert allocator.allocate() == "EMP-GEN-1000"


class StaleAllocator(EmployeeIdAllocator):
    """Always proposes the first number, like a request that lost a race."""

    def allocate(self):
        return self.format(1)


@pytest.mark.django_db
def test_request_access_retries_on_employee_id_collision():
    create_test_user(employee_id="EMP-GEN-001", username="early")
    service = AccessRequestService(allocator=StaleAllocator())

    grant = service.request_access(email="kmensah@gogmi.org.gh", username="kmensah", name="Kwame Mensah")

    assert grant.user.employee_id == "EMP-GEN-002"
    assert grant.temporary_password == "Welcome2025!"


@pytest.mark.django_db
def test_request_access_does_not_retry_username_collision():
    create_test_user(username="kmensah")

    with pytest.raises(DuplicateIdentity) as exc:
        AccessRequestService().request_access(
            email="kmensah@gogmi.org.gh",
            username="kmensah",
            name="Kwame Mensah",
        )

    assert set(exc.value.detail) == {"username"}
    assert User.objects.count() == 1
