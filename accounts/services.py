from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from django.conf import settings
from django.db import IntegrityError, transaction

from common.exceptions import DuplicateIdentity, InvalidCredentials, ValidationError

from .access_codes import AccessCodeRegistry
from .models import User


logger = logging.getLogger(__name__)

IDENTITY_FIELDS = ("employee_id", "username", "email")
PROFILE_FIELDS = ("username", "name", "email", "department", "position")

DUPLICATE_MESSAGES = {
    "employee_id": "User with this Employee ID already exists",
    "username": "This username is already taken",
    "email": "This email is already registered",
}


class CredentialStore:
    @staticmethod
    def _require(**values) -> None:
        missing = [field for field, value in values.items() if value in (None, "")]
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                detail={field: ["This field is required."] for field in missing},
            )

    @staticmethod
    def normalize_email(email: Optional[str]) -> Optional[str]:
        email = (email or "").strip()
        return User.objects.normalize_email(email) if email else None

    @staticmethod
    def find_collisions(*, exclude_pk=None, **values) -> list[str]:
        qs = User.objects.all()
        if exclude_pk is not None:
            qs = qs.exclude(pk=exclude_pk)
        return [
            field
            for field in IDENTITY_FIELDS
            if values.get(field) and qs.filter(**{field: values[field]}).exists()
        ]

    @staticmethod
    def duplicate_error(fields: Iterable[str]) -> DuplicateIdentity:
        fields = list(fields)
        if not fields:
            return DuplicateIdentity()
        return DuplicateIdentity(
            DUPLICATE_MESSAGES[fields[0]],
            detail={field: [DUPLICATE_MESSAGES[field]] for field in fields},
        )

    @staticmethod
    def prepare_credential(user: User, raw_password: Optional[str]) -> User:
        """
        Hash `raw_password` into `user.password` with a freshly drawn salt.
        Must run before every save that touches the password field.
        """
        if not raw_password:
            raise ValidationError("Password is required.", detail={"password": ["This field is required."]})
        user.set_password(raw_password)
        return user

    @classmethod
    def _save(cls, user: User, *, update_fields: Optional[list[str]] = None) -> User:
        try:
            with transaction.atomic():
                user.save(update_fields=update_fields)
        except IntegrityError as exc:
            # The unique constraints decide; re-read to name the colliding field.
            collisions = cls.find_collisions(
                exclude_pk=user.pk,
                employee_id=user.employee_id,
                username=user.username,
                email=user.email,
            )
            raise cls.duplicate_error(collisions) from exc
        return user

    @classmethod
    def create_user(
        cls,
        *,
        employee_id: str,
        username: str,
        password: str,
        name: str,
        department: str,
        email: Optional[str] = None,
        position: str = "",
    ) -> User:
        cls._require(
            employee_id=employee_id,
            username=username,
            password=password,
            name=name,
            department=department,
        )
        email = cls.normalize_email(email)

        collisions = cls.find_collisions(employee_id=employee_id, username=username, email=email)
        if collisions:
            raise cls.duplicate_error(collisions)

        user = User(
            employee_id=employee_id,
            username=username,
            name=name,
            email=email,
            department=department,
            position=position or "",
        )
        cls.prepare_credential(user, password)
        cls._save(user)
        logger.info("Created user %s (%s)", user.employee_id, user.username)
        return user

    @staticmethod
    def authenticate(username: Optional[str], raw_password: Optional[str]) -> User:
        user = User.objects.filter(username=username).first() if username else None
        if user is None:
            # Hash anyway so unknown usernames cost the same as wrong passwords.
            User().set_password(raw_password or "")
            raise InvalidCredentials()
        if not raw_password or not user.check_password(raw_password) or not user.is_active:
            raise InvalidCredentials()
        return user

    @classmethod
    def update_user(cls, user: User, **fields) -> User:
        if "employee_id" in fields and fields.pop("employee_id") != user.employee_id:
            raise ValidationError(
                "Employee ID cannot be changed.",
                detail={"employee_id": ["Employee ID is immutable."]},
            )
        unknown = sorted(set(fields) - set(PROFILE_FIELDS) - {"password"})
        if unknown:
            raise ValidationError(
                f"Unsupported fields: {', '.join(unknown)}",
                detail={field: ["Unsupported field."] for field in unknown},
            )

        password = fields.pop("password", None)
        if "email" in fields:
            fields["email"] = cls.normalize_email(fields["email"])

        collisions = cls.find_collisions(exclude_pk=user.pk, **fields)
        if collisions:
            raise cls.duplicate_error(collisions)

        for field, value in fields.items():
            setattr(user, field, value)
        update_fields = list(fields)

        if password is not None:
            cls.prepare_credential(user, password)
            update_fields.append("password")

        if update_fields:
            cls._save(user, update_fields=update_fields)
        return user

    @classmethod
    def change_password(cls, user: User, raw_password: str) -> User:
        return cls.update_user(user, password=raw_password)

    @staticmethod
    def list_users():
        return User.objects.order_by("date_joined", "id")


class EmployeeIdAllocator:
    """Allocates self-service employee IDs: EMP-GEN-001, EMP-GEN-002, ..."""

    PREFIX = "EMP-GEN-"
    WIDTH = 3
    MAX_ATTEMPTS = 5

    def __init__(self, prefix: str = PREFIX, width: int = WIDTH) -> None:
        self.prefix = prefix
        self.width = width
        self._pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")

    def format(self, number: int) -> str:
        return f"{self.prefix}{number:0{self.width}d}"

    def parse(self, employee_id: Optional[str]) -> Optional[int]:
        match = self._pattern.match(employee_id or "")
        return int(match.group(1)) if match else None

    def _latest_number(self) -> Optional[int]:
        candidates = (
            User.objects.filter(employee_id__startswith=self.prefix)
            .order_by("-date_joined", "-id")
            .values_list("employee_id", flat=True)
        )
        for employee_id in candidates.iterator():
            number = self.parse(employee_id)
            if number is not None:
                return number
        return None

    def allocate(self) -> str:
        latest = self._latest_number()
        return self.format(latest + 1 if latest is not None else 1)

    def next_candidate(self, previous: str) -> str:
        floor = (self.parse(previous) or 0) + 1
        return self.format(max(floor, self.parse(self.allocate())))


@dataclass(frozen=True)
class AccessGrant:
    user: User
    temporary_password: str


class AccessRequestService:
    """Self-service signup for company email addresses."""

    DEFAULT_POSITION = "Employee"

    def __init__(
        self,
        allocator: Optional[EmployeeIdAllocator] = None,
        registry: Optional[AccessCodeRegistry] = None,
    ) -> None:
        self.allocator = allocator or EmployeeIdAllocator()
        self.registry = registry or AccessCodeRegistry.from_settings()

    @staticmethod
    def validate_domain(email: str) -> None:
        domain = settings.ALLOWED_EMAIL_DOMAIN
        if not email.lower().endswith(domain.lower()):
            raise ValidationError(
                f"Only {domain} emails are allowed",
                detail={"email": [f"Only {domain} emails are allowed."]},
            )

    def request_access(
        self,
        *,
        email: str,
        username: str,
        name: str,
        department: Optional[str] = None,
    ) -> AccessGrant:
        CredentialStore._require(email=email, username=username, name=name)
        email = email.strip()
        self.validate_domain(email)

        collisions = CredentialStore.find_collisions(
            username=username,
            email=CredentialStore.normalize_email(email),
        )
        if collisions:
            raise CredentialStore.duplicate_error(collisions)

        temporary_password = settings.TEMPORARY_PASSWORD
        candidate = self.allocator.allocate()
        for attempt in range(1, self.allocator.MAX_ATTEMPTS + 1):
            try:
                user = CredentialStore.create_user(
                    employee_id=candidate,
                    username=username,
                    password=temporary_password,
                    name=name,
                    email=email,
                    department=department or self.registry.open_department,
                    position=self.DEFAULT_POSITION,
                )
            except DuplicateIdentity as exc:
                if set(exc.detail or {}) != {"employee_id"}:
                    raise
                logger.warning("Employee ID %s already taken (attempt %s), retrying", candidate, attempt)
                candidate = self.allocator.next_candidate(candidate)
                continue
            return AccessGrant(user=user, temporary_password=temporary_password)

        raise DuplicateIdentity("Could not allocate a unique employee ID, please try again.")
