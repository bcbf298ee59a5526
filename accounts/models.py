from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models

from .managers import UserManager


# ================= User =================
class User(AbstractUser):
    first_name = None
    last_name = None

    employee_id = models.CharField("Employee ID", max_length=50, unique=True)
    name = models.CharField("Full name", max_length=255)
    email = models.EmailField("Email", unique=True, null=True, blank=True)
    department = models.CharField("Department", max_length=100)
    position = models.CharField("Position", max_length=150, blank=True, default="")

    objects = UserManager()

    REQUIRED_FIELDS = ["employee_id", "name", "department"]

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ["date_joined", "id"]
        indexes = [
            models.Index(fields=["department"], name="accounts_user_dept_idx"),
            models.Index(fields=["date_joined"], name="accounts_user_joined_idx"),
        ]

    def __str__(self):
        return f"{self.employee_id} ({self.username})"

    def save(self, *args, **kwargs):
        # Empty strings would collide on the unique constraint; absent emails are NULL.
        if not self.email:
            self.email = None
        super().save(*args, **kwargs)


# ================= Audit =================
class AuditLog(models.Model):
    """
    Primary audit storage backend.
    Use apps.audit.log_event as unified entrypoint for new writes.
    """

    class Level(models.TextChoices):
        INFO = "info", "Info"
        WARNING = "warning", "Warning"
        ERROR = "error", "Error"
        CRITICAL = "critical", "Critical"

    class Category(models.TextChoices):
        AUTH = "auth", "Authentication"
        USER = "user", "User management"
        SECURITY = "security", "Security"
        PAYROLL = "payroll", "Payroll"
        SYSTEM = "system", "System"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        verbose_name="User",
    )

    action = models.CharField("Action", max_length=255)
    object_type = models.CharField("Object type", max_length=100, blank=True)
    object_id = models.CharField("Object ID", max_length=100, blank=True)

    level = models.CharField(
        "Level",
        max_length=20,
        choices=Level.choices,
        default=Level.INFO,
    )

    category = models.CharField(
        "Category",
        max_length=50,
        choices=Category.choices,
        default=Category.SYSTEM,
    )

    ip_address = models.GenericIPAddressField("IP address", null=True, blank=True)
    metadata = models.JSONField("Metadata", default=dict, blank=True)
    created_at = models.DateTimeField("Created", auto_now_add=True)

    class Meta:
        verbose_name = "Audit log entry"
        verbose_name_plural = "Audit log"
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["level"], name="accounts_audit_level_idx"),
            models.Index(fields=["category"], name="accounts_audit_category_idx"),
            models.Index(fields=["created_at"], name="accounts_audit_created_idx"),
            models.Index(fields=["user"], name="accounts_audit_user_idx"),
        ]

    @classmethod
    def log(
        cls,
        action,
        user=None,
        object_type="",
        object_id="",
        level=Level.INFO,
        category=Category.SYSTEM,
        ip_address=None,
        metadata=None,
    ):
        return cls.objects.create(
            user=user,
            action=action,
            object_type=object_type,
            object_id=object_id,
            level=level,
            category=category,
            ip_address=ip_address,
            metadata=metadata or {},
        )

    def __str__(self):
        return f"[{self.level.upper()}] {self.action}"
