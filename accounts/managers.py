from django.conf import settings
from django.contrib.auth.models import UserManager as DjangoUserManager


class UserManager(DjangoUserManager):

    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("name", username)
        extra_fields.setdefault("department", settings.OPEN_DEPARTMENT)

        return super().create_superuser(username, email, password, **extra_fields)
