from django.conf import settings
from django.contrib.auth.hashers import BCryptSHA256PasswordHasher


class ConfigurableBCryptSHA256PasswordHasher(BCryptSHA256PasswordHasher):
    """bcrypt_sha256 with the work factor taken from settings.PASSWORD_HASH_ROUNDS (minimum 10)."""

    @property
    def rounds(self):
        return max(10, int(getattr(settings, "PASSWORD_HASH_ROUNDS", 10)))
