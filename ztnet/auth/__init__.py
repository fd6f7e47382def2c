"""Authentication helpers."""

from ztnet.auth.passwords import (
    LocalPasswordPolicyError,
    hash_password,
    normalize_login_username,
    verify_password,
)

__all__ = [
    "LocalPasswordPolicyError",
    "hash_password",
    "normalize_login_username",
    "verify_password",
]
