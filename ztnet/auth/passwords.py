"""Local account password hashing and verification."""

from __future__ import annotations

import hashlib
import hmac
import os
from dataclasses import dataclass

PASSWORD_SCHEME = "pbkdf2_sha256"
_DIGEST_BYTES = 32
_SALT_BYTES = 16


class LocalPasswordPolicyError(ValueError):
    """Raised when a password does not meet the local account policy."""


@dataclass(frozen=True, slots=True)
class EncodedPassword:
    iterations: int
    salt: bytes
    digest: bytes

    def encode(self) -> str:
        return f"{PASSWORD_SCHEME}${self.iterations}${self.salt.hex()}${self.digest.hex()}"

    @classmethod
    def decode(cls, encoded_hash: str) -> EncodedPassword | None:
        scheme, _, remainder = encoded_hash.partition("$")
        if scheme != PASSWORD_SCHEME:
            return None
        fields = remainder.split("$")
        if len(fields) != 3:
            return None
        try:
            iterations = int(fields[0])
            salt = bytes.fromhex(fields[1])
            digest = bytes.fromhex(fields[2])
        except ValueError:
            return None
        if iterations <= 0 or not digest:
            return None
        return cls(iterations=iterations, salt=salt, digest=digest)


def normalize_login_username(username: str) -> str:
    normalized = username.strip().lower()
    if not normalized:
        raise ValueError("username is required")
    return normalized


def hash_password(*, password: str, min_length: int, iterations: int) -> str:
    if len(password) < min_length:
        raise LocalPasswordPolicyError(f"password must be at least {min_length} characters")

    salt = os.urandom(_SALT_BYTES)
    return EncodedPassword(
        iterations=iterations,
        salt=salt,
        digest=_derive(password, salt=salt, iterations=iterations, length=_DIGEST_BYTES),
    ).encode()


def verify_password(*, password: str, encoded_hash: str) -> bool:
    stored = EncodedPassword.decode(encoded_hash)
    if stored is None:
        return False

    candidate = _derive(
        password,
        salt=stored.salt,
        iterations=stored.iterations,
        length=len(stored.digest),
    )
    return hmac.compare_digest(candidate, stored.digest)


def _derive(password: str, *, salt: bytes, iterations: int, length: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=length)
