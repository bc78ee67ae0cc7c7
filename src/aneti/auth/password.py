"""Password hashing (argon2id) and strength rules."""

from __future__ import annotations

import argon2

from aneti.config import get_settings
from aneti.errors import ValidationError

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)


class PasswordStrengthError(ValidationError):
    """Raised when a password does not meet strength requirements."""


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """True if the password matches. Never raises on mismatch or a malformed hash."""
    try:
        return _hasher.verify(password_hash, password)
    except argon2.exceptions.VerifyMismatchError:
        return False
    except argon2.exceptions.InvalidHashError:
        return False


def check_needs_rehash(password_hash: str) -> bool:
    return _hasher.check_needs_rehash(password_hash)


def validate_password_strength(password: str) -> None:
    """
    Validate password meets minimum strength requirements.

    Bounds come from settings; at least one letter and one digit are required.
    Messages are in Portuguese since they are shown verbatim by the web app.
    """
    settings = get_settings()
    if not password or not password.strip():
        raise PasswordStrengthError("A senha não pode ser vazia")
    if len(password) < settings.password_min_length:
        raise PasswordStrengthError(f"A senha deve ter pelo menos {settings.password_min_length} caracteres")
    if len(password) > settings.password_max_length:
        raise PasswordStrengthError(f"A senha deve ter no máximo {settings.password_max_length} caracteres")
    if not any(c.isalpha() for c in password):
        raise PasswordStrengthError("A senha deve conter pelo menos uma letra")
    if not any(c.isdigit() for c in password):
        raise PasswordStrengthError("A senha deve conter pelo menos um número")
