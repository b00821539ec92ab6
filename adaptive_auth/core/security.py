# =============================================================================
# ADAPTIVE AUTH - CORE SECURITY MODULE
# =============================================================================
# File: core/security.py
# Description: Password hashing, password policy and random token helpers
#              Argon2id for new hashes, bcrypt accepted for legacy rows
# =============================================================================

from typing import Optional
from uuid import uuid4
import secrets

from passlib.context import CryptContext
from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError, VerificationError, InvalidHash

from adaptive_auth.core.config import Settings, settings as default_settings
from adaptive_auth.core.exceptions import PasswordValidationError

ARGON2_PREFIX = "$argon2"
BCRYPT_PREFIX = "$2"


# =============================================================================
# PASSWORD HASHING
# =============================================================================

class PasswordManager:
    """
    ┌─────────────────────────────────────────────────────────────────────────┐
    │                    PASSWORD HASHING MANAGER                              │
    │  Writes Argon2id hashes, still verifies bcrypt ($2y$/$2b$) rows and     │
    │  reports when a stored hash should be rewritten                         │
    └─────────────────────────────────────────────────────────────────────────┘

    The password column is the only place a credential lives, so the
    hash string carries its own algorithm and parameters; the prefix
    decides which verifier runs.
    """

    def __init__(self, config: Optional[Settings] = None):
        config = config or default_settings

        self._argon2 = PasswordHasher(
            time_cost=config.argon2_time_cost,
            memory_cost=config.argon2_memory_cost,
            parallelism=config.argon2_parallelism,
            hash_len=32,
            salt_len=16,
        )
        self._legacy = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=config.bcrypt_rounds,
        )
        self._algorithm = config.password_hash_algorithm

    @property
    def prefers_argon2(self) -> bool:
        return self._algorithm == "argon2"

    def hash_password(self, password: str) -> str:
        """
        Return a salted hash of ``password``.

        >>> PasswordManager().hash_password("s3cret-pass").startswith("$argon2id$")
        True
        """
        if self.prefers_argon2:
            return self._argon2.hash(password)
        return self._legacy.hash(password)

    def verify_password(self, plain_password: str, hashed_password: Optional[str]) -> tuple[bool, bool]:
        """
        Check a candidate against the stored column value.

        Returns ``(is_valid, needs_rehash)``. Empty, NULL or unrecognised
        values never verify.
        """
        if not hashed_password:
            return False, False

        if hashed_password.startswith(ARGON2_PREFIX):
            try:
                self._argon2.verify(hashed_password, plain_password)
            except (VerifyMismatchError, VerificationError, InvalidHash):
                return False, False
            return True, self._argon2.check_needs_rehash(hashed_password)

        if hashed_password.startswith(BCRYPT_PREFIX):
            try:
                matched = self._legacy.verify(plain_password, hashed_password)
            except (ValueError, TypeError):
                matched = False
            return matched, matched and self.prefers_argon2

        return False, False

    def needs_upgrade(self, hashed_password: str) -> bool:
        if not self.prefers_argon2:
            return False
        if not hashed_password.startswith(ARGON2_PREFIX):
            return True
        try:
            return self._argon2.check_needs_rehash(hashed_password)
        except InvalidHash:
            return True


# =============================================================================
# PASSWORD POLICY
# =============================================================================

class PasswordValidator:
    """Minimum-length policy applied before a password is hashed."""

    def __init__(self, min_length: Optional[int] = None):
        self.min_length = default_settings.min_password_length if min_length is None else min_length

    def validate(self, password: Optional[str]) -> tuple[bool, list[str]]:
        if not password:
            return False, ["Password is required"]
        if len(password) < self.min_length:
            return False, [f"Password must be at least {self.min_length} characters long"]
        return True, []

    def ensure_valid(self, password: Optional[str]) -> None:
        is_valid, errors = self.validate(password)
        if not is_valid:
            raise PasswordValidationError(
                message="; ".join(errors),
                details={"validation_errors": errors},
            )


# =============================================================================
# RANDOM IDENTIFIERS
# =============================================================================

def generate_secure_token(length: int = 32) -> str:
    """Hex token built from ``length`` random bytes."""
    return secrets.token_hex(length)


def generate_session_id() -> str:
    return str(uuid4())


password_manager = PasswordManager()
