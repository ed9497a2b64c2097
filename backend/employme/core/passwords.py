"""Password policy and hashing.

Pipeline:
- validate_password_policy: length rules from settings (sync, no I/O)
- hash_password / verify_password: bcrypt with configurable cost
- verify_against_dummy: timing-safe stand-in when no hash exists
"""

from functools import lru_cache

import bcrypt

from employme.core.config import settings
from employme.core.errors import ValidationError, WeakPasswordError

# bcrypt only consumes the first 72 bytes of its input
_BCRYPT_MAX_BYTES = 72

_DUMMY_PASSWORD = b"employme-dummy-password"  # nosec B105


@lru_cache(maxsize=4)
def _dummy_hash(rounds: int) -> bytes:
    return bcrypt.hashpw(_DUMMY_PASSWORD, bcrypt.gensalt(rounds=rounds))


def dummy_hash() -> bytes:
    """bcrypt hash at the configured cost, for comparisons with no real hash.

    Security: prevents account enumeration via response time differences,
    so it must use the same cost as stored hashes.
    """
    return _dummy_hash(settings.bcrypt_rounds)


def validate_password_policy(password: str) -> None:
    """Validate a new password against the configured policy.

    Args:
        password: Plain-text password to validate.

    Raises:
        WeakPasswordError: If shorter than settings.password_min_length.
        ValidationError: If longer than bcrypt can hash without truncation.
    """
    if len(password) < settings.password_min_length:
        raise WeakPasswordError(settings.password_min_length)
    if len(password.encode()) > _BCRYPT_MAX_BYTES:
        raise ValidationError(f"Password must be at most {_BCRYPT_MAX_BYTES} bytes")


def hash_password(password: str) -> str:
    """Hash a password with a per-password salt.

    Args:
        password: Plain-text password (already policy-checked).

    Returns:
        bcrypt hash as a str.
    """
    return bcrypt.hashpw(
        password.encode(), bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    ).decode()


def verify_password(password: str, password_hash: str | None) -> bool:
    """Check a password against a stored hash.

    When there is no stored hash (federated-only account) the comparison
    still runs against the dummy hash so the response time does not reveal it.

    Args:
        password: Plain-text password from the caller.
        password_hash: Stored bcrypt hash, or None.

    Returns:
        True if the password matches the stored hash.
    """
    candidate = password.encode()[:_BCRYPT_MAX_BYTES]
    if not password_hash:
        verify_against_dummy(password)
        return False
    return bcrypt.checkpw(candidate, password_hash.encode())


def verify_against_dummy(password: str) -> None:
    """Burn one bcrypt comparison for an account that does not exist."""
    bcrypt.checkpw(password.encode()[:_BCRYPT_MAX_BYTES], dummy_hash())
