"""Short-lived, single-use codes for email verification and password reset.

Codes are 6-digit numeric strings drawn from the OS CSPRNG and paired with an
absolute expiry timestamp. The caller stores both on the Account and clears
both when the code is consumed.
"""

import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

_CODE_DIGITS = 6

# Attempts at drawing a code that no other account currently holds
_MAX_DRAW_ATTEMPTS = 5


@dataclass(frozen=True)
class IssuedCode:
    """A freshly generated code and its absolute expiry.

    Attributes:
        code: The plain code sent to the user.
        expires_at: UTC timestamp after which the code is rejected.
    """

    code: str
    expires_at: datetime


def generate_code() -> str:
    """Draw a zero-padded numeric code.

    Returns:
        6-digit string, e.g. "042917".
    """
    return f"{secrets.randbelow(10**_CODE_DIGITS):0{_CODE_DIGITS}d}"


async def issue_code(
    ttl: timedelta,
    *,
    is_taken: Callable[[str], Awaitable[bool]] | None = None,
) -> IssuedCode:
    """Generate a code with an expiry ``ttl`` from now.

    Codes are looked up by value alone, so a code still held by another
    account would make verification ambiguous. When ``is_taken`` is given,
    draws are repeated until an unused code is found.

    Args:
        ttl: Lifetime of the code.
        is_taken: Optional async predicate reporting whether a code is
            currently held (and unexpired) by some account.

    Returns:
        IssuedCode with the code and its expiry.
    """
    code = generate_code()
    if is_taken is not None:
        for _ in range(_MAX_DRAW_ATTEMPTS):
            if not await is_taken(code):
                break
            code = generate_code()
    return IssuedCode(code=code, expires_at=datetime.now(UTC) + ttl)
