"""API error classes.

Every identity operation fails with exactly one of the typed errors below.
Each carries a machine-readable code and the HTTP status the exception
handler in main.py maps it to.

Messages for enumeration-sensitive failures (credentials, reset) are fixed
here and take no arguments.
"""


class APIError(Exception):
    """Base class for API errors.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional list of additional error details.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: list[dict] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class ValidationError(APIError):
    """Field validation failed (400)."""

    def __init__(
        self,
        message: str,
        details: list[dict] | None = None,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class UnauthorizedError(APIError):
    """Authentication required (401).

    Use when no valid session credentials were provided.
    """

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
        )


class NotFoundError(APIError):
    """Resource not found (404)."""

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        if resource_id:
            message = f"{resource} with id '{resource_id}' not found"
        else:
            message = f"{resource} not found"
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
        )


# ===================================================================
# Credential errors
# ===================================================================


class InvalidCredentialsError(APIError):
    """Email/password pair rejected (401).

    Security: the same error is raised for an unknown email and for a wrong
    password so that login never reveals which emails are registered.
    """

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_CREDENTIALS",
            message="Invalid email or password",
            status_code=401,
        )


class EmailNotVerifiedError(APIError):
    """Login attempted before the email was verified (403)."""

    def __init__(self) -> None:
        super().__init__(
            code="EMAIL_NOT_VERIFIED",
            message=(
                "Please verify your email address before signing in. "
                "Check your inbox for the verification code."
            ),
            status_code=403,
        )


class AccountDeactivatedError(APIError):
    """Account has been deactivated by an administrator (403)."""

    def __init__(self) -> None:
        super().__init__(
            code="ACCOUNT_DEACTIVATED",
            message="Account is deactivated. Please contact support.",
            status_code=403,
        )


class EmailAlreadyRegisteredError(APIError):
    """An account with this email already exists (409)."""

    def __init__(self) -> None:
        super().__init__(
            code="EMAIL_ALREADY_REGISTERED",
            message="An account with this email already exists",
            status_code=409,
        )


class WeakPasswordError(APIError):
    """Password does not satisfy the configured policy (400).

    Args:
        min_length: Minimum accepted password length.
    """

    def __init__(self, min_length: int) -> None:
        super().__init__(
            code="WEAK_PASSWORD",
            message=f"Password must be at least {min_length} characters long",
            status_code=400,
        )


class InvalidOrExpiredCodeError(APIError):
    """Verification or reset code is wrong, unknown, or expired (400).

    A single error covers all three cases so that callers cannot probe
    which one applies.
    """

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_OR_EXPIRED_CODE",
            message="Invalid or expired code",
            status_code=400,
        )


class AlreadyVerifiedError(APIError):
    """Email address is already verified (409)."""

    def __init__(self) -> None:
        super().__init__(
            code="ALREADY_VERIFIED",
            message="Email is already verified",
            status_code=409,
        )


# ===================================================================
# Federated identity errors
# ===================================================================


class MissingEmailClaimError(APIError):
    """Provider assertion carries no email address (400).

    Without an email there is nothing to deduplicate against and no contact
    channel, so federated sign-in cannot proceed.
    """

    def __init__(self, provider: str) -> None:
        super().__init__(
            code="MISSING_EMAIL_CLAIM",
            message=f"No email address was provided by {provider}",
            status_code=400,
        )


class IdentityAlreadyLinkedElsewhereError(APIError):
    """Provider identity belongs to a different account (409)."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            code="IDENTITY_LINKED_ELSEWHERE",
            message=f"This {provider} account is already linked to another user",
            status_code=409,
        )


class IdentityAlreadyLinkedToSelfError(APIError):
    """Provider identity is already linked to the caller's account (409)."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            code="IDENTITY_ALREADY_LINKED",
            message=f"This {provider} account is already linked to your account",
            status_code=409,
        )


class NotLinkedError(APIError):
    """Caller has no identity for the requested provider (404)."""

    def __init__(self, provider: str) -> None:
        super().__init__(
            code="NOT_LINKED",
            message=f"{provider} account is not linked",
            status_code=404,
        )


class LastAuthMethodError(APIError):
    """Operation would leave the account with no way to sign in (422).

    Raised before any state is mutated.
    """

    def __init__(self) -> None:
        super().__init__(
            code="LAST_AUTH_METHOD",
            message=(
                "Cannot unlink your last sign-in method. "
                "Set a password or link another provider first."
            ),
            status_code=422,
        )


class ProviderAlreadyLinkedError(APIError):
    """Account already holds a different identity for this provider (409).

    An account links at most one identity per provider.
    """

    def __init__(self, provider: str) -> None:
        super().__init__(
            code="PROVIDER_ALREADY_LINKED",
            message=(
                f"A different {provider} account is already linked to this user. "
                "Unlink it first."
            ),
            status_code=409,
        )
