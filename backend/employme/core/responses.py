"""Response envelope models.

Success bodies are {"data": ...}; errors are {"error": {code, message, details}}.
Identity endpoints never return bare objects, so clients can branch on the
top-level key alone.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Success envelope.

    Usage:
        @router.get("/me")
        async def get_me(...) -> DataResponse[dict]:
            return DataResponse(data=summary.to_dict())
    """

    data: T


class MessageData(BaseModel):
    """Payload for endpoints that only acknowledge an action (logout, reset)."""

    message: str


class ErrorDetail(BaseModel):
    """Error detail for response body.

    Attributes:
        code: Machine-readable error code (e.g., "INVALID_CREDENTIALS").
        message: Human-readable error message.
        details: Optional list of field-level errors (for validation).
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Error envelope."""

    error: ErrorDetail

    @classmethod
    def build(
        cls, code: str, message: str, details: list[dict] | None = None
    ) -> dict:
        """Serialized envelope ready for a JSONResponse body."""
        return cls(
            error=ErrorDetail(code=code, message=message, details=details)
        ).model_dump()
