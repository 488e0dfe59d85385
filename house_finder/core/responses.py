"""Response envelope models.

All success responses use {"data": ...}; all errors use
{"error": {"code", "message", "details"}}.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel
from starlette.responses import JSONResponse

from house_finder.core.errors import APIError

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Standard response envelope for single resources and small collections.

    Usage:
        @router.get("/api/keys")
        async def list_keys(...) -> DataResponse[list[APIKeyRead]]:
            return DataResponse(data=[...])
    """

    data: T


class ErrorDetail(BaseModel):
    """Error detail for response body.

    Attributes:
        code: Machine-readable error code (e.g., "NOT_FOUND").
        message: Human-readable error message.
        details: Optional list of field-level errors (for validation).
    """

    code: str
    message: str
    details: list[dict] | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    error: ErrorDetail


def error_response(exc: APIError) -> JSONResponse:
    """Render an APIError as a JSON error envelope.

    Shared by the exception handler and the gatekeeper middleware, which
    answers before routing and so cannot raise into the handler stack.

    Args:
        exc: The error to render.

    Returns:
        JSONResponse with the error envelope, status, and any extra headers.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                details=exc.details,
            )
        ).model_dump(),
        headers=exc.headers,
    )
