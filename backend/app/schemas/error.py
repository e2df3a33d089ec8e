from typing import Any

from pydantic import BaseModel

# Codes clients can branch on; the human readable text stays in ``detail``.
ERROR_CODES_BY_STATUS: dict[int, str] = {
    400: "bad_request",
    401: "not_authenticated",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    422: "validation_error",
    500: "internal_error",
}


class ErrorResponse(BaseModel):
    """Uniform error envelope rendered by the application exception handlers."""

    detail: Any
    code: str | None = None
