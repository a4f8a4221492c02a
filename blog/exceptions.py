"""
Domain exceptions and their HTTP rendering.

Services raise these when a request cannot be served for a reason the
client can act on.  A single handler registered in ``blog.main`` turns
them into JSON responses, so routers never translate them by hand.
"""
import logging

from fastapi import Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class BlogError(Exception):
    """Base class for errors that map onto a client-facing status code."""

    status_code: int = 400
    error_type: str = "blog_error"

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_detail(self) -> list[dict] | str:
        if self.field is None:
            return self.message
        return [{"loc": ["body", self.field], "msg": self.message, "type": self.error_type}]


class ValidationFailure(BlogError):
    """
    One or more input fields are malformed or reference missing rows.

    ``errors`` maps a field name to its message; the rendered body uses the
    same ``{"detail": [{"loc", "msg", "type"}]}`` layout as FastAPI's own
    request validation errors.
    """

    status_code = 422
    error_type = "value_error"

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors

    def to_detail(self) -> list[dict]:
        return [
            {"loc": ["body", field], "msg": msg, "type": self.error_type}
            for field, msg in self.errors.items()
        ]


class Conflict(BlogError):
    """The write collides with an existing row (for example a duplicate email)."""

    status_code = 409
    error_type = "conflict"


class PayloadTooLarge(BlogError):
    status_code = 413
    error_type = "payload_too_large"


class ImageDecodeFailure(BlogError):
    status_code = 422
    error_type = "image_decode"


async def blog_error_handler(request: Request, exc: BlogError) -> JSONResponse:
    logger.info("%s %s rejected (%d): %s", request.method, request.url.path, exc.status_code, exc)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
    )
