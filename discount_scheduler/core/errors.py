"""Error taxonomy and the HTTP mapping for it.

Per-job failures inside a tick are caught by the runner and reported in the
tick log. Anything that reaches a request handler is turned into a JSON
error body by the handlers registered in ``register_exception_handlers``.
"""

from fastapi import FastAPI, Request, Response, status
from starlette.responses import JSONResponse

from discount_scheduler.core.logging import get_logger

logger = get_logger(__name__)


class DiscountSchedulerError(Exception):
    """Base class for all discount scheduler errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR


class ValidationError(DiscountSchedulerError):
    """Bad caller input (e.g. an empty variant list)."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(DiscountSchedulerError):
    """Credential check failed."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class UpstreamError(DiscountSchedulerError):
    """A price store call failed or returned something unusable."""

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, variant_id: str | None = None) -> None:
        super().__init__(message)
        self.variant_id = variant_id


class PersistenceError(DiscountSchedulerError):
    """The job record store could not be read or written."""


async def discount_error_handler(request: Request, exc: Exception) -> Response:
    """Render a DiscountSchedulerError as ``{"error": message}``."""
    status_code = getattr(exc, "status_code", status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.bind(path=request.url.path, error=str(exc)).error("request_failed")
    return JSONResponse(status_code=status_code, content={"error": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the error taxonomy handlers to the application."""
    app.add_exception_handler(DiscountSchedulerError, discount_error_handler)
