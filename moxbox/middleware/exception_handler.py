"""Exception handler middleware for structured error responses."""

import logging
from fastapi import Request
from fastapi.responses import JSONResponse
from ..exceptions import MoxboxException

logger = logging.getLogger(__name__)


async def moxbox_exception_handler(request: Request, exc: MoxboxException) -> JSONResponse:
    """
    Convert a MoxboxException into its JSON error body.

    Client errors are logged at WARNING; server-side failures at ERROR with
    the underlying cause, which is kept out of the response body.

    Args:
        request: FastAPI request object
        exc: MoxboxException instance

    Returns:
        JSONResponse with error details
    """
    extra = {
        "error_code": exc.error_code.value,
        "path": request.url.path,
        "method": request.method,
        "details": exc.details,
        "status_code": exc.status_code,
    }
    if exc.status_code >= 500:
        cause = getattr(exc, "original_error", None)
        if cause is not None:
            extra["cause"] = repr(cause)
        logger.error(f"MoxboxException: {exc.error_code.value}: {exc.message}", extra=extra)
    else:
        logger.warning(f"MoxboxException: {exc.error_code.value}", extra=extra)

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )
