import logging

from litestar import Request, Response
from litestar.exceptions import HTTPException
from litestar.status_codes import HTTP_500_INTERNAL_SERVER_ERROR

from palimpsest.lib import observability
from palimpsest.lib.errors import LedgerError

logger = logging.getLogger(__name__)


def ledger_error_handler(request: Request, exc: LedgerError) -> Response:
    """Translate a ledger error into a JSON response that keeps its context."""
    observability.report_ledger_error(logger, exc)

    content = {
        "status_code": exc.status_code,
        "detail": exc.message,
        "operation": exc.operation,
        "retryable": exc.retryable,
    }
    headers = {}
    if retry_after := exc.details.get("retry_after_seconds"):
        headers["Retry-After"] = str(retry_after)

    return Response(
        content=content,
        status_code=exc.status_code,
        media_type="application/json",
        headers=headers,
    )


def http_exception_handler(request: Request, exc: HTTPException) -> Response:
    status_code = exc.status_code
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    return Response(
        content={"status_code": status_code, "detail": detail},
        status_code=status_code,
        media_type="application/json",
    )


def internal_server_error_handler(request: Request, exc: Exception) -> Response:
    """Log unexpected exceptions and hide their details from clients."""
    if not observability.exception(
        "Unhandled exception on {method} {path}",
        method=request.method,
        path=request.url.path,
    ):
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return Response(
        content={"status_code": HTTP_500_INTERNAL_SERVER_ERROR, "detail": "Internal Server Error"},
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        media_type="application/json",
    )
