"""FastAPI exception handlers: every error leaves as `{success: false, error}`."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from portfolio_monitor.core.exceptions import PortfolioMonitorError

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def _validation_message(exc: RequestValidationError) -> str:
    """First validation error, phrased for humans."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    msg = str(first.get("msg", "Invalid request")).removeprefix("Value error, ")
    loc = [str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path")]
    if first.get("type") in ("missing", "json_invalid") and loc:
        return f"{loc[-1]}: {msg}"
    return msg


async def handle_portfolio_error(_: Request, exc: PortfolioMonitorError) -> JSONResponse:
    return error_response(exc.status_code, exc.message)


async def handle_http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(exc.status_code, detail)


async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(400, _validation_message(exc))


async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s: %s", request.method, request.url.path, exc)
    return error_response(500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON error handlers on the app."""
    app.add_exception_handler(PortfolioMonitorError, handle_portfolio_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(Exception, handle_unexpected)
