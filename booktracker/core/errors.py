# booktracker/core/errors.py

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from booktracker.core.logging import get_logger


logger = get_logger(__name__)


# -------------------------------
# Error Types
# -------------------------------

class ValidationError(Exception):
    """
    Raised when request data is well-formed but violates a domain rule.
    `errors` maps field names to messages.
    """
    def __init__(self, errors: dict | list | None = None, message: str = "Validation Error"):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}


class UnauthorizedError(Exception):
    def __init__(self, reason: str = "Unauthorized Access"):
        super().__init__(reason)
        self.reason = reason


class DatabaseUnavailableError(Exception):
    pass


# -------------------------------
# Translation
# -------------------------------

ROUTE_NOT_FOUND = {"message": "Route not found"}


def is_unmatched_route(exc: Exception) -> bool:
    if not isinstance(exc, StarletteHTTPException):
        return False
    if exc.status_code == 405:
        return True
    return exc.status_code == 404 and exc.detail == "Not Found"


def translate_error(exc: Exception, development: bool = False) -> tuple[int, dict]:
    """
    Maps an exception raised while handling a request to a status code
    and JSON body. The `error` detail of a 500 is only exposed in development.
    """
    if isinstance(exc, ValidationError):
        return 400, {"message": "Validation Error", "errors": jsonable_encoder(exc.errors)}
    if isinstance(exc, RequestValidationError):
        return 400, {"message": "Validation Error", "errors": jsonable_encoder(exc.errors())}
    if isinstance(exc, UnauthorizedError):
        return 401, {"message": "Unauthorized Access"}
    if is_unmatched_route(exc):
        return 404, dict(ROUTE_NOT_FOUND)
    if isinstance(exc, StarletteHTTPException):
        return exc.status_code, {"message": exc.detail}

    body = {"message": "Something went wrong!"}
    if development:
        body["error"] = str(exc)
    return 500, body


# -------------------------------
# FastAPI Handlers
# -------------------------------

def install_error_handlers(app: FastAPI, development: bool = False):
    def respond(exc: Exception) -> JSONResponse:
        status_code, body = translate_error(exc, development)
        headers = getattr(exc, "headers", None) if status_code != 404 else None
        return JSONResponse(status_code=status_code, content=body, headers=headers)

    async def handle_client_error(request: Request, exc: Exception):
        logger.warning("Error: %s %s -> %s: %s", request.method, request.url.path, type(exc).__name__, exc)
        return respond(exc)

    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if is_unmatched_route(exc):
            logger.info("404 Not Found: %s %s", request.method, request.url.path)
        else:
            logger.warning("Error: %s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.detail)
        return respond(exc)

    # Runs inside ServerErrorMiddleware, which re-raises after this response is
    # sent, so uvicorn logs the same traceback again as "Exception in ASGI application"
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Error: %s %s", request.method, request.url.path, exc_info=exc)
        return respond(exc)

    app.add_exception_handler(ValidationError, handle_client_error)
    app.add_exception_handler(RequestValidationError, handle_client_error)
    app.add_exception_handler(UnauthorizedError, handle_client_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
