"""Error types and FastAPI exception handlers for the route admin API."""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from routeadmin.config import settings

logger = logging.getLogger(__name__)


class RouteAdminError(Exception):
    """Base class for errors surfaced to API callers."""
    status_code = 500
    headers = None

    def __init__(self, message: str = "Internal Server Error"):
        super().__init__(message)
        self.message = message


class BadRequestError(RouteAdminError):
    status_code = 400


class InvalidRouteError(RouteAdminError):
    """A submitted route document cannot be stored as given."""
    status_code = 422


class RouteNotFoundError(RouteAdminError):
    status_code = 404

    def __init__(self, route_id: int):
        super().__init__(f"Route {route_id} not found")
        self.route_id = route_id


class AuthenticationError(RouteAdminError):
    status_code = 401
    headers = {"WWW-Authenticate": "Bearer"}

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class FareTableMismatch(RouteAdminError):
    """A stop list and its fare array disagree in size or content."""
    status_code = 500


class PersistenceError(RouteAdminError):
    """The document store failed to load or save a route."""
    status_code = 503


def _error_body(exc: Exception, message: str) -> dict:
    body = {"message": message or "Internal Server Error"}
    if settings.DEBUG:
        body["stack"] = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
    return {"error": body}


async def route_admin_error_handler(request: Request, exc: RouteAdminError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc, exc.message),
        headers=exc.headers,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    body = _error_body(exc, "Request validation failed")
    body["error"]["details"] = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=422, content=body)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=_error_body(exc, "Internal Server Error"))


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the JSON error handlers to the application."""
    app.add_exception_handler(RouteAdminError, route_admin_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
