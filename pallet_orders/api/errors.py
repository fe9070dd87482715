# pallet_orders/api/errors.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from pallet_orders.domain.errors import DomainError, ValidationError
from pallet_orders.utils.logging import get_logger

logger = get_logger(__name__)


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Any DomainError -> its status code, {"error", "code", ...} body and headers."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


def _describe(error: dict) -> str:
    field = ".".join(str(p) for p in error.get("loc", ()) if p not in ("body", "query", "path", "header"))
    return f"{field}: {error.get('msg')}" if field else str(error.get("msg"))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Schema failures share the ValidationError body; the first problem is reported."""
    errors = exc.errors()
    message = _describe(errors[0]) if errors else "Invalid request"
    return await domain_error_handler(
        request,
        ValidationError(message, fields=[_describe(e) for e in errors]),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
