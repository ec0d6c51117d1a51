import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from food_delivery.exceptions import (
    ConflictError,
    DriverUnavailableError,
    InvalidTransitionError,
    NotAuthorizedError,
    OrderLifecycleError,
    OrderNotFoundError,
    PersistenceError,
)

logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    OrderNotFoundError: 404,
    InvalidTransitionError: 400,
    NotAuthorizedError: 403,
    DriverUnavailableError: 409,
    ConflictError: 409,
    PersistenceError: 503,
}


def status_code_for(error: OrderLifecycleError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES.items():
        if isinstance(error, error_type):
            return status_code
    return 500


async def order_lifecycle_error_handler(request: Request, exc: OrderLifecycleError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"detail": exc.message, "code": exc.code, "transient": exc.transient},
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Ошибки БД вне менеджера (списки, чтение заказа, водители) тоже отдаются как PersistenceError."""
    logger.exception("Database failure on %s %s", request.method, request.url.path)
    return await order_lifecycle_error_handler(request, PersistenceError())
