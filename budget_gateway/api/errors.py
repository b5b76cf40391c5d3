"""Map domain exceptions to HTTP responses"""

import logging
from typing import Any, Dict, List, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from budget_gateway.api.dependencies import get_request_id
from budget_gateway.domain.exceptions import (
    AccountNotFoundError,
    AuthError,
    ConcurrencyConflictError,
    DomainException,
    IndexOutOfRangeError,
    InsufficientAllocationError,
    InsufficientBudgetError,
    PersistenceError,
    UnknownCategoryError,
    UnknownTypeError,
    ValidationError,
)

# First match wins; subclasses must precede their bases
STATUS_BY_EXCEPTION: List[Tuple[Type[DomainException], int]] = [
    (AuthError, 401),
    (AccountNotFoundError, 404),
    (ConcurrencyConflictError, 409),
    (PersistenceError, 500),
    (ValidationError, 400),
    (InsufficientAllocationError, 400),
    (InsufficientBudgetError, 400),
    (UnknownCategoryError, 400),
    (UnknownTypeError, 400),
    (IndexOutOfRangeError, 400),
]

# Internal detail is never echoed for these
GENERIC_DETAIL = {
    401: "Unauthorized: missing, invalid or expired token",
    409: "Account was modified concurrently, please retry",
    500: "Internal server error",
}


def _status_for(exc: DomainException) -> int:
    for exc_type, status in STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return status
    return 500


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    status = _status_for(exc)
    request_id = get_request_id(request)
    body: Dict[str, Any] = {"detail": GENERIC_DETAIL.get(status, str(exc))}

    if isinstance(exc, (InsufficientAllocationError, InsufficientBudgetError)):
        body["available"] = float(exc.available)
        body["shortfall"] = float(exc.shortfall)

    if status >= 500:
        logging.error(f"Unhandled domain failure: {exc}", extra={"request_id": request_id})
    else:
        logging.warning(f"{type(exc).__name__}: {exc}", extra={"request_id": request_id})
    return JSONResponse(status_code=status, content=body)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Rejected input is not echoed back; it may be a non-finite number JSON cannot carry
    errors = [{k: v for k, v in error.items() if k != "input"} for error in exc.errors()]
    return JSONResponse(status_code=400, content={"errors": jsonable_encoder(errors)})


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logging.error(f"Database error: {exc}", extra={"request_id": get_request_id(request)})
    return JSONResponse(status_code=500, content={"detail": GENERIC_DETAIL[500]})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
