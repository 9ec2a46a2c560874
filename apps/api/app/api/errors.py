from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.services.error_codes import ErrorCode
from app.services.exceptions import ServiceError

_STATUS_BY_KIND = {
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.INVALID_TRANSITION: 400,
    ErrorCode.CAPACITY_EXCEEDED: 400,
    ErrorCode.ALREADY_JOINED: 400,
    ErrorCode.INVALID_ARGUMENT: 400,
    ErrorCode.STORAGE_UNAVAILABLE: 503,
}


def http_error_from_service(err: ServiceError) -> HTTPException:
    # code is the category clients branch on, reason the specific cause
    return HTTPException(
        status_code=_STATUS_BY_KIND.get(err.kind, 500),
        detail={"code": err.kind.value, "reason": err.code, "message": err.message},
    )


async def _service_error_handler(request: Request, err: ServiceError) -> JSONResponse:
    http_err = http_error_from_service(err)
    headers = {"Retry-After": "1"} if http_err.status_code == 503 else None
    return JSONResponse(
        status_code=http_err.status_code,
        content={"detail": http_err.detail},
        headers=headers,
    )


async def _validation_error_handler(request: Request, err: RequestValidationError) -> JSONResponse:
    first = err.errors()[0] if err.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "invalid request")
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "code": ErrorCode.INVALID_ARGUMENT.value,
                "reason": ErrorCode.INVALID_ARGUMENT.value,
                "message": f"{location}: {message}" if location else message,
            }
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, _service_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
