import logging
from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from shared.core.exceptions import AppError
from shared.core.schemas import JsonOutResult
from shared.utils.app_status_code import AppStatusCode

logger = logging.getLogger(__name__)


def _failure(message: str, status_code: str) -> dict:
    return JsonOutResult(
        data=None,
        status="Failure",
        status_code=status_code,
        message=message
    ).model_dump()


def setup_exception_handlers(app: FastAPI):

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        logger.info("%s on %s %s: %s", type(exc).__name__,
                    request.method, request.url.path, exc.message)
        return JSONResponse(
            content=_failure(exc.message, exc.status_code),
            status_code=exc.http_status
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        # error_response() puts an already wrapped result in detail
        if isinstance(exc.detail, dict):
            message = str(exc.detail.get("message", ""))
            status_code = str(exc.detail.get(
                "status_code", AppStatusCode.OPERATION_FAILED))
        else:
            message = str(exc.detail)
            status_code = str(exc.status_code)
        return JSONResponse(
            content=_failure(message, status_code),
            status_code=exc.status_code or 400,
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            content=_failure(str(exc), AppStatusCode.INVALID_INPUT),
            status_code=422
        )

    # Catch all unhandled exceptions
    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception on %s %s",
                         request.method, request.url.path)
        return JSONResponse(
            content=_failure(str(exc), AppStatusCode.OPERATION_FAILED),
            status_code=500
        )
