import json
import logging
from typing import Callable
from starlette.middleware.base import BaseHTTPMiddleware
from fastapi.responses import JSONResponse
from fastapi import Request
from shared.core.schemas import JsonOutResult
from shared.utils.app_status_code import AppStatusCode

logger = logging.getLogger(__name__)

ENVELOPE_KEYS = {"status", "status_code", "message"}


def _passthrough_headers(response) -> dict:
    return {k: v for k, v in response.headers.items() if k.lower() != "content-length"}


class JsonResponseMiddleware(BaseHTTPMiddleware):
    """Wraps every JSON body in the {data, status, status_code, message} envelope."""

    async def dispatch(self, request: Request, call_next: Callable):
        # Skip docs/openapi endpoints
        if request.url.path.startswith(("/openapi", "/docs", "/redoc")):
            return await call_next(request)

        response = await call_next(request)

        if "application/json" not in response.headers.get("content-type", ""):
            return response

        body_bytes = b""
        async for chunk in response.body_iterator:
            body_bytes += chunk

        try:
            data = json.loads(body_bytes.decode("utf-8"))
        except ValueError:
            logger.warning("Non-JSON body on %s despite JSON content type",
                           request.url.path)
            return JSONResponse(content=None, status_code=response.status_code)

        # Already wrapped by the exception handlers
        if isinstance(data, dict) and ENVELOPE_KEYS.issubset(data.keys()):
            return JSONResponse(
                content=data,
                status_code=response.status_code,
                headers=_passthrough_headers(response),
            )

        if 200 <= response.status_code < 400:
            wrapped = JsonOutResult(
                data=data,
                status="Success",
                status_code=AppStatusCode.DATA_RETRIEVED_SUCCESSFULLY,
                message="Data retrieved successfully"
            )
        else:
            message = ""
            if isinstance(data, dict):
                message = str(data.get("detail") or data.get("message") or "")
            elif isinstance(data, str):
                message = data
            wrapped = JsonOutResult(
                data=None,
                status="Failure",
                status_code=str(response.status_code),
                message=message or "An unexpected error occurred",
            )

        return JSONResponse(
            content=wrapped.model_dump(),
            status_code=response.status_code,
            headers=_passthrough_headers(response),
        )
