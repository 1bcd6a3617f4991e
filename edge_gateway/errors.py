from typing import Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from edge_gateway.headers import JSON_CONTENT_TYPE
from edge_gateway.models import ErrorBody


class GatewayError(HTTPException):
    """An HTTP failure rendered to the caller as ``{"error": message}``."""

    def __init__(
        self,
        status_code: int,
        message: str,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(status_code=status_code, detail=message, headers=headers)
        self.message = message


class WorkerUrlNotConfigured(GatewayError):
    def __init__(self):
        super().__init__(500, "WORKER_URL not configured")


class UnsupportedMethod(GatewayError):
    def __init__(self):
        super().__init__(405, "Unsupported method")


class UpstreamTimeout(GatewayError):
    def __init__(self):
        super().__init__(
            504, "Upstream timeout", headers={"access-control-allow-origin": "*"}
        )


class UpstreamError(GatewayError):
    def __init__(self):
        super().__init__(
            502, "Upstream error", headers={"access-control-allow-origin": "*"}
        )


def error_response(exc: GatewayError) -> JSONResponse:
    headers = dict(exc.headers or {})
    return JSONResponse(
        ErrorBody(error=exc.message).model_dump(),
        status_code=exc.status_code,
        headers=headers,
        media_type=JSON_CONTENT_TYPE,
    )


async def gateway_error_handler(_request: Request, exc: GatewayError) -> JSONResponse:
    return error_response(exc)
