"""
Edge middleware run for every inbound request.

A stage inspects the request and returns either ``Terminal`` carrying the
response to send, or ``CONTINUE`` to hand the request to the next stage that
the framework supplies as ``call_next``.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Union

from fastapi import Request
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware

from edge_gateway.headers import CORS_HEADERS, SECURITY_HEADERS
from edge_gateway.utils.exception_logging import log_exception_with_details

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class Terminal:
    response: Response


class Continue(Enum):
    CONTINUE = "continue"


CONTINUE = Continue.CONTINUE

StageResult = Union[Terminal, Continue]
Stage = Callable[[Request], StageResult]
CallNext = Callable[[Request], Awaitable[Response]]


def preflight_response() -> Response:
    return Response(status_code=204, headers={**SECURITY_HEADERS, **CORS_HEADERS})


def failure_response() -> Response:
    return Response(
        status_code=500,
        headers={**SECURITY_HEADERS, "access-control-allow-origin": "*"},
    )


def edge_stage(request: Request) -> StageResult:
    """Answer CORS preflight locally; everything else continues down the chain."""
    if request.method.upper() == "OPTIONS":
        return Terminal(preflight_response())
    return CONTINUE


async def run_stage(stage: Stage, request: Request, call_next: CallNext) -> Response:
    """
    Run a stage and, when it continues, the downstream handler.

    Any exception raised downstream is logged and replaced with an empty 500.
    Responses produced downstream are returned untouched, so they do not get
    the security headers that the stage's own responses carry.
    """
    outcome = stage(request)
    if isinstance(outcome, Terminal):
        return outcome.response
    try:
        return await call_next(request)
    except Exception as e:
        log_exception_with_details(
            logger, f"[Edge] Unhandled error for {request.method} {request.url.path}:", e
        )
        return failure_response()


class EdgeMiddleware(BaseHTTPMiddleware):
    """Mount ``edge_stage`` in front of the application."""

    def __init__(self, app, stage: Stage = edge_stage):
        super().__init__(app)
        self.stage = stage

    async def dispatch(self, request: Request, call_next):
        return await run_stage(self.stage, request, call_next)
