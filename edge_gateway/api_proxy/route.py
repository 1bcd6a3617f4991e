import asyncio
import logging
from typing import AsyncIterator, Dict, Optional

import httpx
from fastapi import APIRouter, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import Response, StreamingResponse
from opentelemetry import trace
from starlette.exceptions import HTTPException as StarletteHTTPException

from edge_gateway.errors import (
    UnsupportedMethod,
    UpstreamError,
    UpstreamTimeout,
    WorkerUrlNotConfigured,
    error_response,
)
from edge_gateway.headers import ALLOWED_METHODS, CORS_HEADERS
from edge_gateway.utils import redact_url
from edge_gateway.utils.exception_logging import log_exception_with_details
from edge_gateway.utils.traced_requests import traced_request
from edge_gateway.vars import API_PREFIX, PROXY_TIMEOUT_MS, WORKER_URL

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

# Hop-by-hop headers that should NOT be forwarded (RFC 2616)
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
        "host",
    }
)

# Origin is dropped so it cannot conflict with the CORS headers set here
DROPPED_REQUEST_HEADERS = HOP_BY_HOP_HEADERS | {"origin"}

BODYLESS_METHODS = frozenset({"GET", "HEAD"})

# HEAD is routed so it gets the JSON 405 from the handler
ROUTED_METHODS = [*ALLOWED_METHODS, "HEAD"]

_route_base = API_PREFIX.rstrip("/")


def worker_url_configured(base_url: Optional[str]) -> bool:
    return isinstance(base_url, str) and base_url.startswith("http")


def is_proxied_path(path: str) -> bool:
    return path == _route_base or path.startswith(_route_base + "/")


def select_upstream(path: str) -> Optional[str]:
    """Pick the upstream origin for a request path.

    Only one origin is configured, so every path maps to ``WORKER_URL``.
    """
    return WORKER_URL


def build_target_url(base_url: str, path: str, query: str = "") -> str:
    """Join the path after the API prefix onto the upstream base URL.

    Exactly one slash separates the two, and the query string is copied verbatim.
    """
    if path.startswith(API_PREFIX):
        path = path[len(API_PREFIX):]

    base = base_url if base_url.endswith("/") else base_url + "/"
    target = base + path.lstrip("/")
    if query:
        target = f"{target}?{query}"
    return target


def request_path(request: Request) -> str:
    """The path as the client sent it, percent-encoding intact."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        return raw_path.split(b"?", 1)[0].decode("latin-1")
    return request.url.path


def get_target_url(request: Request) -> str:
    """Construct the upstream URL for an inbound request."""
    path = request_path(request)
    return build_target_url(select_upstream(path), path, str(request.url.query))


def prepare_headers(request: Request) -> Dict[str, str]:
    """
    Prepare headers for forwarding to the upstream.
    Removes hop-by-hop headers and the browser Origin.
    """
    headers = {}
    for name, value in request.headers.items():
        if name.lower() not in DROPPED_REQUEST_HEADERS:
            headers[name] = value
    return headers


def create_upstream_client(timeout: float) -> httpx.AsyncClient:
    # Reads are left unbounded so a slow body is not cut off once headers arrived
    client = httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, read=None), follow_redirects=False
    )
    # Only the caller's own headers go upstream
    client.headers.clear()
    return client


async def stream_body(
    upstream: httpx.Response, client: Optional[httpx.AsyncClient] = None
) -> AsyncIterator[bytes]:
    """Relay the upstream body as it arrives, then release the connection."""
    try:
        async for chunk in upstream.aiter_raw():
            yield chunk
    except Exception as e:
        log_exception_with_details(
            logger,
            "[Proxy] Upstream body relay failed:",
            e,
            level=logging.WARNING,
            exc_info=False,
        )
        raise
    finally:
        await upstream.aclose()
        if client is not None:
            await client.aclose()


def relay_response(
    upstream: httpx.Response, client: Optional[httpx.AsyncClient] = None
) -> StreamingResponse:
    """Copy upstream status, body and headers, then lay the CORS headers on top.

    The body is relayed undecoded, so content-encoding and content-length
    still describe it.
    """
    relayed = StreamingResponse(
        stream_body(upstream, client), status_code=upstream.status_code
    )
    for name, value in upstream.headers.multi_items():
        if name.lower() in HOP_BY_HOP_HEADERS:
            continue
        relayed.headers.append(name, value)
    for name, value in CORS_HEADERS.items():
        relayed.headers[name] = value
    return relayed


async def forward_to_target(request: Request) -> Response:
    """
    Forward a request under the API prefix to the configured upstream.

    Validates the upstream configuration and the method, answers OPTIONS
    locally, and otherwise makes a single upstream call. ``PROXY_TIMEOUT_MS``
    bounds the wait for the response headers; the body is streamed after.
    Failures are raised as ``GatewayError`` subclasses.
    """
    base_url = select_upstream(request_path(request))
    if not worker_url_configured(base_url):
        logger.error("[Proxy] WORKER_URL is not configured, refusing to proxy")
        raise WorkerUrlNotConfigured()

    method = request.method.upper()
    if method not in ALLOWED_METHODS:
        raise UnsupportedMethod()

    if method == "OPTIONS":
        return Response(status_code=204, headers=dict(CORS_HEADERS))

    target_url = get_target_url(request)
    headers = prepare_headers(request)
    body = None if method in BODYLESS_METHODS else await request.body()
    timeout = PROXY_TIMEOUT_MS / 1000

    with traced_request(
        tracer,
        operation="proxy_request",
        method=method,
        target_url=redact_url(target_url),
        start_message=f"[Proxy] {method} {request.url.path} -> {redact_url(target_url)}",
    ) as span:
        client = create_upstream_client(timeout)
        try:
            outbound = client.build_request(
                method=method, url=target_url, headers=headers, content=body
            )
            upstream = await asyncio.wait_for(
                client.send(outbound, stream=True), timeout=timeout
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            await client.aclose()
            span.set_attribute("proxy.error", "timeout")
            log_exception_with_details(
                logger,
                f"[Proxy] Upstream timeout after {PROXY_TIMEOUT_MS}ms for {redact_url(target_url)}:",
                e,
                level=logging.WARNING,
                exc_info=False,
            )
            raise UpstreamTimeout() from e
        except Exception as e:
            await client.aclose()
            span.set_attribute("proxy.error", type(e).__name__)
            log_exception_with_details(
                logger, f"[Proxy] Upstream error for {redact_url(target_url)}:", e
            )
            raise UpstreamError() from e

        span.set_attribute("proxy.status_code", upstream.status_code)
        return relay_response(upstream, client)


async def unsupported_method_handler(
    request: Request, exc: StarletteHTTPException
) -> Response:
    """Answer the router's 405 under the API prefix with the proxy's JSON body."""
    if exc.status_code == 405 and is_proxied_path(request.url.path):
        return error_response(UnsupportedMethod())
    return await http_exception_handler(request, exc)


async def proxy_all(request: Request) -> Response:
    """Catch-all endpoint that proxies every method under the API prefix."""
    return await forward_to_target(request)


if _route_base:
    router.add_api_route(_route_base, proxy_all, methods=ROUTED_METHODS)
router.add_api_route(_route_base + "/{path:path}", proxy_all, methods=ROUTED_METHODS)
