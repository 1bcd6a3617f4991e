"""
Client helper for calling the gateway's API prefix.

Wraps a single httpx request with a time budget, JSON-first body encoding and
a normalized ``ApiResponse`` result; it never raises for transport failures.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from edge_gateway.headers import JSON_CONTENT_TYPE
from edge_gateway.models import ApiResponse
from edge_gateway.utils.exception_logging import format_exception_message
from edge_gateway.vars import API_BASE_URL, API_CLIENT_TIMEOUT_MS, API_PREFIX

logger = logging.getLogger("uvicorn.error")

CLIENT_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

QueryValue = Union[str, int, float, bool, None]


@dataclass
class FormPayload:
    """Form fields and files, encoded by httpx as urlencoded or multipart."""

    data: Dict[str, Any] = field(default_factory=dict)
    files: Optional[Dict[str, Any]] = None


BINARY_TYPES = (bytes, bytearray, memoryview)


def _valid_headers(headers: Any) -> bool:
    if not isinstance(headers, Mapping):
        return False
    return all(isinstance(k, str) and isinstance(v, str) for k, v in headers.items())


def query_params(query: Optional[Mapping[str, QueryValue]]) -> Dict[str, str]:
    """Query parameters for httpx, skipping ``None`` values."""
    params = {}
    for key, value in (query or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        params[key] = str(value)
    return params


class ApiClient:
    """Issues requests to ``<base_url><API_PREFIX><path>``."""

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        prefix: str = API_PREFIX,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.prefix = prefix.rstrip("/")
        self.transport = transport

    def _request_kwargs(self, method: str, headers: Dict[str, str], body: Any) -> Dict[str, Any]:
        if method == "GET" or body is None:
            return {}
        if isinstance(body, FormPayload):
            return {"data": body.data, "files": body.files}
        if isinstance(body, BINARY_TYPES):
            return {"content": bytes(body)}

        content_type_key = next(
            (k for k in headers if k.lower() == "content-type"), "content-type"
        )
        headers.setdefault(content_type_key, JSON_CONTENT_TYPE)
        if "application/json" in headers[content_type_key]:
            return {"content": json.dumps(body)}
        return {"content": body}

    async def fetch(
        self,
        path: str,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        query: Optional[Mapping[str, QueryValue]] = None,
        body: Any = None,
        timeout_ms: Optional[float] = None,
    ) -> ApiResponse:
        if not isinstance(path, str) or not path.startswith("/"):
            return ApiResponse(ok=False, status=400, error="Invalid path")

        method = (method or "GET").upper()
        if method not in CLIENT_METHODS:
            return ApiResponse(ok=False, status=405, error="Unsupported method")

        request_headers = dict(headers) if _valid_headers(headers) else {}
        if isinstance(timeout_ms, (int, float)) and not isinstance(timeout_ms, bool) and timeout_ms > 0:
            timeout = timeout_ms / 1000
        else:
            timeout = API_CLIENT_TIMEOUT_MS / 1000

        kwargs = self._request_kwargs(method, request_headers, body)
        url = f"{self.base_url}{self.prefix}{path}"
        params = query_params(query)

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout), transport=self.transport
            ) as client:
                response = await asyncio.wait_for(
                    client.request(
                        method, url, params=params, headers=request_headers, **kwargs
                    ),
                    timeout=timeout,
                )
            content_type = response.headers.get("content-type", "")
            if "application/json" in content_type:
                data = response.json()
            else:
                data = response.text
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(f"[ApiClient] {method} {path} timed out after {timeout}s")
            return ApiResponse(ok=False, status=408, error="Request timeout")
        except Exception as e:
            logger.warning(f"[ApiClient] {method} {path} failed: {format_exception_message(e)}")
            return ApiResponse(ok=False, status=500, error="Network error")

        return ApiResponse(ok=response.is_success, status=response.status_code, data=data)


async def api_fetch(path: str, **options) -> ApiResponse:
    """Call ``path`` on the default gateway with ``ApiClient.fetch`` options."""
    return await ApiClient().fetch(path, **options)
