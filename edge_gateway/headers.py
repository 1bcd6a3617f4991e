"""Fixed response header bundles shared by the middleware and the proxy."""

from types import MappingProxyType

JSON_CONTENT_TYPE = "application/json; charset=utf-8"

ALLOWED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")

CORS_HEADERS = MappingProxyType(
    {
        "access-control-allow-origin": "*",
        "access-control-allow-methods": ",".join(ALLOWED_METHODS),
        "access-control-allow-headers": "content-type,authorization,x-requested-with",
    }
)

SECURITY_HEADERS = MappingProxyType(
    {
        "x-content-type-options": "nosniff",
        "x-frame-options": "DENY",
        "referrer-policy": "no-referrer",
    }
)
