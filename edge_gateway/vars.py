import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "edge-gateway")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

# Upstream origin the /api prefix is forwarded to, e.g. https://x.workers.dev
WORKER_URL = os.environ.get("WORKER_URL", "")
API_PREFIX = "/" + os.environ.get("API_PREFIX", "/api").strip("/")
PROXY_TIMEOUT_MS = int(os.environ.get("PROXY_TIMEOUT_MS", "15000"))

API_BASE_URL = os.environ.get("API_BASE_URL", "http://localhost:8000").rstrip("/")
API_CLIENT_TIMEOUT_MS = int(os.environ.get("API_CLIENT_TIMEOUT_MS", "10000"))

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
