import logging
from typing import Sequence

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from edge_gateway.api_proxy.route import router as proxy_router, unsupported_method_handler
from edge_gateway.errors import GatewayError, gateway_error_handler
from edge_gateway.middleware import EdgeMiddleware
from edge_gateway.utils import redact_url
from edge_gateway.vars import (
    API_PREFIX,
    LOG_LEVEL,
    OTLP_ENDPOINT,
    OTLP_HEADERS,
    SERVICE_NAME,
    WORKER_URL,
)

logger = logging.getLogger("uvicorn.error")
logger.setLevel(LOG_LEVEL)

app = FastAPI(title=SERVICE_NAME)
instrumentator = Instrumentator()

instrumentator.instrument(app).expose(app)


class FilteringSpanExporter(SpanExporter):
    """
    Wrapper exporter that filters out the ASGI body spans emitted per response
    chunk, which add nothing to a proxied request trace.
    """

    def __init__(self, exporter: SpanExporter):
        self.exporter = exporter

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        filtered_spans = [
            span
            for span in spans
            if not (
                span.attributes
                and span.attributes.get("asgi.event.type") == "http.response.body"
            )
        ]
        if filtered_spans:
            return self.exporter.export(filtered_spans)
        return SpanExportResult.SUCCESS

    def shutdown(self):
        return self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000):
        return self.exporter.force_flush(timeout_millis)


trace.set_tracer_provider(
    TracerProvider(resource=Resource.create({"service.name": SERVICE_NAME}))
)
tracer_provider = trace.get_tracer_provider()
if OTLP_ENDPOINT:
    otlp_exporter = OTLPSpanExporter(
        endpoint=OTLP_ENDPOINT,
        headers=OTLP_HEADERS or None,
    )
    tracer_provider.add_span_processor(
        BatchSpanProcessor(FilteringSpanExporter(otlp_exporter))
    )

FastAPIInstrumentor.instrument_app(app)

app_info = Info("edge_gateway_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME, "api_prefix": API_PREFIX})

app.add_exception_handler(GatewayError, gateway_error_handler)
app.add_exception_handler(StarletteHTTPException, unsupported_method_handler)
app.add_middleware(EdgeMiddleware)
app.include_router(proxy_router)

if WORKER_URL:
    logger.info(f"Proxying {API_PREFIX} to {redact_url(WORKER_URL)}")
else:
    logger.warning(f"WORKER_URL not set, requests under {API_PREFIX} will fail with 500")
