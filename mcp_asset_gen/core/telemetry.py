import sys

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter

from mcp_asset_gen.core.config import settings


def setup_telemetry(export_spans: bool = False):
    resource = Resource.create({"service.name": settings.APP_NAME, "service.version": settings.APP_VERSION})
    provider = TracerProvider(resource=resource)

    # Spans still carry trace ids into the logs when nothing is exported.
    # Exported spans go to stderr, stdout belongs to the stdio protocol.
    if export_spans:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))

    trace.set_tracer_provider(provider)


tracer = trace.get_tracer("mcp_asset_gen")
