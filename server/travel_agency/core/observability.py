"""Observability setup for OpenTelemetry, metrics, and structured logging."""

import logging

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
import structlog

from .config import settings

SERVICE_NAME = "travel-agency-api"

# Prometheus metrics
REGISTRY = CollectorRegistry()

# Request metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code'],
    registry=REGISTRY
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration in seconds',
    ['method', 'endpoint'],
    registry=REGISTRY
)

# Business metrics
BOOKINGS_CREATED = Counter(
    'bookings_created_total',
    'Total bookings created',
    ['trip_id'],
    registry=REGISTRY
)

BOOKINGS_CANCELLED = Counter(
    'bookings_cancelled_total',
    'Total bookings cancelled',
    registry=REGISTRY
)

BOOKINGS_PAID = Counter(
    'bookings_paid_total',
    'Total bookings paid',
    registry=REGISTRY
)

BOOKING_REJECTIONS = Counter(
    'booking_rejections_total',
    'Booking operations rejected by business rules',
    ['operation', 'code'],
    registry=REGISTRY
)

INVENTORY_MOVEMENTS = Counter(
    'inventory_movements_total',
    'Rooms reserved or released through the ledger',
    ['direction'],
    registry=REGISTRY
)

WAITLIST_JOINS = Counter(
    'waitlist_joins_total',
    'Total waiting list joins',
    registry=REGISTRY
)

WAITLIST_NOTIFICATIONS = Counter(
    'waitlist_notifications_total',
    'Waiting list turn notifications by delivery outcome',
    ['outcome'],
    registry=REGISTRY
)

WAITLIST_EXPIRED = Counter(
    'waitlist_notifications_expired_total',
    'Notified waiting list entries removed after their window elapsed',
    registry=REGISTRY
)

REVIEWS_CREATED = Counter(
    'reviews_created_total',
    'Trip reviews written, by rating',
    ['rating'],
    registry=REGISTRY
)

AVAILABLE_ROOMS = Gauge(
    'trip_available_rooms',
    'Rooms currently available per trip',
    ['trip_id'],
    registry=REGISTRY
)


def setup_structured_logging():
    """Configure structured logging with structlog."""

    def add_trace_context(logger, method_name, event_dict):
        """Add trace context to log events."""
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    # Request IDs are bound into contextvars by the middleware
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_trace_context,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _resource(app_name: str) -> Resource:
    return Resource.create({
        "service.name": app_name,
        "service.version": "1.0.0",
        "environment": settings.environment,
    })


def setup_tracing(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource(app_name))

    if settings.otlp_endpoint:
        otlp_exporter = OTLPSpanExporter(endpoint=settings.otlp_endpoint)
        provider.add_span_processor(BatchSpanProcessor(otlp_exporter))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
        reader = PeriodicExportingMetricReader(exporter=otlp_exporter, export_interval_millis=60000)
        metrics.set_meter_provider(MeterProvider(resource=_resource(app_name), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy(engine=None):
    """Instrument SQLAlchemy with OpenTelemetry."""
    if engine is not None:
        SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)
    else:
        SQLAlchemyInstrumentor().instrument()


class MetricsCollector:
    """Collector for business metrics."""

    @staticmethod
    def record_request(method: str, endpoint: str, status_code: int, duration: float):
        """Record an HTTP request."""
        REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(duration)

    @staticmethod
    def record_booking_created(trip_id: int):
        """Record a booking creation."""
        BOOKINGS_CREATED.labels(trip_id=str(trip_id)).inc()

    @staticmethod
    def record_booking_cancelled():
        """Record a booking cancellation."""
        BOOKINGS_CANCELLED.inc()

    @staticmethod
    def record_booking_paid():
        """Record a booking payment."""
        BOOKINGS_PAID.inc()

    @staticmethod
    def record_review_created(rating: int):
        """Record a new trip review."""
        REVIEWS_CREATED.labels(rating=str(rating)).inc()

    @staticmethod
    def record_rejection(operation: str, code: str):
        """Record a business rule rejection."""
        BOOKING_REJECTIONS.labels(operation=operation, code=code).inc()

    @staticmethod
    def record_inventory_movement(direction: str, rooms: int):
        """Record rooms moving through the ledger."""
        INVENTORY_MOVEMENTS.labels(direction=direction).inc(rooms)

    @staticmethod
    def record_waitlist_join():
        """Record a waiting list join."""
        WAITLIST_JOINS.inc()

    @staticmethod
    def record_notification(delivered: bool):
        """Record a turn notification and whether it was delivered."""
        WAITLIST_NOTIFICATIONS.labels(outcome="delivered" if delivered else "failed").inc()

    @staticmethod
    def record_notification_expired():
        """Record an expired waiting list notification."""
        WAITLIST_EXPIRED.inc()

    @staticmethod
    def set_available_rooms(trip_id: int, available: int):
        """Set the number of available rooms for a trip."""
        AVAILABLE_ROOMS.labels(trip_id=str(trip_id)).set(available)


def get_prometheus_metrics():
    """Get Prometheus metrics for the /metrics endpoint."""
    return generate_latest(REGISTRY)


# Global metrics collector instance
metrics_collector = MetricsCollector()


class StructuredLogger:
    """Structured logger with business context."""

    def __init__(self, name_or_logger):
        if isinstance(name_or_logger, str):
            self.logger = structlog.get_logger(name_or_logger)
        else:
            self.logger = name_or_logger

    def info(self, message: str, **kwargs):
        """Log info message with context."""
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Log warning message with context."""
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        """Log error message with context."""
        self.logger.error(message, **kwargs)

    def debug(self, message: str, **kwargs):
        """Log debug message with context."""
        self.logger.debug(message, **kwargs)

    def with_context(self, **kwargs):
        """Add context to logger."""
        return StructuredLogger(self.logger.bind(**kwargs))


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name)
