"""OpenTelemetry metrics instruments for the unified calendar.

Instruments are created lazily from the global MeterProvider, so callers do
not need to pass a Meter instance around.

Initialization
--------------
Call ``init_metrics(service_name)`` once during startup (alongside
``init_telemetry``).  When OTEL_EXPORTER_OTLP_ENDPOINT is not set, the SDK
falls back to a no-op MeterProvider and all recordings are silent no-ops.

Instruments
-----------
  agenda.calendar.aggregation_duration_ms   Histogram  (label: role)
      End-to-end duration of one timeline aggregation.

  agenda.calendar.events_total              Counter    (labels: role, source)
      Unified events returned, per source.

  agenda.calendar.fetch_failures_total      Counter    (label: source)
      Source fetches that failed or were cancelled by a timeout.
"""

from __future__ import annotations

import logging
import os

from opentelemetry import metrics

logger = logging.getLogger(__name__)

_METER_NAME = "agenda"


def init_metrics(service_name: str) -> metrics.Meter:
    """Initialize OpenTelemetry metrics.

    When OTEL_EXPORTER_OTLP_ENDPOINT is set, configures a real MeterProvider
    with a periodic OTLP gRPC exporter.  Otherwise, the global no-op
    MeterProvider is used and all recordings are silent.
    """
    endpoint = os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT")

    if not endpoint:
        logger.info("OTEL_EXPORTER_OTLP_ENDPOINT not set, using no-op meter")
        return metrics.get_meter(_METER_NAME)

    # Import SDK/exporter only when needed to avoid hard dependency at import time
    from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
    from opentelemetry.sdk.metrics import MeterProvider
    from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
    from opentelemetry.sdk.resources import Resource

    resource = Resource.create({"service.name": service_name})
    reader = PeriodicExportingMetricReader(
        OTLPMetricExporter(endpoint=endpoint), export_interval_millis=15_000
    )
    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=[reader]))
    logger.info("Metrics initialized: service=%s, endpoint=%s", service_name, endpoint)

    return metrics.get_meter(_METER_NAME)


def get_meter() -> metrics.Meter:
    """Return a Meter from the current global provider (no-op before init)."""
    return metrics.get_meter(_METER_NAME)


class CalendarMetrics:
    """Lazily-created calendar instruments.

    Safe to construct at import time; recordings are no-ops until a real
    provider is installed.
    """

    def __init__(self) -> None:
        self.__duration: metrics.Histogram | None = None
        self.__events: metrics.Counter | None = None
        self.__failures: metrics.Counter | None = None

    @property
    def _duration(self) -> metrics.Histogram:
        if self.__duration is None:
            self.__duration = get_meter().create_histogram(
                name="agenda.calendar.aggregation_duration_ms",
                description="End-to-end unified timeline aggregation duration in milliseconds",
                unit="ms",
            )
        return self.__duration

    @property
    def _events(self) -> metrics.Counter:
        if self.__events is None:
            self.__events = get_meter().create_counter(
                name="agenda.calendar.events_total",
                description="Unified events returned, per source",
                unit="events",
            )
        return self.__events

    @property
    def _failures(self) -> metrics.Counter:
        if self.__failures is None:
            self.__failures = get_meter().create_counter(
                name="agenda.calendar.fetch_failures_total",
                description="Source fetches that failed or timed out",
                unit="fetches",
            )
        return self.__failures

    def record_aggregation(self, duration_ms: float, role: str) -> None:
        self._duration.record(duration_ms, {"role": role})

    def record_events(self, counts_by_source: dict[str, int], role: str) -> None:
        """Add one sample per source, including zero counts."""
        for source, count in counts_by_source.items():
            self._events.add(count, {"role": role, "source": source})

    def record_fetch_failure(self, source: str) -> None:
        self._failures.add(1, {"source": source})


calendar_metrics = CalendarMetrics()
