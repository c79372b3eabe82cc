"""OpenTelemetry providers for metrics and logs.

Everything is pushed over OTLP/HTTP without TLS to the endpoint named by
OTLP_EXPORTER_OTLP_ENDPOINT. The PeriodicExportingMetricReader owns the
collection clock: it pulls the observable instruments and exports a batch
every collection period, independently of the update loop.
"""
from __future__ import annotations

import logging
import time
from typing import Optional, Sequence

from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.metrics import Meter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import (
    Counter,
    Histogram,
    MeterProvider,
    ObservableCounter,
    ObservableGauge,
    ObservableUpDownCounter,
    UpDownCounter,
)
from opentelemetry.sdk.metrics.export import AggregationTemporality, MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from .config import (
    DEFAULT_EXPORT_INTERVAL_SECONDS,
    DEFAULT_FLUSH_TIMEOUT_SECONDS,
    Config,
    logs_url,
    metrics_url,
    resolve_endpoint,
)
from .errors import ExportFlushError

_LOGGER = logging.getLogger(__name__)

SERVICE_NAME = "synthetic-metrics"
METER_NAME = "synthetic_metrics"

# Pinned so OTEL_EXPORTER_OTLP_METRICS_TEMPORALITY_PREFERENCE cannot switch to delta
CUMULATIVE_TEMPORALITY = {
    instrument_type: AggregationTemporality.CUMULATIVE
    for instrument_type in (
        Counter,
        UpDownCounter,
        Histogram,
        ObservableCounter,
        ObservableUpDownCounter,
        ObservableGauge,
    )
}


class TelemetryController:
    """Wraps the meter and logger providers and their bounded shutdown."""

    def __init__(
        self,
        meter_provider: MeterProvider,
        logger_provider: Optional[LoggerProvider] = None,
        endpoint: Optional[str] = None,
    ) -> None:
        self._meter_provider = meter_provider
        self._logger_provider = logger_provider
        self.endpoint = endpoint
        self._meter: Optional[Meter] = None
        self._shut_down = False

    @property
    def meter(self) -> Meter:
        if self._meter is None:
            self._meter = self._meter_provider.get_meter(METER_NAME)
        return self._meter

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    def logging_handler(self, level: int = logging.NOTSET) -> Optional[logging.Handler]:
        """Handler bridging stdlib logging to the OTLP log exporter, if enabled."""
        if self._logger_provider is None:
            return None
        return LoggingHandler(level=level, logger_provider=self._logger_provider)

    def shutdown(self, timeout_seconds: float = DEFAULT_FLUSH_TIMEOUT_SECONDS) -> None:
        """Export whatever is pending and stop the providers within the timeout.

        Raises ExportFlushError on failure or when the deadline passes. Only
        the first call does any work.
        """
        if self._shut_down:
            return
        self._shut_down = True

        deadline = time.monotonic() + timeout_seconds
        errors = []

        # The reader runs one last collect-and-export as part of its shutdown
        try:
            self._meter_provider.shutdown(timeout_millis=timeout_seconds * 1000)
        except Exception as exc:
            errors.append(f"metrics: {exc}")

        if self._logger_provider is not None:
            try:
                remaining_ms = max(deadline - time.monotonic(), 0) * 1000
                self._logger_provider.force_flush(timeout_millis=int(remaining_ms))
                self._logger_provider.shutdown()
            except Exception as exc:
                errors.append(f"logs: {exc}")

        if time.monotonic() > deadline:
            errors.append(f"flush did not finish within {timeout_seconds}s")

        if errors:
            raise ExportFlushError("; ".join(errors))
        _LOGGER.debug("Telemetry providers shut down")


def otlp_metric_exporter(endpoint: str) -> OTLPMetricExporter:
    """OTLP/HTTP metric exporter reporting cumulative values for every instrument."""
    return OTLPMetricExporter(endpoint=metrics_url(endpoint), preferred_temporality=CUMULATIVE_TEMPORALITY)


def setup_telemetry(
    config: Config,
    endpoint: Optional[str] = None,
    export_interval_millis: float = DEFAULT_EXPORT_INTERVAL_SECONDS * 1000,
    metric_readers: Optional[Sequence[MetricReader]] = None,
    export_logs: bool = True,
) -> TelemetryController:
    """Initialise OTel providers for metrics and (optionally) logs.

    ``metric_readers`` replaces the OTLP reader; the providers are returned
    in a controller rather than installed globally.
    """
    endpoint = endpoint or resolve_endpoint()

    # Resource attributes from OTEL_RESOURCE_ATTRIBUTES are merged in by create()
    resource = Resource.create(
        {
            "service.name": SERVICE_NAME,
            "service.instance.id": f"{config.host}:{config.port}",
        }
    )

    # ── Metrics ──────────────────────────────────────────────────────────────
    if metric_readers is None:
        metric_readers = [
            PeriodicExportingMetricReader(
                otlp_metric_exporter(endpoint),
                export_interval_millis=export_interval_millis,
            )
        ]
    meter_provider = MeterProvider(resource=resource, metric_readers=list(metric_readers))

    # ── Logs ─────────────────────────────────────────────────────────────────
    logger_provider = None
    if export_logs:
        logger_provider = LoggerProvider(resource=resource)
        logger_provider.add_log_record_processor(
            BatchLogRecordProcessor(OTLPLogExporter(endpoint=logs_url(endpoint)))
        )

    _LOGGER.info("OTel telemetry providers initialised (endpoint=%s)", endpoint)
    return TelemetryController(meter_provider, logger_provider, endpoint=endpoint)
