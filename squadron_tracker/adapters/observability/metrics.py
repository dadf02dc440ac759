"""OpenTelemetry metrics provider for squadron-tracker."""

import logging
from typing import Dict, Optional

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import (
    ConsoleMetricExporter,
    PeriodicExportingMetricReader,
)
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME

from ...config import Config
from .constants import (
    BATTLES_DETECTED,
    DATA_INCONSISTENCIES,
    LABEL_BATTLE_RESULT,
    LABEL_END_REASON,
    LABEL_ENDPOINT_TYPE,
    LABEL_ERROR_TYPE,
    LABEL_EVENT_TYPE,
    LABEL_INCONSISTENCY,
    LABEL_LOOP_TYPE,
    LABEL_MESSAGE_STREAM,
    LABEL_MESSAGE_SUBJECT,
    LABEL_OUTCOME,
    MESSAGE_PUBLISH_FAILURES,
    MESSAGES_PUBLISHED,
    POLLING_ERRORS,
    POLLING_ITERATIONS,
    RANK_QUERIES,
    SESSIONS_ENDED,
    SESSIONS_STARTED,
    SOURCE_CALL_DURATION,
    SOURCE_CALLS_TOTAL,
    SOURCE_RETRIES,
)

logger = logging.getLogger(__name__)

_COUNTERS = {
    SOURCE_CALLS_TOTAL: "Total number of data source calls",
    SOURCE_RETRIES: "Total number of retried data source attempts",
    BATTLES_DETECTED: "Total number of battles inferred from snapshots",
    DATA_INCONSISTENCIES: "Total number of inconsistent snapshot pairs",
    SESSIONS_STARTED: "Total number of play sessions started",
    SESSIONS_ENDED: "Total number of play sessions ended",
    RANK_QUERIES: "Total number of leaderboard rank queries",
    MESSAGES_PUBLISHED: "Total number of messages published to NATS",
    MESSAGE_PUBLISH_FAILURES: "Total number of failed message publishes",
    POLLING_ITERATIONS: "Total number of polling iterations",
    POLLING_ERRORS: "Total number of polling errors",
}


class MetricsProvider:
    """Manages OpenTelemetry metrics for the squadron-tracker service."""

    def __init__(self, config: Config):
        """Initialize the metrics provider.

        Args:
            config: Application configuration
        """
        self.config = config
        self._meter_provider: Optional[MeterProvider] = None
        self._meter: Optional[metrics.Meter] = None
        self._initialized = False

        # Metric instruments - initialized in initialize()
        self._counters: Dict[str, metrics.Counter] = {}
        self._source_duration_histogram = None

    def initialize(self) -> None:
        """Initialize the OpenTelemetry metrics provider."""
        if self._initialized:
            logger.warning("Metrics provider already initialized")
            return

        if not self.config.otel_enabled:
            logger.info("OpenTelemetry metrics disabled")
            self._initialized = True
            return

        try:
            resource = Resource.create({
                SERVICE_NAME: self.config.otel_service_name,
                "environment": self.config.environment.value,
            })

            if self.config.otel_exporter_type == "console":
                exporter = ConsoleMetricExporter()
                logger.info("Using console metric exporter")
            elif self.config.otel_exporter_type == "otlp":
                exporter = OTLPMetricExporter(
                    endpoint=self.config.otel_otlp_endpoint,
                    insecure=True,
                )
                logger.info(f"Using OTLP metric exporter: {self.config.otel_otlp_endpoint}")
            else:
                logger.info("Metrics export disabled (exporter_type='none')")
                self._initialized = True
                return

            reader = PeriodicExportingMetricReader(
                exporter=exporter,
                export_interval_millis=self.config.otel_export_interval_millis,
                export_timeout_millis=self.config.otel_export_timeout_millis,
            )

            self._meter_provider = MeterProvider(
                resource=resource,
                metric_readers=[reader],
            )
            metrics.set_meter_provider(self._meter_provider)
            self._meter = metrics.get_meter(__name__)

            self._create_instruments()

            self._initialized = True
            logger.info("Metrics provider initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize metrics provider: {e}")
            self._initialized = False
            raise

    def _create_instruments(self) -> None:
        """Create all metric instruments."""
        if not self._meter:
            return

        for name, description in _COUNTERS.items():
            self._counters[name] = self._meter.create_counter(
                name=name,
                description=description,
                unit="1",
            )

        self._source_duration_histogram = self._meter.create_histogram(
            name=SOURCE_CALL_DURATION,
            description="Duration of data source calls in seconds, retries included",
            unit="s",
        )

    def shutdown(self) -> None:
        """Shutdown the metrics provider and flush any pending metrics."""
        if self._meter_provider:
            try:
                self._meter_provider.shutdown()
                logger.info("Metrics provider shut down")
            except Exception as e:
                logger.error(f"Error shutting down metrics provider: {e}")

    def _add(self, name: str, labels: Dict[str, str], amount: int = 1) -> None:
        if not self._initialized or not self.config.otel_enabled:
            return
        counter = self._counters.get(name)
        if counter:
            counter.add(amount, labels)

    # Data source metrics

    def record_source_call(
        self,
        endpoint_type: str,
        success: bool,
        duration_seconds: float,
        error_type: Optional[str] = None,
    ) -> None:
        """Record one logical data source call."""
        labels = {
            LABEL_ENDPOINT_TYPE: endpoint_type,
            LABEL_OUTCOME: "success" if success else "failure",
        }
        if error_type:
            labels[LABEL_ERROR_TYPE] = error_type

        self._add(SOURCE_CALLS_TOTAL, labels)
        if self._initialized and self.config.otel_enabled and self._source_duration_histogram:
            self._source_duration_histogram.record(duration_seconds, labels)

    def record_source_retry(self, endpoint_type: str, error_type: str) -> None:
        self._add(SOURCE_RETRIES, {LABEL_ENDPOINT_TYPE: endpoint_type, LABEL_ERROR_TYPE: error_type})

    # Inference metrics

    def record_battles_detected(self, battle_result: str, count: int = 1) -> None:
        self._add(BATTLES_DETECTED, {LABEL_BATTLE_RESULT: battle_result}, count)

    def record_data_inconsistency(self, kind: str) -> None:
        self._add(DATA_INCONSISTENCIES, {LABEL_INCONSISTENCY: kind})

    # Session metrics

    def record_session_started(self) -> None:
        self._add(SESSIONS_STARTED, {})

    def record_session_ended(self, reason: str) -> None:
        self._add(SESSIONS_ENDED, {LABEL_END_REASON: reason})

    # Leaderboard metrics

    def record_rank_query(self, outcome: str) -> None:
        self._add(RANK_QUERIES, {LABEL_OUTCOME: outcome})

    # Message bus metrics

    def record_message_published(
        self,
        event_type: str,
        subject: str,
        stream: str,
        success: bool = True
    ) -> None:
        """Record a message publish attempt."""
        labels = {
            LABEL_EVENT_TYPE: event_type,
            LABEL_MESSAGE_SUBJECT: subject,
            LABEL_MESSAGE_STREAM: stream,
        }
        self._add(MESSAGES_PUBLISHED if success else MESSAGE_PUBLISH_FAILURES, labels)

    # Polling metrics

    def record_polling_iteration(self, loop_type: str) -> None:
        """Record a polling loop iteration."""
        self._add(POLLING_ITERATIONS, {LABEL_LOOP_TYPE: loop_type})

    def record_polling_error(self, loop_type: str, error_type: str) -> None:
        """Record a polling loop error."""
        self._add(POLLING_ERRORS, {LABEL_LOOP_TYPE: loop_type, LABEL_ERROR_TYPE: error_type})


# Global metrics provider instance
_metrics_provider: Optional[MetricsProvider] = None


def get_metrics_provider() -> Optional[MetricsProvider]:
    """Get the global metrics provider instance."""
    return _metrics_provider


def initialize_metrics(config: Config) -> MetricsProvider:
    """Initialize the global metrics provider.

    Args:
        config: Application configuration

    Returns:
        The initialized MetricsProvider instance
    """
    global _metrics_provider

    if _metrics_provider is not None:
        logger.warning("Metrics provider already initialized")
        return _metrics_provider

    _metrics_provider = MetricsProvider(config)
    _metrics_provider.initialize()

    return _metrics_provider


def shutdown_metrics() -> None:
    """Shutdown the global metrics provider."""
    global _metrics_provider

    if _metrics_provider:
        _metrics_provider.shutdown()
        _metrics_provider = None
