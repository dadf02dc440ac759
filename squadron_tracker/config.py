"""Configuration management for the Squadron Tracker service."""

from dataclasses import dataclass
from enum import Enum

from decouple import Choices
from decouple import config


class Environment(Enum):
    """Supported deployment environments."""

    DEVELOPMENT = "development"
    CI = "CI"
    PRODUCTION = "production"


@dataclass
class Config:
    """Configuration for the Squadron Tracker service."""

    # Required fields
    squadron_name: str

    # Environment configuration
    environment: Environment = Environment.DEVELOPMENT

    # War Thunder data source configuration
    warthunder_base_url: str = "https://warthunder.com"
    request_timeout_ms: int = 30000
    max_retry_attempts: int = 3
    retry_base_delay_seconds: float = 3.0
    retry_backoff_multiplier: float = 2.0
    retry_max_delay_seconds: float = 60.0

    # Polling configuration
    poll_interval_minutes: float = 5
    idle_timeout_minutes: float = 30
    idle_check_interval_seconds: int = 60
    health_check_interval_seconds: int = 30

    # Inference and reporting
    infer_result_from_rating: bool = True
    summary_max_events: int = 20
    low_rating_threshold: int = 1000

    # Leaderboard configuration
    leaderboard_page_size: int = 20
    leaderboard_max_pages: int = 20
    leaderboard_default_sort_key: str = "dr_era5"

    # Message bus configuration (NATS)
    message_bus_url: str = "nats://localhost:4222"
    message_bus_timeout_seconds: int = 10
    message_bus_max_reconnect_attempts: int = 10
    message_bus_reconnect_delay_seconds: int = 2
    squadron_events_subject: str = "squadron"
    squadron_events_stream: str = "squadron_events"

    # JetStream configuration
    jetstream_max_age_hours: int = 24
    jetstream_max_msgs: int = 100000
    jetstream_storage: str = "file"

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"

    # OpenTelemetry configuration
    otel_enabled: bool = False
    otel_service_name: str = "squadron-tracker"
    otel_exporter_type: str = "console"
    otel_otlp_endpoint: str = "http://localhost:4317"
    otel_export_interval_millis: int = 60000
    otel_export_timeout_millis: int = 30000

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        # Helper function to simplify config calls
        def get_config(key: str, default=None, cast=None):
            if default is not None:
                if cast is not None:
                    return config(key, default=default, cast=cast)
                else:
                    return config(key, default=default)
            else:
                return config(key)

        env = Environment(
            get_config("ENVIRONMENT", "development", Choices(["development", "CI", "production"]))
        )

        # Environment-specific defaults
        default_message_bus = "nats://nats:4222" if env == Environment.PRODUCTION else "nats://localhost:4222"

        return cls(
            # Required
            squadron_name=get_config("SQUADRON_NAME"),
            # Environment
            environment=env,
            # Data source
            warthunder_base_url=get_config("WARTHUNDER_BASE_URL", "https://warthunder.com"),
            request_timeout_ms=get_config("REQUEST_TIMEOUT_MS", 30000, int),
            max_retry_attempts=get_config("MAX_RETRY_ATTEMPTS", 3, int),
            retry_base_delay_seconds=get_config("RETRY_BASE_DELAY_SECONDS", 3.0, float),
            retry_backoff_multiplier=get_config("RETRY_BACKOFF_MULTIPLIER", 2.0, float),
            retry_max_delay_seconds=get_config("RETRY_MAX_DELAY_SECONDS", 60.0, float),
            # Polling
            poll_interval_minutes=get_config("POLL_INTERVAL_MINUTES", 5.0, float),
            idle_timeout_minutes=get_config("IDLE_TIMEOUT_MINUTES", 30.0, float),
            idle_check_interval_seconds=get_config("IDLE_CHECK_INTERVAL_SECONDS", 60, int),
            health_check_interval_seconds=get_config("HEALTH_CHECK_INTERVAL_SECONDS", 30, int),
            # Inference and reporting
            infer_result_from_rating=get_config("INFER_RESULT_FROM_RATING", True, bool),
            summary_max_events=get_config("SUMMARY_MAX_EVENTS", 20, int),
            low_rating_threshold=get_config("LOW_RATING_THRESHOLD", 1000, int),
            # Leaderboard
            leaderboard_page_size=get_config("LEADERBOARD_PAGE_SIZE", 20, int),
            leaderboard_max_pages=get_config("LEADERBOARD_MAX_PAGES", 20, int),
            leaderboard_default_sort_key=get_config("LEADERBOARD_DEFAULT_SORT_KEY", "dr_era5"),
            # Message bus
            message_bus_url=get_config("MESSAGE_BUS_URL", default_message_bus),
            message_bus_timeout_seconds=get_config("MESSAGE_BUS_TIMEOUT_SECONDS", 10, int),
            message_bus_max_reconnect_attempts=get_config("MESSAGE_BUS_MAX_RECONNECT_ATTEMPTS", 10, int),
            message_bus_reconnect_delay_seconds=get_config("MESSAGE_BUS_RECONNECT_DELAY_SECONDS", 2, int),
            squadron_events_subject=get_config("SQUADRON_EVENTS_SUBJECT", "squadron"),
            squadron_events_stream=get_config("SQUADRON_EVENTS_STREAM", "squadron_events"),
            # JetStream
            jetstream_max_age_hours=get_config("JETSTREAM_MAX_AGE_HOURS", 24, int),
            jetstream_max_msgs=get_config("JETSTREAM_MAX_MSGS", 100000, int),
            jetstream_storage=get_config("JETSTREAM_STORAGE", "file", Choices(["file", "memory"])),
            # Logging
            log_level=get_config(
                "LOG_LEVEL", "INFO", Choices(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
            ),
            log_format=get_config("LOG_FORMAT", "json", Choices(["json", "text"])),
            # OpenTelemetry
            otel_enabled=get_config("OTEL_ENABLED", False, bool),
            otel_service_name=get_config("OTEL_SERVICE_NAME", "squadron-tracker"),
            otel_exporter_type=get_config(
                "OTEL_EXPORTER_TYPE", "console", Choices(["console", "otlp", "none"])
            ),
            otel_otlp_endpoint=get_config("OTEL_OTLP_ENDPOINT", "http://localhost:4317"),
            otel_export_interval_millis=get_config("OTEL_EXPORT_INTERVAL_MILLIS", 60000, int),
            otel_export_timeout_millis=get_config("OTEL_EXPORT_TIMEOUT_MILLIS", 30000, int),
        )

    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == Environment.DEVELOPMENT

    def is_test(self) -> bool:
        """Check if running in test environment."""
        return self.environment == Environment.CI

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def poll_interval_seconds(self) -> float:
        return self.poll_interval_minutes * 60

    @property
    def idle_timeout_seconds(self) -> float:
        return self.idle_timeout_minutes * 60

    @property
    def request_timeout_seconds(self) -> float:
        return self.request_timeout_ms / 1000

