"""Constants for OpenTelemetry metrics."""

# Service name
SERVICE_NAME = "squadron-tracker"

# Metric name prefixes
METRIC_PREFIX = "squadron_tracker"

# Data source metrics
SOURCE_CALLS_TOTAL = f"{METRIC_PREFIX}.source.calls_total"
SOURCE_CALL_DURATION = f"{METRIC_PREFIX}.source.call_duration"
SOURCE_RETRIES = f"{METRIC_PREFIX}.source.retries_total"

# Inference metrics
BATTLES_DETECTED = f"{METRIC_PREFIX}.battles.detected_total"
DATA_INCONSISTENCIES = f"{METRIC_PREFIX}.snapshots.inconsistencies_total"

# Session metrics
SESSIONS_STARTED = f"{METRIC_PREFIX}.sessions.started_total"
SESSIONS_ENDED = f"{METRIC_PREFIX}.sessions.ended_total"

# Leaderboard metrics
RANK_QUERIES = f"{METRIC_PREFIX}.leaderboard.rank_queries_total"

# Message bus metrics
MESSAGES_PUBLISHED = f"{METRIC_PREFIX}.messages.published_total"
MESSAGE_PUBLISH_FAILURES = f"{METRIC_PREFIX}.messages.publish_failures_total"

# Polling loop metrics
POLLING_ITERATIONS = f"{METRIC_PREFIX}.polling.iterations_total"
POLLING_ERRORS = f"{METRIC_PREFIX}.polling.errors_total"

# Common label keys
LABEL_ENDPOINT_TYPE = "endpoint_type"
LABEL_OUTCOME = "outcome"
LABEL_ERROR_TYPE = "error_type"
LABEL_BATTLE_RESULT = "battle_result"
LABEL_INCONSISTENCY = "inconsistency"
LABEL_END_REASON = "end_reason"
LABEL_EVENT_TYPE = "event_type"
LABEL_MESSAGE_SUBJECT = "subject"
LABEL_MESSAGE_STREAM = "stream"
LABEL_LOOP_TYPE = "loop_type"
