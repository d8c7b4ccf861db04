"""
Centralized constants for the notification pipeline and scheduler.

Change job IDs, windows or limits here instead of scattering literals across services and main.
Deployment-specific knobs (URLs, retention, sweep budget) live in config.Settings.
"""

# Scheduler job IDs (must match ids used in main.py add_job)
NOTIFICATION_SWEEP_JOB_ID = "notification_jobs_sweep"
NOTIFICATION_RETENTION_JOB_ID = "notification_retention"
NOTIFICATION_SWEEP_INTERVAL_SECONDS = 60
# One-shot drain per partition after an enqueue; overlapping runs hand off to the running drain
REACTIVE_DRAIN_MAX_INSTANCES = 3

# Job types and statuses
JOB_TYPE_MATCH = "match"
JOB_TYPE_MESSAGE = "message"
JOB_TYPE_GENERIC = "generic"
JOB_TYPES = (JOB_TYPE_MATCH, JOB_TYPE_MESSAGE, JOB_TYPE_GENERIC)

STATUS_QUEUED = "queued"
STATUS_SENT = "sent"
STATUS_SKIPPED = "skipped"
STATUS_PERMANENT_FAILURE = "permanent-failure"
TERMINAL_STATUSES = (STATUS_SENT, STATUS_SKIPPED, STATUS_PERMANENT_FAILURE)

# Queue
ENQUEUE_DEDUP_WINDOW_SECONDS = 120
MAX_JOBS_PER_DRAIN = 10
MAX_JOB_ATTEMPTS = 5
JOB_STALENESS_HOURS = 24

# Push provider
PUSH_CHUNK_SIZE = 100
PUSH_CHUNK_DELAY_SECONDS = 0.05
PUSH_TIMEOUT_SECONDS = 10.0
RECEIPT_CHECK_DELAY_SECONDS = 15
RECEIPT_ERROR_DEVICE_NOT_REGISTERED = "DeviceNotRegistered"

# Circuit breaker (direct send path only)
BREAKER_WINDOW_SECONDS = 10.0
BREAKER_MAX_ENTRIES = 1000

# Handlers
FALLBACK_DISPLAY_NAME = "Someone"
MESSAGE_PREVIEW_CHARS = 80
TOKENS_PER_SESSION_LIMIT = 2  # one per platform (iOS + Android)
