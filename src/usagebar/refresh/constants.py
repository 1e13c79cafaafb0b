"""Constants for the refresh engine."""

# Background cadence
DEFAULT_REFRESH_INTERVAL_SECONDS = 300
DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_CONCURRENT_FETCHES = 8

# APScheduler job identity
REFRESH_JOB_ID = "usage_refresh_all"
REFRESH_JOB_NAME = "Usage Refresh"
