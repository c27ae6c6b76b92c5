"""Constants and configuration values for Topolop.

This module centralizes magic numbers and default values that are used
across the codebase for easier maintenance.
"""

# =============================================================================
# Report Schema
# =============================================================================

# Consumers reject reports whose major version differs
SCHEMA_VERSION = "1.0"

# Default tool name used for <tool>-results.json
REPORT_TOOL_NAME = "topolop"


# =============================================================================
# Severity Weights and Hotspot Scoring
# =============================================================================

SEVERITY_WEIGHTS = {
    "critical": 10,
    "high": 7,
    "medium": 4,
    "low": 2,
    "info": 1,
}

# Bonus per distinct tool that reported on a file
TOOL_COVERAGE_BONUS = 5

HOTSPOT_MAX = 100


# =============================================================================
# Correlation
# =============================================================================

# Two issues within this many lines of each other are colocated
DEFAULT_LINE_THRESHOLD = 5

# Length of truncated hex digests used for keys and derived ids
KEY_HEX_LENGTH = 16


# =============================================================================
# Adapter Harness
# =============================================================================

# Per-adapter time budget in milliseconds
DEFAULT_ADAPTER_TIMEOUT_MS = 120_000

# Bounded queue between adapter workers and the ingestion loop
DEFAULT_QUEUE_SIZE = 256


# =============================================================================
# Retry and Rate Limiting
# =============================================================================

RETRY_BASE_DELAY_SECONDS = 1.0
DEFAULT_MAX_RETRIES = 3

# Vendor SAST APIs: 50 requests per rolling hour
SAST_RATE_LIMIT_CALLS = 50
SAST_RATE_LIMIT_PERIOD = 3600.0

# OSV API rate limits
OSV_RATE_LIMIT_CALLS = 20
OSV_RATE_LIMIT_PERIOD = 60.0

# DataDog API rate limits
DATADOG_RATE_LIMIT_CALLS = 300
DATADOG_RATE_LIMIT_PERIOD = 3600.0

HTTP_TIMEOUT_SECONDS = 30


# =============================================================================
# Visualization
# =============================================================================

DEFAULT_MAX_BUILDING_HEIGHT = 50.0
BUILDING_HEIGHT_PER_ISSUE = 1.5

# Health thresholds (health = 100 - hotspot score)
CONDITION_THRESHOLDS = (
    (80, "excellent"),
    (60, "good"),
    (40, "fair"),
)
CONDITION_FALLBACK = "poor"

# A file with more MEDIUM issues than this (and no HIGH/CRITICAL) is medium risk
MEDIUM_RISK_MIN_COUNT = 2

ROOT_DISTRICT = "(root)"
