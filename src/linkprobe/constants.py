# src/linkprobe/constants.py
"""Centralized constants for the broken link checker.

This module contains default values and policy constants that are used
across multiple modules. For environment-driven settings, see config.py.
"""

# =============================================================================
# Option Defaults
# =============================================================================

# Maximum number of scraped links checked after the origin link
DEFAULT_LINK_LIMIT = 10

# CSS selector used to find candidate link elements
DEFAULT_QUERY_SELECTOR = "a"

# Element attributes read as link targets
DEFAULT_GET_ATTRIBUTES = ("href",)

# Per-link navigation timeout (milliseconds)
DEFAULT_LINK_TIMEOUT_MILLIS = 30000

# Retries after the first attempt of a link
DEFAULT_MAX_RETRIES = 0

# Upper bound accepted for exact expected status codes
MIN_HTTP_STATUS_CODE = 100
MAX_HTTP_STATUS_CODE = 599


# =============================================================================
# Verification Policy
# =============================================================================

# Expected status when neither a per-link override nor a class is given.
# Applies to the origin link and to followed links alike.
DEFAULT_EXPECTED_STATUS = "STATUS_CLASS_2XX"

# Playwright wait_until used for the origin link (full render, later scraped)
ORIGIN_WAIT_UNTIL = "load"

# Playwright wait_until used for followed links
FOLLOWED_LINK_WAIT_UNTIL = "domcontentloaded"

# Errors that will not resolve with a retry
NON_RETRYABLE_ERROR_PATTERNS = (
    "net::err_name_not_resolved",  # DNS failure
    "net::err_connection_refused",  # Server not accepting connections
    "net::err_invalid_url",
    "invalid url",
    "protocol error",
)

# Base for exponential backoff calculation
EXPONENTIAL_BACKOFF_BASE = 2

# Initial backoff delay in seconds
INITIAL_BACKOFF_DELAY_SECONDS = 0.5

# Maximum backoff delay in seconds
MAX_BACKOFF_DELAY_SECONDS = 5.0


# =============================================================================
# Concurrency
# =============================================================================

# Browser contexts (and therefore tabs) used to check followed links at once
DEFAULT_MAX_CONCURRENT_LINKS = 5

# Tabs a browser context opens before it is replaced
MAX_TABS_PER_CONTEXT = 100


# =============================================================================
# Storage
# =============================================================================

# Suffix of the default bucket name: <projectId>-synthetics-<region>
DEFAULT_BUCKET_INFIX = "synthetics"

SCREENSHOT_CONTENT_TYPE = "image/png"
SCREENSHOT_FILE_EXTENSION = ".png"


# =============================================================================
# Execution Environment
# =============================================================================

METADATA_SERVER_URL = "http://metadata.google.internal/computeMetadata/v1"
METADATA_PROJECT_ID_PATH = "/project/project-id"
METADATA_REGION_PATH = "/instance/region"
METADATA_HEADERS = {"Metadata-Flavor": "Google"}

# Seconds to wait for the metadata server before giving up
DEFAULT_METADATA_TIMEOUT_SECONDS = 2.0

# Distribution names reported in the runtime metadata
RUNTIME_METADATA_PACKAGES = (
    "linkprobe",
    "playwright",
    "google-cloud-storage",
)


# =============================================================================
# Messages
# =============================================================================

GENERIC_ERROR_MESSAGE = (
    "An error occurred while starting or running the broken link checker on "
    "{origin_url}. Please reference server logs for further information."
)

SCREENSHOT_UPLOAD_ERROR_MESSAGE = (
    "Failed to take and/or upload screenshot for {url}. "
    "Please reference server logs for further information."
)
