"""
Prometheus metrics definitions for bc4-core.

Project naming conventions: snake_case, bc4_ prefix. The CLI is short-lived,
so these are only scraped when the core is embedded in a longer-running
process (e.g. a sync daemon).
"""

from prometheus_client import Counter, Histogram

# ==============================================================================
# HTTP
# ==============================================================================

http_requests_total = Counter(
    "bc4_http_requests_total",
    "Total Basecamp API requests",
    ["method", "status_class"],
    # status_class: 2xx, 3xx, 4xx, 5xx, error (transport failure), cancelled
)

http_request_duration_seconds = Histogram(
    "bc4_http_request_duration_seconds",
    "Basecamp API request latency",
    ["method"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# ==============================================================================
# RATE LIMITING
# ==============================================================================

rate_limit_wait_seconds = Histogram(
    "bc4_rate_limit_wait_seconds",
    "Time spent waiting for a local rate limiter token",
    buckets=[0.01, 0.05, 0.1, 0.2, 0.5, 1.0, 2.0, 5.0, 10.0],
)

remote_rate_limited_total = Counter(
    "bc4_remote_rate_limited_total",
    "HTTP 429 responses from Basecamp (local limiter was not strict enough)",
)

# ==============================================================================
# PAGINATION / AGGREGATION
# ==============================================================================

pages_fetched_total = Counter(
    "bc4_pages_fetched_total",
    "Paginated list pages fetched",
    ["stop_reason"],
    # stop_reason: continue, last_page, empty_page, max_pages, page_check
)

recordings_fetch_total = Counter(
    "bc4_recordings_fetch_total",
    "Per-type recording fetches in the activity aggregator",
    ["recording_type", "status"],
    # status: success, failed, cancelled
)

# ==============================================================================
# RICH TEXT
# ==============================================================================

rich_text_validation_failures_total = Counter(
    "bc4_rich_text_validation_failures_total",
    "Rich text rejected by the allow-list validator",
    ["source"],
    # source: converter (generated by to_rich_text), standalone (validate())
)
