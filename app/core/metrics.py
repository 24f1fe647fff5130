"""Application metrics using the Prometheus client library.

All metrics are defined here so there is a single inventory of what the
service measures.  Other modules import a metric and increment/observe it
at the point of action.

  Counters   only go up; dashboards use rate() over them.
  Gauges     go up and down; a snapshot of current load.
  Histograms bucket observations so Prometheus can derive percentiles.

Prometheus scrapes GET /metrics (see app/api/metrics_endpoint.py).
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Session and identity metrics
# ---------------------------------------------------------------------------

LOGIN_ATTEMPTS = Counter(
    "login_attempts_total",
    "Login attempts by method and outcome",
    ["method", "outcome"],  # method: password|oauth; outcome: success|<error kind>
)

IDENTITY_RESOLUTIONS = Counter(
    "identity_resolutions_total",
    "Identity resolution results",
    # super_admin|tenant_user|user_not_found|no_organization|
    # organization_not_found|unavailable
    ["outcome"],
)

SESSION_RESTORES = Counter(
    "session_restores_total",
    "Session restoration results",
    ["source"],  # cache|provider|revalidated|stale_cache|anonymous
)

STORE_RETRIES = Counter(
    "store_retries_total",
    "Persistent store reads retried after a transient failure",
)
