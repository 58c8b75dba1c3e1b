from prometheus_client import Counter, Histogram

# Prometheus metrics
REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "method", "endpoint", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["service", "method", "endpoint"]
)
ERROR_COUNT = Counter(
    "http_errors_total",
    "Total HTTP errors",
    ["service", "endpoint", "error_type"]
)
EXTERNAL_CALL_COUNT = Counter(
    "external_service_calls_total",
    "Total external service calls",
    ["service", "target_service", "status"]
)
EXTERNAL_CALL_LATENCY = Histogram(
    "external_service_call_duration_seconds",
    "External service call latency in seconds",
    ["service", "target_service"]
)
CATALOG_CACHE_LOOKUPS = Counter(
    "catalog_cache_lookups_total",
    "Revalidation cache lookups for catalog fetches",
    ["service", "result"]
)
LOGIN_ATTEMPTS = Counter(
    "login_attempts_total",
    "Credential sign-in attempts",
    ["service", "result"]
)
