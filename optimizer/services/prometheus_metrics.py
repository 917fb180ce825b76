"""
Prometheus metrics for Catalog Optimizer
"""

from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
import os

# Build info
BUILD_INFO = Gauge(
    'optimizer_build_info',
    'Build information',
    ['version', 'image_tag']
)

# Request counters
REQUESTS_TOTAL = Counter(
    'optimizer_requests_total',
    'Total number of HTTP requests',
    ['status_class']
)

# Job lifecycle
JOBS_TOTAL = Counter(
    'optimizer_jobs_total',
    'Jobs by lifecycle event',
    ['event']
)

JOB_DURATION_SECONDS = Histogram(
    'optimizer_job_duration_seconds',
    'Wall time of finished jobs',
    buckets=[1, 5, 15, 60, 300, 900, 3600]
)

ITEMS_PROCESSED_TOTAL = Counter(
    'optimizer_items_processed_total',
    'Catalog items with an applied mutation'
)

ITEMS_FAILED_TOTAL = Counter(
    'optimizer_items_failed_total',
    'Catalog items whose mutation was rejected or failed'
)

MUTATIONS_TOTAL = Counter(
    'optimizer_mutations_total',
    'Field values written to the catalog',
    ['field']
)

# Content generation
GENERATION_TOTAL = Counter(
    'optimizer_generation_total',
    'Content generation attempts by outcome',
    ['field', 'outcome']
)

GENERATION_FALLBACKS_TOTAL = Counter(
    'optimizer_generation_fallbacks_total',
    'Alt text generations that fell back to the text-only strategy'
)

# Catalog API
CATALOG_RETRIES_TOTAL = Counter(
    'optimizer_catalog_retries_total',
    'Catalog calls retried',
    ['reason']
)

# Undo
REVERTS_TOTAL = Counter(
    'optimizer_reverts_total',
    'Log entry reverts by outcome',
    ['outcome']
)

# Queue
QUEUE_DEPTH = Gauge(
    'optimizer_queue_depth',
    'Jobs waiting in the work queue'
)

QUEUE_DROPS_TOTAL = Counter(
    'optimizer_queue_drops_total',
    'Jobs rejected because the work queue was full'
)


class PrometheusMetrics:
    """Service for managing Prometheus metrics."""

    def __init__(self):
        self._setup_build_info()

    def _setup_build_info(self):
        """Set up build information gauge."""
        version = os.getenv("APP_VERSION", "dev")
        image_tag = os.getenv("IMAGE_TAG", "latest")
        BUILD_INFO.labels(version=version, image_tag=image_tag).set(1)

    def increment_requests(self, status_code: int):
        if 200 <= status_code < 300:
            status_class = "2xx"
        elif 400 <= status_code < 500:
            status_class = "4xx"
        elif 500 <= status_code < 600:
            status_class = "5xx"
        else:
            status_class = "other"
        REQUESTS_TOTAL.labels(status_class=status_class).inc()

    def increment_jobs(self, event: str):
        JOBS_TOTAL.labels(event=event).inc()

    def observe_job_duration(self, seconds: float):
        JOB_DURATION_SECONDS.observe(seconds)

    def increment_items_processed(self, count: int = 1):
        ITEMS_PROCESSED_TOTAL.inc(count)

    def increment_items_failed(self, count: int = 1):
        ITEMS_FAILED_TOTAL.inc(count)

    def increment_mutations(self, field: str, count: int = 1):
        MUTATIONS_TOTAL.labels(field=field).inc(count)

    def increment_generation(self, field: str, outcome: str):
        GENERATION_TOTAL.labels(field=field, outcome=outcome).inc()

    def increment_generation_fallbacks(self):
        GENERATION_FALLBACKS_TOTAL.inc()

    def increment_catalog_retries(self, reason: str):
        CATALOG_RETRIES_TOTAL.labels(reason=reason).inc()

    def increment_reverts(self, outcome: str, count: int = 1):
        REVERTS_TOTAL.labels(outcome=outcome).inc(count)

    def set_queue_depth(self, depth: int):
        QUEUE_DEPTH.set(depth)

    def increment_queue_drops(self, count: int = 1):
        QUEUE_DROPS_TOTAL.inc(count)

    def get_metrics(self) -> bytes:
        """Get Prometheus metrics in text format."""
        return generate_latest()

    def get_content_type(self) -> str:
        """Get the content type for Prometheus metrics."""
        return CONTENT_TYPE_LATEST


# Global metrics instance
prometheus_metrics = PrometheusMetrics()
