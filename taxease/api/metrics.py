"""Prometheus metrics for the analyzer API.

Exposes key metrics for monitoring:
- Request counts by endpoint and status
- Request duration histograms
- Receipt classification outcomes and latency
- Vendor rule imports

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from taxease.classification.base import ClassificationResult

# Request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0),
)

# Upload metrics
document_upload_size_bytes = Histogram(
    "document_upload_size_bytes",
    "Uploaded file size in bytes",
    buckets=(1024, 10240, 102400, 1048576, 10485760),  # 1KB to 10MB
)

# Classification metrics
receipts_classified_total = Counter(
    "receipts_classified_total",
    "Total receipts run through the classification provider",
    ["status"],  # completed, error
)

classification_duration_seconds = Histogram(
    "classification_duration_seconds",
    "Classification round trip duration in seconds",
    buckets=(0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0),
)

# Rule metrics
rules_imported_total = Counter(
    "rules_imported_total",
    "Total vendor rules added from uploaded rule files",
)


def record_classification(result: ClassificationResult, duration: float) -> None:
    """Pipeline hook recording one classification outcome."""
    receipts_classified_total.labels(status="completed" if result.success else "error").inc()
    classification_duration_seconds.observe(duration)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
