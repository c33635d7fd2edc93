"""Prometheus metrics for the dashboard API.

Exposes key metrics for monitoring:
- Request counts by endpoint and status
- Request duration histograms
- PDF upload metrics
- Extraction metrics by model
- Invoice store operations by backend

Based on Prometheus best practices:
https://prometheus.io/docs/practices/naming/
"""

from prometheus_client import Counter, Histogram, generate_latest
from prometheus_client.openmetrics.exposition import CONTENT_TYPE_LATEST

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
documents_uploaded_total = Counter(
    "documents_uploaded_total",
    "Total PDF uploads",
    ["status"],  # stored, not_persisted, rejected
)

document_upload_size_bytes = Histogram(
    "document_upload_size_bytes",
    "PDF upload size in bytes",
    buckets=(10240, 102400, 1048576, 5242880, 10485760, 26214400),  # 10KB to 25MB
)

# Extraction metrics
extraction_requests_total = Counter(
    "extraction_requests_total",
    "Total extraction requests",
    ["model", "status"],  # success, failed
)

extraction_processing_duration_seconds = Histogram(
    "extraction_processing_duration_seconds",
    "Extraction duration in seconds",
    ["model"],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

# Invoice store metrics
invoice_store_operations_total = Counter(
    "invoice_store_operations_total",
    "Invoice store operations",
    ["backend", "operation"],
)


def get_metrics() -> tuple[bytes, str]:
    """Generate Prometheus metrics in text format.

    Returns:
        Tuple of (metrics bytes, content type)
    """
    return generate_latest(), CONTENT_TYPE_LATEST
