"""Prometheus metrics for charges, transfers, renewals and outbound integrations"""

from prometheus_client import Counter, Histogram

# Charge metrics
charge_counter = Counter(
    "splitpay_charge_total",
    "Charges attempted",
    ["outcome"],  # succeeded | declined | no_customer | invalid | error
)

transfer_counter = Counter(
    "splitpay_transfer_total",
    "Split transfers attempted",
    ["outcome"],  # created | failed
)

# Renewal metrics
renewal_counter = Counter(
    "splitpay_renewal_total",
    "Subscriber renewal attempts",
    ["outcome"],  # renewed | failed | skipped
)

# Stripe API metrics
stripe_failures_counter = Counter(
    "stripe_api_failures_total",
    "Failed Stripe API calls",
    ["operation"],
)

# Sheet webhook metrics
sheet_latency_histogram = Histogram(
    "sheet_webhook_latency_seconds",
    "Apps Script sheet logger response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

sheet_failure_counter = Counter(
    "sheet_webhook_failures_total",
    "Failed sheet logger deliveries",
)

# Web Push metrics
push_counter = Counter(
    "push_notifications_total",
    "Web Push deliveries",
    ["outcome"],  # sent | failed | pruned
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_charge(outcome: str) -> None:
    charge_counter.labels(outcome=outcome).inc()


def record_transfer_outcomes(created: int, failed: int) -> None:
    """Record split transfer results for one charge"""
    if created:
        transfer_counter.labels(outcome="created").inc(created)
    if failed:
        transfer_counter.labels(outcome="failed").inc(failed)


def record_renewal(outcome: str) -> None:
    renewal_counter.labels(outcome=outcome).inc()
