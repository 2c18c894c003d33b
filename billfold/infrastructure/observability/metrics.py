"""Prometheus metrics for service reconciliation, month close and ledger health"""

from prometheus_client import Counter, Histogram

# Reconciliation metrics
service_payment_counter = Counter(
    "billfold_service_payment_total",
    "Recurring service payments marked or unmarked",
    ["action"],  # marked | updated | unmarked
)

cascade_failure_counter = Counter(
    "billfold_cascade_failures_total",
    "Linked transactions that could not be removed while unmarking a payment",
)

# Month close metrics
month_close_counter = Counter(
    "billfold_month_close_total",
    "Month-close resolutions by action",
    ["action"],  # carry_over | split | full_expense | start_fresh
)

carry_over_bucket_counter = Counter(
    "billfold_carry_over_bucket",
    "Carried-over balances by size bucket",
    ["bucket"],
)

# Ledger metrics
ledger_failure_counter = Counter(
    "billfold_ledger_failures_total",
    "Failed ledger operations",
    ["operation", "reason"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_month_close(action: str, carry_over_amount) -> None:
    """Record month-close outcome and the size of any carried-over balance"""
    month_close_counter.labels(action=action).inc()

    if carry_over_amount <= 0:
        return
    if carry_over_amount <= 10_000:
        bucket = "0-10k"
    elif carry_over_amount <= 100_000:
        bucket = "10k-100k"
    else:
        bucket = "100k+"

    carry_over_bucket_counter.labels(bucket=bucket).inc()
