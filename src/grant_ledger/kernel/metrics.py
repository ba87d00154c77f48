"""
Prometheus metrics for the Grant Ledger.

Counts operations by outcome, tracks token flows into and out of locked
state, and exposes the current locked balance for dashboards.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Gauge, Histogram, start_http_server

# ============================================================================
# Operation Metrics
# ============================================================================

operations_total = Counter(
    "grant_operations_total",
    "Total number of ledger operations",
    ["operation", "status"],  # status: success, failure
)

operation_duration_seconds = Histogram(
    "grant_operation_duration_seconds",
    "Duration of ledger operations in seconds",
    ["operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

# ============================================================================
# Token Flow Metrics
# ============================================================================

tokens_allocated_total = Counter(
    "grant_tokens_allocated_total",
    "Total tokens allocated to recipients",
)

tokens_claimed_total = Counter(
    "grant_tokens_claimed_total",
    "Total tokens claimed by recipients",
)

tokens_retrieved_total = Counter(
    "grant_tokens_retrieved_total",
    "Total unallocated tokens retrieved by the administrator",
)

locked_balance_gauge = Gauge(
    "grant_locked_balance",
    "Sum of outstanding entitlements",
    ["ledger_id"],
)

distribution_active_gauge = Gauge(
    "grant_distribution_active",
    "1 while distribution is active, 0 while paused",
    ["ledger_id"],
)

# ============================================================================
# Event Store & Audit Metrics
# ============================================================================

events_appended_total = Counter(
    "grant_events_appended_total",
    "Total number of events appended to the event store",
    ["event_type"],
)

invariant_violations_total = Counter(
    "grant_invariant_violations_total",
    "Conservation invariant violations detected by audit",
    ["check"],
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_operation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator recording duration and outcome of a ledger operation.

    Args:
        operation: Operation label ("allocate", "claim", ...)
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            status = "success"
            try:
                return func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                operation_duration_seconds.labels(operation=operation).observe(
                    time.perf_counter() - start
                )
                operations_total.labels(operation=operation, status=status).inc()

        return wrapper

    return decorator


def update_ledger_gauges(ledger_id: str, locked_balance: int, active: bool) -> None:
    """Publish the current locked balance and distribution flag."""
    locked_balance_gauge.labels(ledger_id=ledger_id).set(locked_balance)
    distribution_active_gauge.labels(ledger_id=ledger_id).set(1 if active else 0)


def start_metrics_server(port: int = 9090) -> None:
    """Start the Prometheus metrics HTTP server on the given port."""
    start_http_server(port)
