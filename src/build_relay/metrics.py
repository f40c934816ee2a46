"""
Prometheus metrics for the build relay.

This module defines the metrics collected while handling Cloud Build events:
event reception, skipped events, trigger lookups, chat dispatches and errors.
"""

from prometheus_client import Counter, Histogram
import time


# Event reception metrics
events_received_total = Counter(
    "build_relay_events_received_total",
    "Total number of build events received",
    ["status"],  # status = QUEUED|WORKING|SUCCESS|FAILURE|etc
)

events_skipped_total = Counter(
    "build_relay_events_skipped_total",
    "Total number of build events that did not produce a notification",
    ["reason"],  # reason = queued|no_trigger
)

event_processing_duration_seconds = Histogram(
    "build_relay_event_processing_duration_seconds",
    "Time spent handling a build event",
)

# Trigger lookup metrics
trigger_lookups_total = Counter(
    "build_relay_trigger_lookups_total",
    "Total number of trigger lookups against the Cloud Build API",
    ["outcome"],  # outcome = found|error
)

trigger_lookup_duration_seconds = Histogram(
    "build_relay_trigger_lookup_duration_seconds",
    "Duration of trigger lookups",
)

# Chat dispatch metrics
notifications_sent_total = Counter(
    "build_relay_notifications_sent_total",
    "Total number of chat messages accepted by the webhook",
)

dispatch_duration_seconds = Histogram(
    "build_relay_dispatch_duration_seconds",
    "Duration of chat webhook posts",
)

# Application-level metrics
errors_total = Counter(
    "build_relay_errors_total",
    "Total number of errors",
    ["stage", "error_type"],  # stage = decode|lookup|dispatch|pipeline
)


class MetricsContext:
    """Context manager for timing operations and handling errors with metrics."""

    def __init__(self, histogram, error_counter, error_labels=None):
        self.histogram = histogram
        self.error_counter = error_counter
        self.error_labels = error_labels or []
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            duration = time.time() - self.start_time
            self.histogram.observe(duration)

        if exc_type is not None:
            error_type = exc_type.__name__
            self.error_counter.labels(*self.error_labels, error_type).inc()

        return False  # Don't suppress exceptions


def track_event_processing():
    """Context manager for tracking whole-event handling metrics."""
    return MetricsContext(
        event_processing_duration_seconds,
        errors_total,
        error_labels=["pipeline"],
    )


def track_trigger_lookup():
    """Context manager for tracking trigger lookup metrics."""
    return MetricsContext(
        trigger_lookup_duration_seconds,
        errors_total,
        error_labels=["lookup"],
    )


def track_dispatch():
    """Context manager for tracking chat webhook metrics."""
    return MetricsContext(
        dispatch_duration_seconds,
        errors_total,
        error_labels=["dispatch"],
    )


# Build.Status values published by Cloud Build
BUILD_STATUSES = frozenset(
    {
        "STATUS_UNKNOWN",
        "PENDING",
        "QUEUED",
        "WORKING",
        "SUCCESS",
        "FAILURE",
        "INTERNAL_ERROR",
        "TIMEOUT",
        "CANCELLED",
        "EXPIRED",
    }
)


def status_label(status: str | None) -> str:
    """Label value for a build status, bounded to the known statuses."""
    if status is None:
        return "UNKNOWN"
    return status if status in BUILD_STATUSES else "OTHER"
