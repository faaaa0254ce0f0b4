"""Custom metrics for the Book Club API."""

import logfire

# HTTP metrics
http_request_counter = logfire.metric_counter(
    "http.requests.total", description="Total HTTP requests by method and status"
)

http_request_duration = logfire.metric_histogram(
    "http.request.duration_ms", unit="milliseconds", description="HTTP request duration"
)

# Book club business metrics
book_lifecycle_events = logfire.metric_counter(
    "book_club.books.lifecycle", description="Book lifecycle events (checkout/return/review)"
)


def record_lifecycle_event(event_type: str, genre: str) -> None:
    """Record a checkout, return or review."""
    book_lifecycle_events.add(1, {"event_type": event_type, "genre": genre})
