"""Decorators for tracing book lifecycle operations."""

import functools
from collections.abc import Callable
from datetime import datetime

from . import logfire


def trace_operation(operation_name: str):
    """
    Trace a synchronous route or repository call.

    Keyword arguments holding plain values (ids, flags) become span
    attributes; request bodies and sessions are skipped.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with logfire.span(
                f"operation.{operation_name}",
                operation=operation_name,
                operation_category=_categorize_operation(operation_name),
            ) as span:
                start_time = datetime.now()
                _add_attributes(span, "input", kwargs)

                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    span.set_attribute("operation.success", False)
                    span.set_attribute("operation.error", str(e))
                    span.set_attribute("operation.error_type", type(e).__name__)
                    raise

                span.set_attribute("operation.success", True)
                span.set_attribute(
                    "operation.duration_ms", (datetime.now() - start_time).total_seconds() * 1000
                )
                return result

        return wrapper

    return decorator


def _categorize_operation(operation_name: str) -> str:
    if "checkout" in operation_name or "return" in operation_name:
        return "circulation"
    if "review" in operation_name:
        return "reviews"
    if "search" in operation_name or "list" in operation_name:
        return "discovery"
    return "general"


def _add_attributes(span, prefix: str, data: dict):
    """Add scalar keyword arguments as span attributes."""
    for key, value in data.items():
        if isinstance(value, str | int | float | bool):
            span.set_attribute(f"{prefix}.{key}", value)
