"""OpenTelemetry tracing for history load/save.

Spans are emitted only when APECRUNCH_OTEL_ENABLED is set; otherwise the
decorated method runs untouched. Span attributes never carry absolute paths:
the history file is identified by a SHA256 of its name.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import os
from collections.abc import Callable
from typing import Any, TypeVar, cast

logger = logging.getLogger(__name__)

APECRUNCH_OTEL_ENABLED_ENV = "APECRUNCH_OTEL_ENABLED"

F = TypeVar("F", bound=Callable[..., Any])


def _get_env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    val = os.environ.get(key, "").strip().lower()
    if val in ("1", "true", "yes"):
        return True
    if val in ("0", "false", "no", ""):
        return default
    return default


def is_tracing_enabled() -> bool:
    return _get_env_bool(APECRUNCH_OTEL_ENABLED_ENV, False)


def traced_history_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace history store operations with OpenTelemetry.

    Args:
        operation: Operation name ("load" or "save").

    Returns:
        Decorated method that emits ``apecrunch.history.<operation>`` spans.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return func(self, *args, **kwargs)

            try:
                from opentelemetry import trace
            except ImportError:
                return func(self, *args, **kwargs)

            tracer = trace.get_tracer("apecrunch.history")
            with tracer.start_as_current_span(f"apecrunch.history.{operation}") as span:
                path = getattr(self, "path", None)
                if path is not None:
                    name_sha256 = hashlib.sha256(str(path.name).encode("utf-8")).hexdigest()
                    span.set_attribute("apecrunch.history_file_sha256", name_sha256)
                try:
                    result = func(self, *args, **kwargs)
                except Exception as e:
                    span.set_attribute("error", True)
                    span.set_attribute("error.type", type(e).__name__)
                    raise
                _add_store_attributes(span, self)
                return result

        return cast(F, wrapper)

    return decorator


def _add_store_attributes(span: Any, store: Any) -> None:
    """Attach session/entry counts and last payload size to the span."""
    try:
        session_count, entry_count = store.counts()
        span.set_attribute("apecrunch.session_count", session_count)
        span.set_attribute("apecrunch.entry_count", entry_count)
        size = getattr(store, "last_payload_size", None)
        if size is not None:
            span.set_attribute("apecrunch.payload_size_bytes", size)
    except Exception as e:
        logger.debug("Failed to add store attributes to span: %s", e)
