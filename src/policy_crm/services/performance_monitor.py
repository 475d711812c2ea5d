# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Timing decorator and counters for service operations."""

import asyncio
import time
from collections.abc import Callable
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from beartype import beartype

from ..core.logging_utils import get_logger

P = ParamSpec("P")
T = TypeVar("T")

logger = get_logger(__name__)


@beartype
def performance_monitor(
    operation_name: str,
    max_duration_ms: int = 2000,
    log_slow_operations: bool = True,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator to time service operations.

    Successful calls are logged at DEBUG, calls slower than
    ``max_duration_ms`` at WARNING and raised exceptions at ERROR (the
    exception is re-raised). Every call is counted in
    :data:`performance_tracker`.

    Args:
        operation_name: Name of the operation for monitoring
        max_duration_ms: Slow-operation threshold in milliseconds
        log_slow_operations: Whether to log slow operations
    """

    def _record(duration_ms: float, error: Exception | None) -> None:
        performance_tracker.track_operation(operation_name, duration_ms, error is None)
        if error is not None:
            logger.error(
                "%s failed after %.2fms: %s", operation_name, duration_ms, error
            )
        elif log_slow_operations and duration_ms > max_duration_ms:
            logger.warning(
                "Slow operation %s: %.2fms > %dms threshold",
                operation_name,
                duration_ms,
                max_duration_ms,
            )
        else:
            logger.debug("%s completed in %.2fms", operation_name, duration_ms)

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)  # type: ignore[misc]
            except Exception as e:
                _record((time.perf_counter() - start_time) * 1000, e)
                raise
            _record((time.perf_counter() - start_time) * 1000, None)
            return result  # type: ignore[no-any-return]

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _record((time.perf_counter() - start_time) * 1000, e)
                raise
            _record((time.perf_counter() - start_time) * 1000, None)
            return result

        if asyncio.iscoroutinefunction(func):
            return async_wrapper  # type: ignore[return-value]
        return sync_wrapper

    return decorator


class PerformanceTracker:
    """Per-operation call statistics."""

    def __init__(self) -> None:
        self._operation_stats: dict[str, dict[str, Any]] = {}

    @beartype
    def track_operation(
        self, operation_name: str, duration_ms: float, success: bool
    ) -> None:
        """Track an operation's performance."""
        if operation_name not in self._operation_stats:
            self._operation_stats[operation_name] = {
                "count": 0,
                "total_duration_ms": 0.0,
                "success_count": 0,
                "failure_count": 0,
                "avg_duration_ms": 0.0,
                "max_duration_ms": 0.0,
            }

        stats = self._operation_stats[operation_name]
        stats["count"] += 1
        stats["total_duration_ms"] += duration_ms
        if success:
            stats["success_count"] += 1
        else:
            stats["failure_count"] += 1
        stats["avg_duration_ms"] = stats["total_duration_ms"] / stats["count"]
        stats["max_duration_ms"] = max(stats["max_duration_ms"], duration_ms)

    @beartype
    def get_operation_stats(self, operation_name: str) -> dict[str, Any] | None:
        """Get performance stats for an operation."""
        return self._operation_stats.get(operation_name)

    @beartype
    def get_all_stats(self) -> dict[str, dict[str, Any]]:
        """Get all operation statistics."""
        return {name: dict(stats) for name, stats in self._operation_stats.items()}

    @beartype
    def reset_stats(self) -> None:
        """Reset all performance statistics."""
        self._operation_stats.clear()


performance_tracker = PerformanceTracker()
