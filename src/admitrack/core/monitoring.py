"""
Logging and monitoring utilities for admitrack.
Provides structured logging, metrics collection, and performance monitoring.
"""

import asyncio
import json
import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

# Attributes copied from ``extra=`` into the JSON log entry when present.
_EXTRA_FIELDS = (
    "request_id",
    "student_id",
    "country",
    "phase_key",
    "service",
    "operation",
    "execution_time_ms",
    "success",
    "error_type",
)


class StructuredFormatter(logging.Formatter):
    """Formatter for structured JSON logging."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        for field in _EXTRA_FIELDS:
            if hasattr(record, field):
                log_entry[field] = getattr(record, field)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(log_level: str = "INFO", structured: bool = True):
    """
    Set up application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: Whether to use structured JSON logging
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    if structured:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger('uvicorn.access').setLevel(logging.WARNING)
    logging.getLogger('httpx').setLevel(logging.WARNING)


@dataclass
class MetricPoint:
    """A single metric data point."""
    name: str
    value: float
    timestamp: datetime
    tags: Dict[str, str]
    metric_type: str  # counter, gauge, timer


@dataclass
class PerformanceMetrics:
    """Performance metrics for one operation call."""
    operation: str
    service: str
    duration_ms: float
    success: bool
    timestamp: datetime
    error_type: Optional[str] = None


class MetricsCollector:
    """
    Metrics collection and aggregation.
    """

    def __init__(self, max_points: int = 10000, max_samples: int = 1000):
        self.max_points = max_points
        self.max_samples = max_samples
        self.metrics: deque = deque(maxlen=max_points)
        self.counters: Dict[str, float] = defaultdict(float)
        self.gauges: Dict[str, float] = {}
        self.timers: Dict[str, List[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def increment_counter(self, name: str, value: float = 1.0, tags: Optional[Dict[str, str]] = None):
        """Increment a counter metric."""
        with self._lock:
            key = self._make_key(name, tags or {})
            self.counters[key] += value
            self._append(name, value, tags, "counter")

    def set_gauge(self, name: str, value: float, tags: Optional[Dict[str, str]] = None):
        """Set a gauge metric value."""
        with self._lock:
            key = self._make_key(name, tags or {})
            self.gauges[key] = value
            self._append(name, value, tags, "gauge")

    def record_timer(self, name: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        """Record a timer value."""
        with self._lock:
            key = self._make_key(name, tags or {})
            self.timers[key].append(duration_ms)

            # Keep only recent samples
            if len(self.timers[key]) > self.max_samples:
                self.timers[key] = self.timers[key][-self.max_samples:]

            self._append(name, duration_ms, tags, "timer")

    def get_counter(self, name: str, tags: Optional[Dict[str, str]] = None) -> float:
        """Get counter value."""
        key = self._make_key(name, tags or {})
        return self.counters.get(key, 0.0)

    def get_gauge(self, name: str, tags: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Get gauge value."""
        key = self._make_key(name, tags or {})
        return self.gauges.get(key)

    def get_timer_stats(self, name: str, tags: Optional[Dict[str, str]] = None) -> Dict[str, float]:
        """Get timer statistics."""
        return self._stats(self.timers.get(self._make_key(name, tags or {}), []))

    def get_all_metrics(self) -> Dict[str, Any]:
        """Get all current metrics."""
        with self._lock:
            return {
                "counters": dict(self.counters),
                "gauges": dict(self.gauges),
                "timers": {key: self._stats(values) for key, values in self.timers.items()},
                "timestamp": datetime.now().isoformat()
            }

    def reset(self):
        """Drop every recorded metric."""
        with self._lock:
            self.metrics.clear()
            self.counters.clear()
            self.gauges.clear()
            self.timers.clear()

    def _append(self, name: str, value: float, tags: Optional[Dict[str, str]], metric_type: str):
        self.metrics.append(MetricPoint(
            name=name,
            value=value,
            timestamp=datetime.now(),
            tags=tags or {},
            metric_type=metric_type
        ))

    @staticmethod
    def _stats(values: List[float]) -> Dict[str, float]:
        if not values:
            return {}

        sorted_values = sorted(values)
        count = len(sorted_values)

        return {
            "count": count,
            "min": sorted_values[0],
            "max": sorted_values[-1],
            "mean": sum(sorted_values) / count,
            "p50": sorted_values[int(count * 0.5)],
            "p90": sorted_values[int(count * 0.9)],
            "p99": sorted_values[int(count * 0.99)]
        }

    def _make_key(self, name: str, tags: Dict[str, str]) -> str:
        """Create a unique key for metric with tags."""
        if not tags:
            return name

        tag_str = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{name}[{tag_str}]"


class PerformanceMonitor:
    """
    Per-operation performance aggregation.
    """

    def __init__(self, metrics_collector: MetricsCollector):
        self.metrics_collector = metrics_collector
        self.performance_data: deque = deque(maxlen=1000)
        self._lock = threading.Lock()

    def record_performance(self, metrics: PerformanceMetrics):
        """Record performance metrics."""
        with self._lock:
            self.performance_data.append(metrics)

        tags = {
            "service": metrics.service,
            "operation": metrics.operation,
            "success": str(metrics.success)
        }

        if metrics.error_type:
            tags["error_type"] = metrics.error_type

        self.metrics_collector.record_timer("operation_duration", metrics.duration_ms, tags)
        self.metrics_collector.increment_counter("operation_count", 1.0, tags)

        if not metrics.success:
            self.metrics_collector.increment_counter("operation_errors", 1.0, tags)

    def get_performance_summary(self, time_window_minutes: int = 60) -> Dict[str, Any]:
        """Get performance summary for the specified time window."""
        cutoff_time = datetime.now() - timedelta(minutes=time_window_minutes)

        with self._lock:
            recent_data = [
                m for m in self.performance_data
                if m.timestamp >= cutoff_time
            ]

        if not recent_data:
            return {"message": "No performance data available"}

        operations: Dict[str, Dict[str, Any]] = defaultdict(lambda: {
            "count": 0,
            "success_count": 0,
            "total_duration_ms": 0.0,
            "max_duration_ms": 0.0
        })

        for metrics in recent_data:
            stats = operations[f"{metrics.service}.{metrics.operation}"]
            stats["count"] += 1
            stats["total_duration_ms"] += metrics.duration_ms
            stats["max_duration_ms"] = max(stats["max_duration_ms"], metrics.duration_ms)
            if metrics.success:
                stats["success_count"] += 1

        summary = {
            name: {
                "count": stats["count"],
                "success_rate": stats["success_count"] / stats["count"],
                "average_duration_ms": stats["total_duration_ms"] / stats["count"],
                "max_duration_ms": stats["max_duration_ms"]
            }
            for name, stats in operations.items()
        }

        return {
            "time_window_minutes": time_window_minutes,
            "total_operations": len(recent_data),
            "operations": summary,
            "timestamp": datetime.now().isoformat()
        }


def monitor_performance(
    service: str,
    operation: str,
    monitor: Optional[PerformanceMonitor] = None
):
    """
    Decorator for monitoring function performance.

    Works on both coroutine functions and plain functions. Timing is recorded
    on the given monitor, or on the module-level ``performance_monitor``.

    Args:
        service: Service name
        operation: Operation name
        monitor: Performance monitor instance
    """
    def decorator(func: Callable) -> Callable:
        def _finish(start_time: float, success: bool, error_type: Optional[str]):
            duration_ms = (time.time() - start_time) * 1000

            (monitor or performance_monitor).record_performance(PerformanceMetrics(
                operation=operation,
                service=service,
                duration_ms=duration_ms,
                success=success,
                timestamp=datetime.now(),
                error_type=error_type
            ))

            logger = logging.getLogger(f"{service}.{operation}")
            extra = {
                'service': service,
                'operation': operation,
                'execution_time_ms': duration_ms,
                'success': success
            }
            if error_type:
                extra['error_type'] = error_type

            if success:
                logger.debug("Operation completed successfully", extra=extra)
            else:
                logger.error("Operation failed", extra=extra)

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            start_time = time.time()
            success = True
            error_type = None
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                success = False
                error_type = type(e).__name__
                raise
            finally:
                _finish(start_time, success, error_type)

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            start_time = time.time()
            success = True
            error_type = None
            try:
                return func(*args, **kwargs)
            except Exception as e:
                success = False
                error_type = type(e).__name__
                raise
            finally:
                _finish(start_time, success, error_type)

        return async_wrapper if asyncio.iscoroutinefunction(func) else sync_wrapper

    return decorator


# Global instances
metrics_collector = MetricsCollector()
performance_monitor = PerformanceMonitor(metrics_collector)


def get_monitoring_status() -> Dict[str, Any]:
    """Get overall monitoring status."""
    return {
        "metrics": metrics_collector.get_all_metrics(),
        "performance": performance_monitor.get_performance_summary(),
        "timestamp": datetime.now().isoformat()
    }
