"""
Performance Monitoring for Persona

This module provides:
- Storage operation timing with slow-operation logging
- Provider call timing per data category
- Prometheus metrics for both
- A summary used by the health endpoint

Usage:
    from database.monitoring import query_timer, provider_timer, get_db_metrics

    with query_timer("save_query"):
        repo.create(...)

    with provider_timer("address"):
        payload = await client.post(...)
"""

import logging
import time
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any

from prometheus_client import Histogram, Counter

logger = logging.getLogger(__name__)


# ============================================
# CONFIGURATION
# ============================================

@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    slow_query_threshold_ms: float = 1000.0
    warning_threshold_ms: float = 500.0
    slow_provider_threshold_ms: float = 5000.0
    enable_prometheus: bool = True
    enable_logging: bool = True


_config = MonitoringConfig()


# ============================================
# PROMETHEUS METRICS
# ============================================

storage_op_duration = Histogram(
    'persona_storage_operation_duration_seconds',
    'Storage operation duration in seconds',
    ['operation', 'status'],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)
)

storage_op_total = Counter(
    'persona_storage_operation_total',
    'Total number of storage operations',
    ['operation', 'status']
)

storage_slow_total = Counter(
    'persona_storage_slow_operations_total',
    'Total number of slow storage operations',
    ['operation']
)

provider_call_duration = Histogram(
    'persona_provider_call_duration_seconds',
    'Provider call duration in seconds',
    ['category', 'status'],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)
)

provider_call_total = Counter(
    'persona_provider_call_total',
    'Total number of provider calls',
    ['category', 'status']
)


# ============================================
# STATS TRACKING
# ============================================

@dataclass
class QueryStats:
    """Statistics for a single operation."""
    operation: str
    count: int = 0
    total_time_ms: float = 0.0
    min_time_ms: float = float('inf')
    max_time_ms: float = 0.0
    errors: int = 0
    slow: int = 0
    last_executed: Optional[datetime] = None

    @property
    def avg_time_ms(self) -> float:
        return self.total_time_ms / self.count if self.count > 0 else 0.0

    def record(self, duration_ms: float, error: bool = False, slow: bool = False) -> None:
        self.count += 1
        self.total_time_ms += duration_ms
        self.min_time_ms = min(self.min_time_ms, duration_ms)
        self.max_time_ms = max(self.max_time_ms, duration_ms)
        self.last_executed = datetime.now()
        if error:
            self.errors += 1
        if slow:
            self.slow += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'operation': self.operation,
            'count': self.count,
            'total_time_ms': round(self.total_time_ms, 2),
            'avg_time_ms': round(self.avg_time_ms, 2),
            'min_time_ms': round(self.min_time_ms, 2) if self.min_time_ms != float('inf') else 0.0,
            'max_time_ms': round(self.max_time_ms, 2),
            'errors': self.errors,
            'slow': self.slow,
            'last_executed': self.last_executed.isoformat() if self.last_executed else None
        }


class StatsCollector:
    """Thread-safe collector for operation statistics."""

    def __init__(self):
        self._stats: Dict[str, QueryStats] = {}
        self._lock = threading.Lock()
        self._start_time = datetime.now()

    def record(self, operation: str, duration_ms: float, error: bool = False, slow: bool = False) -> None:
        with self._lock:
            if operation not in self._stats:
                self._stats[operation] = QueryStats(operation=operation)
            self._stats[operation].record(duration_ms, error, slow)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'uptime_seconds': (datetime.now() - self._start_time).total_seconds(),
                'operations': {
                    op: stats.to_dict() for op, stats in self._stats.items()
                }
            }

    def reset(self) -> None:
        with self._lock:
            self._stats.clear()
            self._start_time = datetime.now()


_storage_stats = StatsCollector()
_provider_stats = StatsCollector()


def get_db_metrics() -> Dict[str, Any]:
    """
    Get current storage and provider metrics.

    Returns:
        Dictionary with per-operation and per-category statistics
    """
    return {
        'storage': _storage_stats.get_stats(),
        'providers': _provider_stats.get_stats(),
    }


def reset_metrics() -> None:
    """Reset all collected metrics."""
    _storage_stats.reset()
    _provider_stats.reset()


# ============================================
# TIMERS
# ============================================

@contextmanager
def query_timer(operation: str):
    """
    Context manager to time and monitor storage operations.

    Args:
        operation: Name of the operation (e.g., 'save_query', 'get_history')
    """
    start_time = time.perf_counter()
    error_occurred = False

    try:
        yield
    except Exception:
        error_occurred = True
        raise
    finally:
        duration = time.perf_counter() - start_time
        duration_ms = duration * 1000
        is_slow = duration_ms > _config.slow_query_threshold_ms
        is_warning = duration_ms > _config.warning_threshold_ms

        _storage_stats.record(operation, duration_ms, error=error_occurred, slow=is_slow)

        if _config.enable_prometheus:
            status = "error" if error_occurred else "success"
            storage_op_duration.labels(operation=operation, status=status).observe(duration)
            storage_op_total.labels(operation=operation, status=status).inc()
            if is_slow:
                storage_slow_total.labels(operation=operation).inc()

        if _config.enable_logging:
            if is_slow:
                logger.warning(
                    "SLOW STORAGE OPERATION: %s took %.2fms (threshold: %sms)",
                    operation, duration_ms, _config.slow_query_threshold_ms
                )
            elif is_warning and not error_occurred:
                logger.info("Storage operation %s took %.2fms", operation, duration_ms)


@contextmanager
def provider_timer(category: str):
    """
    Context manager to time one provider call for a data category.

    Works inside coroutines: the timed block may contain awaits.
    """
    start_time = time.perf_counter()
    error_occurred = False

    try:
        yield
    except Exception:
        error_occurred = True
        raise
    finally:
        duration = time.perf_counter() - start_time
        duration_ms = duration * 1000
        is_slow = duration_ms > _config.slow_provider_threshold_ms

        _provider_stats.record(category, duration_ms, error=error_occurred, slow=is_slow)

        if _config.enable_prometheus:
            status = "error" if error_occurred else "success"
            provider_call_duration.labels(category=category, status=status).observe(duration)
            provider_call_total.labels(category=category, status=status).inc()

        if is_slow and _config.enable_logging:
            logger.warning("SLOW PROVIDER CALL: %s took %.2fms", category, duration_ms)


