"""Metrics service for tracking personalization performance.

Singleton service to track cache effectiveness, feed regenerations and
per-operation latency.
"""

import threading
from typing import Dict


class MetricsService:
    """Singleton service for tracking engine metrics.

    Thread-safe counters and latency tracking keyed by operation name.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls):
        """Create singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(MetricsService, cls).__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize metrics counters."""
        if self._initialized:
            return

        self._lock = threading.Lock()
        self._cache_hits = 0
        self._cache_misses = 0
        self._cache_errors = 0
        self._feed_regenerations = 0
        self._latency: Dict[str, Dict[str, float]] = {}
        self._initialized = True

    def record_cache_hit(self) -> None:
        with self._lock:
            self._cache_hits += 1

    def record_cache_miss(self) -> None:
        with self._lock:
            self._cache_misses += 1

    def record_cache_error(self) -> None:
        with self._lock:
            self._cache_errors += 1

    def record_feed_regeneration(self) -> None:
        with self._lock:
            self._feed_regenerations += 1

    def record_latency(self, operation: str, latency_ms: float) -> None:
        """Record one call of an operation with its latency.

        Args:
            operation: Operation name, e.g. ``"feed.next_page"``
            latency_ms: Latency in milliseconds
        """
        with self._lock:
            stats = self._latency.setdefault(
                operation,
                {"count": 0, "total_ms": 0.0, "min_ms": float("inf"), "max_ms": 0.0},
            )
            stats["count"] += 1
            stats["total_ms"] += latency_ms

            if latency_ms < stats["min_ms"]:
                stats["min_ms"] = latency_ms

            if latency_ms > stats["max_ms"]:
                stats["max_ms"] = latency_ms

    def get_metrics(self) -> Dict:
        """Get current metrics.

        Returns:
            Dictionary with metrics including:
            - cache_hits / cache_misses / cache_errors: cache counters
            - cache_hit_ratio: hits over lookups
            - feed_regenerations: number of feed queue refills
            - operations: per-operation count and average/min/max latency
        """
        with self._lock:
            lookups = self._cache_hits + self._cache_misses
            operations = {}
            for name, stats in self._latency.items():
                operations[name] = {
                    "count": int(stats["count"]),
                    "average_latency_ms": round(stats["total_ms"] / stats["count"], 2),
                    "min_latency_ms": round(stats["min_ms"], 2),
                    "max_latency_ms": round(stats["max_ms"], 2),
                }

            return {
                "cache_hits": self._cache_hits,
                "cache_misses": self._cache_misses,
                "cache_errors": self._cache_errors,
                "cache_hit_ratio": round(self._cache_hits / lookups, 4) if lookups else 0.0,
                "feed_regenerations": self._feed_regenerations,
                "operations": operations,
            }

    def reset(self) -> None:
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self._cache_hits = 0
            self._cache_misses = 0
            self._cache_errors = 0
            self._feed_regenerations = 0
            self._latency = {}


# Global singleton instance
metrics_service = MetricsService()
