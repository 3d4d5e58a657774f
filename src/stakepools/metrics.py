"""
stakepools/metrics.py

Prometheus metrics collection for the staking engine.

Exposes pool state (total staked, accumulator, rate) as gauges and
operation/rejection counts as counters, in the Prometheus text format.
"""

import time
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Dict, Any

from .events import EventType, StakingEvent

if TYPE_CHECKING:
    from .engine import StakingEngine
    from .errors import StakingError

logger = logging.getLogger("stakepools.metrics")


class MetricsCollector:
    """
    Prometheus metrics collector for the staking engine.

    Subscribes to the engine's event log and rejection hook on creation.

    Usage:
        from stakepools.metrics import MetricsCollector

        metrics = MetricsCollector(engine)
        engine.stake("alice", 0, 1000)

        prometheus_output = metrics.collect()
    """

    # Metric definitions
    METRICS = {
        "stakepools_pools": {
            "type": "gauge",
            "help": "Number of configured pools",
        },
        "stakepools_paused": {
            "type": "gauge",
            "help": "Whether staking is paused (1=yes, 0=no)",
        },
        "stakepools_pool_total_staked": {
            "type": "gauge",
            "help": "Principal staked in the pool",
        },
        "stakepools_pool_acc_reward_per_share": {
            "type": "gauge",
            "help": "Scaled accumulated reward per staked unit",
        },
        "stakepools_pool_reward_rate": {
            "type": "gauge",
            "help": "Reward units emitted per second",
        },
        "stakepools_operations_total": {
            "type": "counter",
            "help": "Completed operations by event type",
        },
        "stakepools_rejections_total": {
            "type": "counter",
            "help": "Rejected operations by error code",
        },
        "stakepools_uptime_seconds": {
            "type": "counter",
            "help": "Collector uptime in seconds",
        },
    }

    def __init__(self, engine: "StakingEngine"):
        """
        Initialize metrics collector.

        Args:
            engine: StakingEngine to collect metrics from
        """
        self.engine = engine
        self._start_time = time.time()

        # Counters (persist across collections)
        self._operations: Dict[str, int] = defaultdict(int)
        self._rejections: Dict[str, int] = defaultdict(int)

        engine.events.subscribe(self.record_event)
        engine.on_rejection(self.record_rejection)

    def record_event(self, event: StakingEvent) -> None:
        """Count a completed operation."""
        self._operations[event.event_type.value] += 1

    def record_rejection(self, operation: str, error: "StakingError") -> None:
        """Count a rejected operation."""
        self._rejections[error.code] += 1

    def collect(self) -> str:
        """
        Collect all metrics and return in Prometheus format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines = []

        def add_header(name: str):
            metric_def = self.METRICS.get(name, {})
            lines.append(f"# HELP {name} {metric_def.get('help', '')}")
            lines.append(f"# TYPE {name} {metric_def.get('type', 'gauge')}")

        def add_sample(name: str, value: Any, labels: Dict[str, str] = None):
            if labels:
                label_str = ",".join(f'{k}="{v}"' for k, v in labels.items())
                lines.append(f"{name}{{{label_str}}} {value}")
            else:
                lines.append(f"{name} {value}")

        try:
            add_header("stakepools_pools")
            add_sample("stakepools_pools", self.engine.pool_count())

            add_header("stakepools_paused")
            add_sample("stakepools_paused", 1 if self.engine.paused else 0)

            pools = list(self.engine.registry)
            for name, attr in (
                ("stakepools_pool_total_staked", lambda p: p.total_staked),
                ("stakepools_pool_acc_reward_per_share", lambda p: p.acc_reward_per_share.raw),
                ("stakepools_pool_reward_rate", lambda p: p.reward_rate_per_second),
            ):
                add_header(name)
                for pool in pools:
                    add_sample(name, attr(pool), {"pool_id": str(pool.pool_id)})

            add_header("stakepools_operations_total")
            for event_type in EventType:
                add_sample(
                    "stakepools_operations_total",
                    self._operations.get(event_type.value, 0),
                    {"operation": event_type.value},
                )

            add_header("stakepools_rejections_total")
            for code, count in sorted(self._rejections.items()):
                add_sample("stakepools_rejections_total", count, {"error": code})

            add_header("stakepools_uptime_seconds")
            add_sample("stakepools_uptime_seconds", time.time() - self._start_time)

        except Exception as e:
            logger.error(f"Error collecting metrics: {e}")
            lines.append(f"# Error collecting metrics: {e}")

        return "\n".join(lines) + "\n"

    def get_stats(self) -> Dict[str, Any]:
        """
        Get metrics as a dictionary (for JSON API).

        Returns:
            Dictionary of metric values
        """
        return {
            "pools": self.engine.pool_count(),
            "paused": self.engine.paused,
            "operations": dict(self._operations),
            "rejections": dict(self._rejections),
            "uptime_seconds": time.time() - self._start_time,
        }

    def reset_counters(self) -> None:
        """Reset all counters (useful for testing)."""
        self._operations.clear()
        self._rejections.clear()
