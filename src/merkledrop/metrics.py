"""
merkledrop/metrics.py

Prometheus metrics collection for merkledrop.

Provides request outcome counters plus gauges read from the contract's
global state and active round.
"""

import time
import logging
from collections import defaultdict
from typing import TYPE_CHECKING, Dict, List, Tuple, Any

from .errors import AirdropError

if TYPE_CHECKING:
    from .contract import AirdropContract

logger = logging.getLogger("merkledrop.metrics")


class MetricsCollector:
    """
    Prometheus metrics collector for merkledrop.

    Usage:
        from merkledrop.contract import AirdropContract
        from merkledrop.metrics import MetricsCollector

        contract = AirdropContract(backend)
        metrics = MetricsCollector(contract)
        contract.metrics = metrics

        prometheus_output = metrics.collect()
    """

    # Metric definitions
    METRICS = {
        "merkledrop_requests_total": {
            "type": "counter",
            "help": "Requests by action and result (ok or error code)",
        },
        "merkledrop_claims_total": {
            "type": "counter",
            "help": "Successful claims",
        },
        "merkledrop_claimed_amount_total": {
            "type": "counter",
            "help": "Reward token units paid out across all rounds",
        },
        "merkledrop_funding_received_total": {
            "type": "counter",
            "help": "Reward token units received from the funding source",
        },
        "merkledrop_rounds_reset_total": {
            "type": "counter",
            "help": "Round resets",
        },
        "merkledrop_current_round_id": {
            "type": "gauge",
            "help": "Latest round id (0 = no round yet)",
        },
        "merkledrop_pending_reward": {
            "type": "gauge",
            "help": "Funding waiting for the next reset",
        },
        "merkledrop_round_total_amount": {
            "type": "gauge",
            "help": "Reward available in the active round",
        },
        "merkledrop_round_claimed_amount": {
            "type": "gauge",
            "help": "Reward claimed in the active round",
        },
        "merkledrop_round_total_stake": {
            "type": "gauge",
            "help": "Total snapshot stake of the active round",
        },
        "merkledrop_uptime_seconds": {
            "type": "counter",
            "help": "Collector uptime in seconds",
        },
    }

    def __init__(self, contract: "AirdropContract"):
        """
        Initialize metrics collector.

        Args:
            contract: Contract to read state gauges from
        """
        self.contract = contract
        self._start_time = time.time()

        # Counters (persist across collections)
        self._requests: Dict[Tuple[str, str], int] = defaultdict(int)
        self._claims = 0
        self._claimed_amount = 0
        self._funding_received = 0
        self._resets = 0

    def record_request(self, action: str, result: str) -> None:
        """Record a request outcome."""
        self._requests[(action, result)] += 1

    def record_claim(self, payout: int) -> None:
        """Record a committed claim."""
        self._claims += 1
        self._claimed_amount += payout

    def record_funding(self, amount: int) -> None:
        """Record committed funding."""
        self._funding_received += amount

    def record_reset(self) -> None:
        """Record a committed round reset."""
        self._resets += 1

    def collect(self) -> str:
        """
        Collect all metrics and return in Prometheus format.

        Returns:
            Prometheus-formatted metrics string
        """
        lines: List[str] = []

        def add_header(name: str) -> None:
            metric_def = self.METRICS.get(name, {})
            lines.append(f"# HELP {name} {metric_def.get('help', '')}")
            lines.append(f"# TYPE {name} {metric_def.get('type', 'gauge')}")

        def add_metric(name: str, value: Any, labels: Dict[str, str] = None) -> None:
            add_header(name)
            add_sample(name, value, labels)

        def add_sample(name: str, value: Any, labels: Dict[str, str] = None) -> None:
            if labels:
                label_str = ",".join(f'{k}="{v}"' for k, v in labels.items())
                lines.append(f"{name}{{{label_str}}} {value}")
            else:
                lines.append(f"{name} {value}")

        add_header("merkledrop_requests_total")
        for (action, result), count in sorted(self._requests.items()):
            add_sample("merkledrop_requests_total", count, {"action": action, "result": result})

        add_metric("merkledrop_claims_total", self._claims)
        add_metric("merkledrop_claimed_amount_total", self._claimed_amount)
        add_metric("merkledrop_funding_received_total", self._funding_received)
        add_metric("merkledrop_rounds_reset_total", self._resets)

        try:
            summary = self.contract.state_summary()
        except AirdropError as e:
            logger.debug(f"State gauges unavailable: {e}")
            summary = None

        if summary:
            state = summary["state"]
            active = summary["round"]
            add_metric("merkledrop_current_round_id", state.current_round_id)
            add_metric("merkledrop_pending_reward", state.pending_reward)
            if active is not None:
                add_metric("merkledrop_round_total_amount", active.total_amount)
                add_metric("merkledrop_round_claimed_amount", active.claimed_amount)
                add_metric("merkledrop_round_total_stake", active.total_stake)

        add_metric("merkledrop_uptime_seconds", round(time.time() - self._start_time, 3))

        return "\n".join(lines) + "\n"

    def get_stats(self) -> Dict[str, Any]:
        """Get counters as a dictionary (for JSON API)."""
        return {
            "requests": {f"{a}:{r}": c for (a, r), c in sorted(self._requests.items())},
            "claims": self._claims,
            "claimed_amount": str(self._claimed_amount),
            "funding_received": str(self._funding_received),
            "rounds_reset": self._resets,
            "uptime_seconds": time.time() - self._start_time,
        }

    def reset_counters(self) -> None:
        """Reset all counters (for testing)."""
        self._requests.clear()
        self._claims = 0
        self._claimed_amount = 0
        self._funding_received = 0
        self._resets = 0
