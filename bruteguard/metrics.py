"""Prometheus-style metrics: in-memory counters of throttle decisions."""
from collections import defaultdict
import time

# outcome ("allowed", "denied", "store_error", "reset") -> count
_decision_counts: dict[str, int] = defaultdict(int)
_start_time = time.monotonic()


def record_decision(outcome: str) -> None:
    _decision_counts[outcome] += 1


def get_decision_counts() -> dict[str, int]:
    return dict(_decision_counts)


def get_uptime_seconds() -> float:
    return time.monotonic() - _start_time


def clear() -> None:
    _decision_counts.clear()


def format_prometheus() -> str:
    """Render metrics in Prometheus text exposition format."""
    lines = [
        "# HELP bruteguard_decisions_total Throttle decisions by outcome.",
        "# TYPE bruteguard_decisions_total counter",
    ]
    for outcome, count in sorted(get_decision_counts().items()):
        lines.append(f'bruteguard_decisions_total{{outcome="{outcome}"}} {count}')
    lines.append("")
    lines.extend([
        "# HELP process_uptime_seconds Process uptime in seconds.",
        "# TYPE process_uptime_seconds gauge",
        f"process_uptime_seconds {get_uptime_seconds():.2f}",
    ])
    return "\n".join(lines) + "\n"
