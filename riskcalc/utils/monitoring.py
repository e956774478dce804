"""Prometheus gauges for the running challenge."""
from __future__ import annotations

from prometheus_client import Counter, Gauge, start_http_server

balance_gauge = Gauge("challenge_balance", "Account balance after the last submitted day", ["user"])
drawdown_gauge = Gauge("challenge_drawdown", "Drawdown after the last submitted day", ["user"])
risk_gauge = Gauge("challenge_risk_per_trade", "Risk per trade for the next day", ["user"])
submission_counter = Counter(
    "challenge_submissions_total", "Submitted trading days", ["user", "status"]
)
persistence_failure_counter = Counter(
    "challenge_persistence_failures_total", "Failed history writes", ["user"]
)


def start_metrics_server(port: int = 8000) -> None:
    """Start a Prometheus metrics HTTP server."""
    start_http_server(port)


def monitor_state(user: str, balance: float, drawdown: float, risk: float) -> None:
    """Publish the current challenge numbers for ``user``."""
    balance_gauge.labels(user=user).set(balance)
    drawdown_gauge.labels(user=user).set(drawdown)
    risk_gauge.labels(user=user).set(risk)


def count_submission(user: str, status: str) -> None:
    submission_counter.labels(user=user, status=status).inc()


def count_persistence_failure(user: str) -> None:
    persistence_failure_counter.labels(user=user).inc()


__all__ = [
    "start_metrics_server",
    "monitor_state",
    "count_submission",
    "count_persistence_failure",
]
