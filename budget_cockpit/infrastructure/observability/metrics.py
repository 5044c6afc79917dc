"""Prometheus metrics for risk evaluations, the worker channel and HTTP latency"""

from typing import Any, Dict, Iterable

from prometheus_client import Counter, Histogram

# Risk engine metrics
risk_evaluation_counter = Counter(
    "budget_risk_evaluations_total",
    "Risk findings evaluations",
    ["outcome"],  # ok | error
)

risk_finding_counter = Counter(
    "budget_risk_findings_total",
    "Risk findings reported by severity",
    ["severity"],  # high | medium | low
)

projection_counter = Counter(
    "budget_projection_requests_total",
    "Net worth projections computed",
    ["outcome"],
)

# Worker channel metrics
risk_worker_latency_histogram = Histogram(
    "risk_worker_latency_seconds",
    "Time from worker submission to reply",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

risk_worker_stale_counter = Counter(
    "risk_worker_stale_responses_total",
    "Worker replies superseded by a newer request on the same channel",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_risk_evaluation(findings: Iterable[Dict[str, Any]], error: Dict[str, Any] | None) -> None:
    """Count one evaluation and its findings by severity"""
    if error is not None:
        risk_evaluation_counter.labels(outcome="error").inc()
        return

    risk_evaluation_counter.labels(outcome="ok").inc()
    for finding in findings:
        risk_finding_counter.labels(severity=finding["severity"]).inc()
