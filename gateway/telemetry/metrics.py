# gateway/telemetry/metrics.py
from __future__ import annotations

from prometheus_client import Counter

ADMISSION_DECISIONS = Counter(
    "gateway_admission_decisions_total",
    "Admission gate decisions by strategy and outcome",
    labelnames=("strategy", "outcome"),
)

HTTP_RESPONSES = Counter(
    "gateway_http_responses_total",
    "HTTP responses by method and status code",
    labelnames=("method", "status"),
)


def record_admission(strategy: str, outcome: str) -> None:
    ADMISSION_DECISIONS.labels(strategy=strategy, outcome=outcome).inc()


def record_response(method: str, status: int) -> None:
    HTTP_RESPONSES.labels(method=method, status=str(status)).inc()
