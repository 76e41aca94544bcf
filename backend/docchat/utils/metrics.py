"""Prometheus metrics for ingestion, retrieval and external model calls."""

from prometheus_client import Counter, Histogram

# External model call metrics
external_call_latency_ms = Histogram(
    "external_call_latency_ms",
    "External model call latency in milliseconds",
    ["service", "outcome"],
    buckets=[50, 100, 250, 500, 1000, 2000, 4000, 8000, 16000, 32000],
)

external_call_errors_total = Counter(
    "external_call_errors_total",
    "Total failed external model calls",
    ["service", "reason"],
)

# Pipeline metrics
ingestions_total = Counter(
    "ingestions_total",
    "Document ingestions by outcome",
    ["media_type", "outcome"],
)

chunks_stored_total = Counter(
    "chunks_stored_total",
    "Total chunks embedded and stored",
)

retrieval_outcomes_total = Counter(
    "retrieval_outcomes_total",
    "Chat retrieval outcomes (matched, no_match, error)",
    ["outcome"],
)

chat_turns_total = Counter(
    "chat_turns_total",
    "Chat turns by outcome",
    ["outcome"],
)


class PrometheusCallMetrics:
    """Prometheus-based external call metrics implementation."""

    def record_latency(self, service: str, outcome: str, latency_ms: float) -> None:
        """Record external call latency."""
        external_call_latency_ms.labels(service=service, outcome=outcome).observe(latency_ms)

    def inc_error(self, service: str, reason: str) -> None:
        """Increment error counter."""
        external_call_errors_total.labels(service=service, reason=reason).inc()
