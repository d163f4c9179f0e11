"""Prometheus metrics instrumentation."""
from __future__ import annotations

from prometheus_client import REGISTRY, Counter, write_to_textfile

remote_requests = Counter(
    "spechub_remote_requests_total",
    "Spec Hub API calls by method and response status",
    ["method", "status"],
)
poll_attempts = Counter(
    "spechub_poll_attempts_total",
    "Existence poll attempts by outcome",
    ["outcome"],  # outcome=found|miss|error|exhausted
)
stage_runs = Counter(
    "spechub_stage_runs_total",
    "Orchestrator stage executions",
    ["stage", "status"],  # status=success|error
)


def write_metrics(path: str) -> None:
    """Dump the default registry for the node-exporter textfile collector."""
    write_to_textfile(path, REGISTRY)
