"""Prometheus metrics definitions for s3append.

All metrics use the ``s3append_`` prefix for namespace isolation. They are
registered in the global prometheus_client registry by ``init_metrics()``;
until then the module-level references stay ``None`` and the ``observe_*``
helpers do nothing, so library users that do not scrape metrics pay
nothing for them.
"""

from __future__ import annotations

from prometheus_client import REGISTRY, Counter, push_to_gateway

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# Append counter  (labels: strategy, outcome)
# ---------------------------------------------------------------------------
appends_total: Counter | None = None

# ---------------------------------------------------------------------------
# Multipart counters
# ---------------------------------------------------------------------------
parts_total: Counter | None = None
aborts_total: Counter | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
appended_bytes_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    Safe to call more than once; only the first call registers collectors.
    """
    global _initialized
    global appends_total, parts_total, aborts_total, appended_bytes_total

    if _initialized:
        return

    appends_total = Counter(
        "s3append_appends_total",
        "Total append operations by strategy and outcome",
        ["strategy", "outcome"],
    )

    parts_total = Counter(
        "s3append_parts_total",
        "Total multipart parts written, by kind (copy or upload)",
        ["kind"],
    )

    aborts_total = Counter(
        "s3append_aborts_total",
        "Total multipart upload aborts by outcome",
        ["outcome"],
    )

    appended_bytes_total = Counter(
        "s3append_appended_bytes_total",
        "Total payload bytes appended to objects",
    )

    _initialized = True


def observe_append(strategy: str, outcome: str, appended_bytes: int = 0) -> None:
    if appends_total is not None:
        appends_total.labels(strategy=strategy, outcome=outcome).inc()
    if appended_bytes and appended_bytes_total is not None:
        appended_bytes_total.inc(appended_bytes)


def observe_part(kind: str) -> None:
    if parts_total is not None:
        parts_total.labels(kind=kind).inc()


def observe_abort(outcome: str) -> None:
    if aborts_total is not None:
        aborts_total.labels(outcome=outcome).inc()


def push_metrics(gateway: str, job: str = "s3append") -> None:
    """Push the current registry to a Prometheus Pushgateway.

    One-shot processes such as the CLI exit before any scrape, so their
    counters are pushed instead.
    """
    push_to_gateway(gateway, job=job, registry=REGISTRY)
