"""
Prometheus metrics for the VRF coordinator and fulfillment worker.

Instruments:
  • requests_total        — randomness requests per outcome
  • fulfillments_total    — fulfillment submissions per outcome
  • payments_total        — cumulative value paid to fulfillers
  • callback_failures_total — consumer callbacks that raised or ran out of gas
  • solve_seconds         — wall-clock time of puzzle searches
  • solve_iterations      — signatures tried per successful search

Label cardinality is intentionally low: only a small `outcome` vocabulary.

Usage
-----
    from native_vrf.metrics import METRICS

    METRICS.record_request("accepted")
    with METRICS.solve_timer():
        sol = solver.solve(seed)
    METRICS.observe_solve_iterations(sol.iterations)
"""

from __future__ import annotations

from contextlib import contextmanager
from time import perf_counter
from typing import Iterable

from prometheus_client import REGISTRY, Counter, Histogram

from .errors import VRFError

_REQUEST_OUTCOMES = (
    "accepted",
    "not_registered",
    "insufficient_balance",
    "invalid",
)

_FULFILL_OUTCOMES = (
    "accepted",
    "out_of_order",
    "already_fulfilled",
    "not_found",
    "invalid_proof",
    "difficulty_not_met",
    "payment_failed",
    "invalid",
)

_OUTCOME_BY_CODE = {
    "VRF_NOT_REGISTERED": "not_registered",
    "VRF_INSUFFICIENT_BALANCE": "insufficient_balance",
    "VRF_OUT_OF_ORDER": "out_of_order",
    "VRF_ALREADY_FULFILLED": "already_fulfilled",
    "VRF_REQUEST_NOT_FOUND": "not_found",
    "VRF_INVALID_PROOF": "invalid_proof",
    "VRF_DIFFICULTY_NOT_MET": "difficulty_not_met",
    "VRF_PAYMENT_FAILED": "payment_failed",
}

_SOLVE_SECONDS_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0)
_SOLVE_ITER_BUCKETS = (1, 4, 16, 64, 256, 1024, 4096, 16384, 65536, 262144, 1048576)


def outcome_for(err: VRFError) -> str:
    return _OUTCOME_BY_CODE.get(err.code, "invalid")


class Metrics:
    """
    Container for all native_vrf Prometheus instruments.

    Args:
        namespace: Prometheus metric namespace (prefix).
        subsystem: Prometheus metric subsystem.
        registry:  Prometheus registry to register the metrics with.
    """

    def __init__(
        self,
        *,
        namespace: str = "native_vrf",
        subsystem: str = "coordinator",
        registry=REGISTRY,
        solve_seconds_buckets: Iterable[float] = _SOLVE_SECONDS_BUCKETS,
        solve_iteration_buckets: Iterable[float] = _SOLVE_ITER_BUCKETS,
    ) -> None:
        self.requests_total = Counter(
            "requests_total",
            "Randomness requests processed, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.fulfillments_total = Counter(
            "fulfillments_total",
            "Fulfillment submissions processed, labeled by outcome.",
            labelnames=("outcome",),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.payments_total = Counter(
            "payments_total",
            "Cumulative value paid to fulfillers (base units).",
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.callback_failures_total = Counter(
            "callback_failures_total",
            "Consumer callbacks that raised or exhausted their gas budget.",
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.solve_seconds = Histogram(
            "solve_seconds",
            "Wall-clock time spent searching for a puzzle solution.",
            buckets=tuple(solve_seconds_buckets),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )
        self.solve_iterations = Histogram(
            "solve_iterations",
            "Signatures tried per successful puzzle search.",
            buckets=tuple(solve_iteration_buckets),
            namespace=namespace,
            subsystem=subsystem,
            registry=registry,
        )

    # ----- Recording helpers -------------------------------------------------

    def record_request(self, outcome: str) -> None:
        if outcome not in _REQUEST_OUTCOMES:
            outcome = "invalid"
        self.requests_total.labels(outcome=outcome).inc()

    def record_fulfillment(self, outcome: str) -> None:
        if outcome not in _FULFILL_OUTCOMES:
            outcome = "invalid"
        self.fulfillments_total.labels(outcome=outcome).inc()

    def record_payment(self, amount: int) -> None:
        self.payments_total.inc(max(0, int(amount)))

    def record_callback_failure(self) -> None:
        self.callback_failures_total.inc()

    def observe_solve_iterations(self, iterations: int) -> None:
        self.solve_iterations.observe(float(iterations))

    @contextmanager
    def solve_timer(self):
        start = perf_counter()
        try:
            yield
        finally:
            self.solve_seconds.observe(perf_counter() - start)


# Singleton used by most components
METRICS = Metrics()

__all__ = ["Metrics", "METRICS", "outcome_for"]
