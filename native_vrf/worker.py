"""
native_vrf.worker
=================

Polling fulfillment driver. Each round it:

  1. reads `current_request_id` and `latest_fulfill_id`; nothing to do when
     no request is pending
  2. looks at the next request in order (`latest_fulfill_id + 1`); skips it
     if it has no registered consumer or is already fulfilled
  3. solves the puzzle seeded by `random_result(latest_fulfill_id)` in a
     worker thread, with an iteration budget and a wall-clock timeout
  4. submits the solution and logs gas used, gas price, cost, payment and
     profit from the receipt

Every error in a round is logged and the loop continues after `poll_delay_s`;
a single failed round never stops the process. Retrying is the loop itself:
if another fulfiller wins the race, the next round simply moves on.

Typical usage
-------------
    worker = FulfillmentWorker(coordinator, LocalSigner.from_env())
    await worker.run_forever()

or, against a remote coordinator:

    worker = FulfillmentWorker.create_from_env()
    await worker.run_forever()
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Optional, Protocol

from .config import VRFConfig, WorkerConfig
from .crypto.signer import LocalSigner, Signer
from .errors import SolveCancelled
from .metrics import METRICS, Metrics
from .puzzle.solver import PuzzleSolver, Solution
from .types.core import FulfillmentReceipt, RequestConfig

logger = logging.getLogger(__name__)


class CoordinatorView(Protocol):
    """What the worker needs from a coordinator (local or remote)."""

    @property
    def current_request_id(self) -> int: ...

    @property
    def latest_fulfill_id(self) -> int: ...

    @property
    def difficulty(self) -> int: ...

    def request_config(self, request_id: int) -> RequestConfig: ...

    def random_result(self, request_id: int) -> int: ...

    def fulfill_randomness(
        self, caller: str, request_id: int, input_value: int, signature: bytes
    ) -> FulfillmentReceipt: ...


@dataclass(frozen=True)
class RoundResult:
    """
    action: "idle" | "skipped_unregistered" | "skipped_fulfilled" | "fulfilled"
    """

    action: str
    request_id: Optional[int] = None
    receipt: Optional[FulfillmentReceipt] = None


class FulfillmentWorker:
    def __init__(
        self,
        coordinator: CoordinatorView,
        signer: Signer,
        *,
        config: Optional[WorkerConfig] = None,
        metrics: Optional[Metrics] = None,
    ) -> None:
        self.coordinator = coordinator
        self.signer = signer
        self.config = config or WorkerConfig()
        self.config.validate()
        self.metrics = metrics or METRICS
        self._stop = asyncio.Event()
        self.rounds = 0
        self.failures = 0

    @classmethod
    def create_from_env(cls, prefix: str = "NATIVE_VRF_") -> "FulfillmentWorker":
        from .rpc.client import HttpCoordinatorClient

        cfg = VRFConfig.from_env(prefix)
        client = HttpCoordinatorClient(cfg.worker.rpc_url)
        return cls(client, LocalSigner.from_env(), config=cfg.worker)

    def stop(self) -> None:
        self._stop.set()

    # ------------------------------------------------------------------

    async def _read(self, fn, *args):
        return await asyncio.to_thread(fn, *args)

    async def _solve(self, seed: int, difficulty: int) -> Solution:
        solver = PuzzleSolver(
            self.signer,
            difficulty=difficulty,
            max_iterations=self.config.solve_max_iterations,
        )
        cancel = threading.Event()
        with self.metrics.solve_timer():
            try:
                solution = await asyncio.wait_for(
                    asyncio.to_thread(solver.solve, seed, cancel=cancel),
                    timeout=self.config.solve_timeout_s,
                )
            except asyncio.TimeoutError:
                cancel.set()
                raise SolveCancelled(seed=seed, iterations=-1) from None
            except asyncio.CancelledError:
                cancel.set()
                raise
        self.metrics.observe_solve_iterations(solution.iterations)
        return solution

    async def run_once(self) -> RoundResult:
        """One polling round. Errors propagate; `run_forever` catches them."""
        c = self.coordinator
        current = await self._read(lambda: c.current_request_id)
        latest = await self._read(lambda: c.latest_fulfill_id)
        if latest + 1 >= current:
            logger.debug("no pending requests (current=%d latest=%d)", current, latest)
            return RoundResult("idle")

        rid = latest + 1
        config = await self._read(c.request_config, rid)
        if not config.exists:
            logger.info("request %d has no registered consumer; skipping", rid)
            return RoundResult("skipped_unregistered", rid)
        if config.fulfilled:
            logger.info("request %d already fulfilled; skipping", rid)
            return RoundResult("skipped_fulfilled", rid)

        seed = await self._read(c.random_result, latest)
        difficulty = await self._read(lambda: c.difficulty)
        logger.info("solving request %d seed=%s difficulty=%d", rid, hex(seed), difficulty)
        solution = await self._solve(seed, difficulty)

        receipt = await self._read(
            c.fulfill_randomness, self.signer.address, rid, solution.input, solution.signature
        )
        logger.info(
            "fulfilled request %d input=%d iterations=%d gas_used=%d gas_price=%d cost=%d payment=%d profit=%d",
            rid, solution.input, solution.iterations, receipt.gas_measured, receipt.gas_price,
            receipt.cost, receipt.payment, receipt.profit,
        )
        return RoundResult("fulfilled", rid, receipt)

    async def run_forever(self, *, max_rounds: Optional[int] = None) -> None:
        """Poll until `stop()` (or `max_rounds` rounds); never exits on a round error."""
        logger.info(
            "fulfillment worker started fulfiller=%s delay=%.2fs",
            self.signer.address, self.config.poll_delay_s,
        )
        while not self._stop.is_set():
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.failures += 1
                logger.error("fulfillment round failed: %s", e, exc_info=logger.isEnabledFor(logging.DEBUG))
            self.rounds += 1
            if max_rounds is not None and self.rounds >= max_rounds:
                break
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.config.poll_delay_s)
            except asyncio.TimeoutError:
                pass
        logger.info("fulfillment worker stopped after %d rounds (%d failed)", self.rounds, self.failures)


__all__ = ["FulfillmentWorker", "CoordinatorView", "RoundResult"]
