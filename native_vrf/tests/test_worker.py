from __future__ import annotations

import pytest

from native_vrf.config import WorkerConfig
from native_vrf.errors import SolveCancelled
from native_vrf.types.core import RequestConfig
from native_vrf.worker import FulfillmentWorker

from native_vrf.tests.conftest import ALICE, GENESIS


class StubView:
    """Coordinator double with scripted counters and configs."""

    def __init__(self, *, current=1, latest=0, config=None, difficulty=4, fail_reads=0):
        self._current = current
        self.latest_fulfill_id = latest
        self.difficulty = difficulty
        self.config = config
        self.fail_reads = fail_reads
        self.submitted = []

    @property
    def current_request_id(self):
        if self.fail_reads > 0:
            self.fail_reads -= 1
            raise ConnectionError("coordinator unreachable")
        return self._current

    def request_config(self, request_id):
        return self.config or RequestConfig.absent(request_id)

    def random_result(self, request_id):
        return GENESIS

    def fulfill_randomness(self, caller, request_id, input_value, signature):
        self.submitted.append(request_id)
        raise AssertionError("should not submit")


def _fast() -> WorkerConfig:
    return WorkerConfig(poll_delay_s=0.0, solve_max_iterations=10_000, solve_timeout_s=30.0)


@pytest.mark.asyncio
async def test_idle_when_nothing_pending(fulfiller):
    view = StubView(current=3, latest=2)
    result = await FulfillmentWorker(view, fulfiller, config=_fast()).run_once()
    assert result.action == "idle"
    assert view.submitted == []


@pytest.mark.asyncio
async def test_skips_request_without_consumer(fulfiller):
    view = StubView(current=2, latest=0)
    result = await FulfillmentWorker(view, fulfiller, config=_fast()).run_once()
    assert (result.action, result.request_id) == ("skipped_unregistered", 1)
    assert view.submitted == []


@pytest.mark.asyncio
async def test_skips_fulfilled_request(fulfiller):
    config = RequestConfig(request_id=1, consumer=ALICE, callback_gas_budget=1, fulfilled=True)
    view = StubView(current=2, latest=0, config=config)
    result = await FulfillmentWorker(view, fulfiller, config=_fast()).run_once()
    assert result.action == "skipped_fulfilled"
    assert view.submitted == []


@pytest.mark.asyncio
async def test_fulfills_next_pending_request(coordinator, fulfiller, payments, registry):
    coordinator.register_consumer(ALICE)
    coordinator.fund_consumer(ALICE, 500_000)
    coordinator.request_randomness(ALICE, 100_000)
    coordinator.request_randomness(ALICE, 100_000)
    worker = FulfillmentWorker(coordinator, fulfiller, config=_fast(), metrics=coordinator.metrics)

    first = await worker.run_once()
    second = await worker.run_once()
    third = await worker.run_once()

    assert (first.action, first.request_id) == ("fulfilled", 1)
    assert (second.action, second.request_id) == ("fulfilled", 2)
    assert third.action == "idle"
    assert coordinator.latest_fulfill_id == 2
    assert payments.credited(fulfiller.address) == first.receipt.payment + second.receipt.payment
    assert first.receipt.profit == first.receipt.payment - first.receipt.cost
    assert registry.get_sample_value("native_vrf_coordinator_solve_iterations_count") == 2


@pytest.mark.asyncio
async def test_solve_timeout_cancels_search(fulfiller):
    config = RequestConfig(request_id=1, consumer=ALICE, callback_gas_budget=1)
    view = StubView(current=2, latest=0, config=config, difficulty=2**255)
    worker = FulfillmentWorker(
        view,
        fulfiller,
        config=WorkerConfig(poll_delay_s=0.0, solve_max_iterations=10**9, solve_timeout_s=0.2),
    )
    with pytest.raises(SolveCancelled):
        await worker.run_once()


@pytest.mark.asyncio
async def test_loop_survives_failed_rounds(fulfiller):
    view = StubView(current=1, latest=0, fail_reads=2)
    worker = FulfillmentWorker(view, fulfiller, config=_fast())

    await worker.run_forever(max_rounds=4)

    assert worker.rounds == 4
    assert worker.failures == 2


@pytest.mark.asyncio
async def test_stop_ends_loop(fulfiller):
    view = StubView(current=1, latest=0)
    worker = FulfillmentWorker(view, fulfiller, config=_fast())
    worker.stop()
    await worker.run_forever()
    assert worker.rounds == 0
