"""
Shared fixtures for native_vrf tests:
- deterministic fulfiller keys (well-known devnet keys, never fund these)
- an in-memory store, ledger and coordinator with genesis 42 / difficulty 4
- an isolated Prometheus registry per test
"""
from __future__ import annotations

from typing import Tuple

import pytest
from prometheus_client import CollectorRegistry

from native_vrf.coordinator import Coordinator, InMemoryPayments
from native_vrf.crypto.signer import LocalSigner
from native_vrf.ledger import RandomnessLedger
from native_vrf.metrics import Metrics
from native_vrf.oracle import FixedGasPrice
from native_vrf.puzzle.solver import PuzzleSolver, Solution
from native_vrf.store.memory import MemoryKeyValue

FULFILLER_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
OTHER_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"

COORDINATOR = "0x00000000000000000000000000000000000c0de1"
OWNER = "0x9999999999999999999999999999999999999999"
ALICE = "0x1111111111111111111111111111111111111111"
BOB = "0x2222222222222222222222222222222222222222"

GENESIS = 42
DIFFICULTY = 4
PREMIUM = 10_000


@pytest.fixture
def fulfiller() -> LocalSigner:
    return LocalSigner.from_key(FULFILLER_KEY)


@pytest.fixture
def other_signer() -> LocalSigner:
    return LocalSigner.from_key(OTHER_KEY)


@pytest.fixture
def kv() -> MemoryKeyValue:
    return MemoryKeyValue()


@pytest.fixture
def ledger(kv: MemoryKeyValue) -> RandomnessLedger:
    return RandomnessLedger(kv, genesis_seed=GENESIS, difficulty=DIFFICULTY)


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> Metrics:
    return Metrics(registry=registry)


@pytest.fixture
def payments() -> InMemoryPayments:
    return InMemoryPayments()


@pytest.fixture
def oracle() -> FixedGasPrice:
    return FixedGasPrice(1)


@pytest.fixture
def coordinator(
    ledger: RandomnessLedger,
    payments: InMemoryPayments,
    oracle: FixedGasPrice,
    metrics: Metrics,
) -> Coordinator:
    return Coordinator(
        ledger,
        address=COORDINATOR,
        owner=OWNER,
        oracle=oracle,
        payments=payments,
        fixed_premium=PREMIUM,
        default_callback_gas_limit=100_000,
        metrics=metrics,
    )


def solve_next(coordinator: Coordinator, signer: LocalSigner) -> Tuple[int, Solution]:
    """Solve the puzzle for the next request in order."""
    latest = coordinator.latest_fulfill_id
    solver = PuzzleSolver(signer, difficulty=coordinator.difficulty, max_iterations=10_000)
    return latest + 1, solver.solve(coordinator.random_result(latest))


def failing_candidate(signer: LocalSigner, seed: int, difficulty: int) -> Tuple[int, bytes]:
    """First input whose signature does NOT meet `difficulty`."""
    solver = PuzzleSolver(signer, difficulty=difficulty)
    x = 0
    while True:
        sig, value = solver.attempt(seed, x)
        if value % difficulty != 0:
            return x, sig
        x += 1
