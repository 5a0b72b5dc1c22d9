from __future__ import annotations

import threading

import pytest

from native_vrf.errors import (
    AlreadyFulfilled,
    DifficultyNotMet,
    InvalidDifficulty,
    InvalidProof,
    OutOfOrderFulfillment,
    RequestNotFound,
)
from native_vrf.gas import GasMeter
from native_vrf.ledger import AllowlistPolicy, RandomnessLedger
from native_vrf.puzzle.solver import PuzzleSolver
from native_vrf.store.memory import MemoryKeyValue
from native_vrf.utils.hash import derive_random_value, message_hash

from native_vrf.tests.conftest import DIFFICULTY, GENESIS, failing_candidate


def _solve(ledger: RandomnessLedger, signer, request_id: int):
    seed = ledger.random_result(request_id - 1)
    return PuzzleSolver(signer, difficulty=ledger.difficulty).solve(seed)


def test_initial_state(ledger):
    assert ledger.current_request_id == 1
    assert ledger.latest_fulfill_id == 0
    assert ledger.random_result(0) == GENESIS
    assert ledger.random_result(1) == 0
    assert ledger.difficulty == DIFFICULTY
    assert list(ledger.pending()) == []


def test_zero_difficulty_is_a_configuration_error(kv):
    with pytest.raises(InvalidDifficulty):
        RandomnessLedger(kv, genesis_seed=GENESIS, difficulty=0)


def test_allocation_is_gapless_under_threads(ledger):
    got: list[int] = []
    guard = threading.Lock()

    def worker():
        mine = [ledger.allocate() for _ in range(50)]
        with guard:
            got.extend(mine)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(got) == list(range(1, 401))
    assert ledger.current_request_id == 401


def test_fulfill_derives_chained_value(ledger, fulfiller):
    ledger.allocate()
    ledger.allocate()
    sol = _solve(ledger, fulfiller, 1)

    value = ledger.fulfill(1, sol.input, sol.signature, fulfiller=fulfiller.address)

    expected = derive_random_value(message_hash(GENESIS, sol.input), sol.signature)
    assert value == expected
    assert ledger.random_result(1) == expected
    assert ledger.latest_fulfill_id == 1
    assert ledger.is_fulfilled(1) and not ledger.is_fulfilled(2)
    assert list(ledger.pending()) == [2]

    sol2 = _solve(ledger, fulfiller, 2)
    assert sol2.seed == expected
    ledger.fulfill(2, sol2.input, sol2.signature, fulfiller=fulfiller.address)
    assert ledger.latest_fulfill_id == 2


def test_out_of_order_rejected_without_writes(ledger, fulfiller):
    ledger.allocate()
    ledger.allocate()
    sol = PuzzleSolver(fulfiller, difficulty=DIFFICULTY).solve(GENESIS)

    with pytest.raises(OutOfOrderFulfillment) as ei:
        ledger.fulfill(2, sol.input, sol.signature, fulfiller=fulfiller.address)
    assert ei.value.details == {"request_id": 2, "expected_id": 1}
    assert ledger.latest_fulfill_id == 0
    assert ledger.random_result(2) == 0


def test_second_fulfillment_of_same_id_rejected(ledger, fulfiller):
    ledger.allocate()
    sol = _solve(ledger, fulfiller, 1)
    first = ledger.fulfill(1, sol.input, sol.signature, fulfiller=fulfiller.address)

    with pytest.raises(AlreadyFulfilled):
        ledger.fulfill(1, sol.input, sol.signature, fulfiller=fulfiller.address)
    assert ledger.random_result(1) == first


def test_huge_ids_are_out_of_order_not_crashes(ledger, fulfiller):
    ledger.allocate()
    sol = _solve(ledger, fulfiller, 1)
    huge = 1 << 64
    assert ledger.random_result(huge) == 0
    assert ledger.random_result(-1) == 0
    with pytest.raises(OutOfOrderFulfillment):
        ledger.fulfill(huge, sol.input, sol.signature, fulfiller=fulfiller.address)
    assert ledger.latest_fulfill_id == 0


def test_unallocated_request_not_found(ledger, fulfiller):
    sol = _solve(ledger, fulfiller, 1)
    with pytest.raises(RequestNotFound):
        ledger.fulfill(1, sol.input, sol.signature, fulfiller=fulfiller.address)


def test_signature_from_another_key_is_invalid_proof(ledger, fulfiller, other_signer):
    ledger.allocate()
    sol = _solve(ledger, other_signer, 1)
    with pytest.raises(InvalidProof):
        ledger.fulfill(1, sol.input, sol.signature, fulfiller=fulfiller.address)
    assert ledger.latest_fulfill_id == 0


def test_malformed_signature_is_invalid_proof(ledger, fulfiller):
    ledger.allocate()
    with pytest.raises(InvalidProof):
        ledger.fulfill(1, 0, b"\x01" * 65, fulfiller=fulfiller.address)
    with pytest.raises(InvalidProof):
        ledger.fulfill(1, 0, b"", fulfiller=fulfiller.address)


def test_valid_signature_below_difficulty_rejected(ledger, fulfiller):
    ledger.allocate()
    x, sig = failing_candidate(fulfiller, GENESIS, DIFFICULTY)
    with pytest.raises(DifficultyNotMet) as ei:
        ledger.fulfill(1, x, sig, fulfiller=fulfiller.address)
    assert ei.value.details["difficulty"] == DIFFICULTY
    assert ledger.latest_fulfill_id == 0


def test_proof_failure_reported_before_difficulty(ledger, fulfiller, other_signer):
    ledger.allocate()
    x, sig = failing_candidate(other_signer, GENESIS, DIFFICULTY)
    with pytest.raises(InvalidProof):
        ledger.fulfill(1, x, sig, fulfiller=fulfiller.address)


def test_allowlist_policy(kv, fulfiller, other_signer):
    ledger = RandomnessLedger(
        kv, genesis_seed=GENESIS, difficulty=DIFFICULTY, policy=AllowlistPolicy([fulfiller.address])
    )
    ledger.allocate()
    outsider = _solve(ledger, other_signer, 1)
    with pytest.raises(InvalidProof):
        ledger.fulfill(1, outsider.input, outsider.signature, fulfiller=other_signer.address)

    sol = _solve(ledger, fulfiller, 1)
    ledger.fulfill(1, sol.input, sol.signature, fulfiller=fulfiller.address)
    assert ledger.latest_fulfill_id == 1


def test_chain_is_deterministic_across_ledgers(fulfiller):
    values = []
    for _ in range(2):
        ledger = RandomnessLedger(MemoryKeyValue(), genesis_seed=GENESIS, difficulty=DIFFICULTY)
        chain = []
        for rid in (1, 2, 3):
            ledger.allocate()
            sol = _solve(ledger, fulfiller, rid)
            chain.append(ledger.fulfill(rid, sol.input, sol.signature, fulfiller=fulfiller.address))
        values.append(chain)
    assert values[0] == values[1]
    assert len(set(values[0])) == 3


def test_preview_writes_nothing_and_charges_gas(ledger, fulfiller):
    ledger.allocate()
    sol = _solve(ledger, fulfiller, 1)
    gas = GasMeter()

    verified = ledger.preview(1, sol.input, sol.signature, fulfiller=fulfiller.address, gas=gas)

    assert verified.signer == fulfiller.address
    assert gas.used > 0
    assert ledger.latest_fulfill_id == 0
    assert ledger.random_result(1) == 0


def test_set_difficulty(ledger):
    ledger.set_difficulty(16)
    assert ledger.difficulty == 16
    with pytest.raises(InvalidDifficulty):
        ledger.set_difficulty(0)
    assert ledger.difficulty == 16
