from __future__ import annotations

import threading

import pytest

from native_vrf.crypto.signer import recover_signer
from native_vrf.errors import InvalidDifficulty, SolveBudgetExceeded, SolveCancelled
from native_vrf.puzzle.solver import PuzzleSolver, meets_difficulty, verify_solution
from native_vrf.utils.hash import message_hash, signature_to_uint

from native_vrf.tests.conftest import DIFFICULTY, GENESIS


def test_solution_meets_difficulty_and_recovers(fulfiller):
    solver = PuzzleSolver(fulfiller, difficulty=DIFFICULTY)
    sol = solver.solve(GENESIS)

    assert len(sol.signature) == 65
    assert sol.value == signature_to_uint(sol.signature)
    assert sol.value % DIFFICULTY == 0
    assert sol.iterations == sol.input + 1
    assert recover_signer(message_hash(GENESIS, sol.input), sol.signature) == fulfiller.address
    assert solver.verify(GENESIS, sol.input, sol.signature)


def test_search_is_deterministic_per_seed_signer_difficulty(fulfiller, other_signer):
    a = PuzzleSolver(fulfiller, difficulty=DIFFICULTY).solve(GENESIS)
    b = PuzzleSolver(fulfiller, difficulty=DIFFICULTY).solve(GENESIS)
    assert (a.input, a.signature) == (b.input, b.signature)

    c = PuzzleSolver(other_signer, difficulty=DIFFICULTY).solve(GENESIS)
    assert c.signature != a.signature


def test_every_rejected_candidate_fails_difficulty(fulfiller):
    solver = PuzzleSolver(fulfiller, difficulty=DIFFICULTY)
    sol = solver.solve(GENESIS)
    for x in range(sol.input):
        sig, value = solver.attempt(GENESIS, x)
        assert value % DIFFICULTY != 0
        assert not meets_difficulty(sig, DIFFICULTY)


def test_difficulty_one_accepts_first_input(fulfiller):
    sol = PuzzleSolver(fulfiller, difficulty=1).solve(7, start=5)
    assert sol.input == 5
    assert sol.iterations == 1


@pytest.mark.parametrize("bad", [0, -3])
def test_invalid_difficulty_rejected_before_search(fulfiller, bad):
    with pytest.raises(InvalidDifficulty):
        PuzzleSolver(fulfiller, difficulty=bad)


def test_budget_exhaustion_is_retryable(fulfiller):
    solver = PuzzleSolver(fulfiller, difficulty=2**255)
    with pytest.raises(SolveBudgetExceeded) as ei:
        solver.solve(GENESIS, max_iterations=5)
    assert ei.value.retryable
    assert ei.value.details["iterations"] == 5


def test_cancel_event_stops_search(fulfiller):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(SolveCancelled):
        PuzzleSolver(fulfiller, difficulty=2**255).solve(GENESIS, cancel=cancel)


def test_verify_rejects_wrong_signer_and_tampering(fulfiller, other_signer):
    sol = PuzzleSolver(fulfiller, difficulty=DIFFICULTY).solve(GENESIS)

    assert verify_solution(GENESIS, sol.input, sol.signature, difficulty=DIFFICULTY)
    assert not verify_solution(
        GENESIS, sol.input, sol.signature, difficulty=DIFFICULTY, signer=other_signer.address
    )
    # Same signature, different input: recovers to some other key.
    assert not verify_solution(
        GENESIS, sol.input + 1, sol.signature, difficulty=DIFFICULTY, signer=fulfiller.address
    )
    assert not verify_solution(GENESIS, sol.input, b"\x00" * 65, difficulty=DIFFICULTY)
