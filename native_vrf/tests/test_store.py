from __future__ import annotations

import pytest

from native_vrf.coordinator import Coordinator, InMemoryPayments
from native_vrf.ledger import RandomnessLedger
from native_vrf.oracle import FixedGasPrice
from native_vrf.store import open_store
from native_vrf.store.kv import Buckets
from native_vrf.store.memory import MemoryKeyValue
from native_vrf.store.sqlite import SQLiteKeyValue

from native_vrf.tests.conftest import ALICE, COORDINATOR, DIFFICULTY, GENESIS, OWNER, solve_next


@pytest.fixture(params=["memory", "sqlite"])
def any_kv(request, tmp_path):
    if request.param == "memory":
        kv = MemoryKeyValue()
    else:
        kv = SQLiteKeyValue(str(tmp_path / "kv.db"))
    yield kv
    kv.close()


def test_transaction_rolls_back_on_error(any_kv):
    any_kv.put(b"a", b"1")
    with pytest.raises(RuntimeError):
        with any_kv.transaction():
            any_kv.put(b"a", b"2")
            any_kv.put(b"b", b"2")
            raise RuntimeError("boom")
    assert any_kv.get(b"a") == b"1"
    assert any_kv.get(b"b") is None


def test_nested_transaction_rolls_back_independently(any_kv):
    with any_kv.transaction():
        any_kv.put(b"outer", b"1")
        with pytest.raises(ValueError):
            with any_kv.transaction():
                any_kv.put(b"inner", b"1")
                raise ValueError
        with any_kv.transaction():
            any_kv.put(b"kept", b"1")
    assert any_kv.get(b"outer") == b"1"
    assert any_kv.get(b"inner") is None
    assert any_kv.get(b"kept") == b"1"


def test_prefix_iteration_is_ordered(any_kv):
    for k in (b"\x04\x00\x02", b"\x04\x00\x01", b"\x05\x00", b"\x04\xff"):
        any_kv.put(k, b"v")
    keys = [k for k, _ in any_kv.iter_prefix(b"\x04")]
    assert keys == [b"\x04\x00\x01", b"\x04\x00\x02", b"\x04\xff"]


def test_event_log_sequence(any_kv):
    b = Buckets(any_kv)
    assert b.append_event({"name": "A", "args": {}}) == 1
    assert b.append_event({"name": "B", "args": {}}) == 2
    assert [e["name"] for e in b.iter_events()] == ["A", "B"]
    assert [e["seq"] for e in b.iter_events(since=1)] == [2]


def test_open_store_uris(tmp_path):
    assert isinstance(open_store("memory://"), MemoryKeyValue)
    kv = open_store(f"sqlite://{tmp_path / 'x.db'}")
    assert isinstance(kv, SQLiteKeyValue)
    kv.close()
    with pytest.raises(ValueError):
        open_store("redis://localhost")


def _coordinator(kv, *, genesis=GENESIS) -> Coordinator:
    ledger = RandomnessLedger(kv, genesis_seed=genesis, difficulty=DIFFICULTY)
    return Coordinator(
        ledger,
        address=COORDINATOR,
        owner=OWNER,
        oracle=FixedGasPrice(1),
        payments=InMemoryPayments(treasury=10**9),
    )


def test_sqlite_state_survives_reopen(tmp_path, fulfiller):
    path = str(tmp_path / "vrf.db")
    kv = SQLiteKeyValue(path)
    c = _coordinator(kv)
    c.register_consumer(ALICE)
    c.fund_consumer(ALICE, 300_000)
    c.request_randomness(ALICE, 100_000)
    c.request_randomness(ALICE, 100_000)
    _, sol = solve_next(c, fulfiller)
    receipt = c.fulfill_randomness(fulfiller.address, 1, sol.input, sol.signature)
    events = c.events()
    kv.close()

    # A different genesis argument must not overwrite the stored chain.
    reopened = _coordinator(SQLiteKeyValue(path), genesis=7)
    assert reopened.random_result(0) == GENESIS
    assert reopened.current_request_id == 3
    assert reopened.latest_fulfill_id == 1
    assert reopened.random_result(1) == receipt.random_value
    assert reopened.balance_of(ALICE) == 100_000
    assert reopened.request_config(1).fulfilled
    assert not reopened.request_config(2).fulfilled
    assert reopened.events() == events

    _, sol2 = solve_next(reopened, fulfiller)
    reopened.fulfill_randomness(fulfiller.address, 2, sol2.input, sol2.signature)
    assert reopened.latest_fulfill_id == 2
