import pytest

from native_vrf.errors import OutOfGas
from native_vrf.gas import GasMeter


def test_consume_and_limit():
    gm = GasMeter(limit=100)
    gm.consume(60)
    assert (gm.used, gm.remaining) == (60, 40)
    with pytest.raises(OutOfGas):
        gm.consume(41)
    assert gm.used == 60


def test_child_is_bounded_by_parent_and_budget():
    parent = GasMeter(limit=1_000)
    parent.consume(900)
    assert parent.child(limit=500).limit == 100
    assert parent.child(limit=50).limit == 50

    child = parent.child(limit=50)
    child.consume(30)
    parent.absorb(child)
    assert parent.used == 930


def test_rejects_negative_amounts():
    with pytest.raises(ValueError):
        GasMeter().consume(-1)
