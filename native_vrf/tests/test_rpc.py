from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from native_vrf.rpc.client import HttpCoordinatorClient, RemoteVRFError
from native_vrf.rpc.router import create_app
from native_vrf.utils.hash import to_hex

from native_vrf.tests.conftest import ALICE, BOB, solve_next


@pytest.fixture
def client(coordinator) -> TestClient:
    return TestClient(create_app(coordinator))


def test_status_and_health(client):
    assert client.get("/healthz").json() == {"ok": True}
    s = client.get("/vrf/status").json()
    assert s["current_request_id"] == 1
    assert s["latest_fulfill_id"] == 0


def test_request_flow_over_rest(client, coordinator, fulfiller):
    assert client.post("/vrf/consumers/register", json={"consumer": ALICE}).json()["created"] is True
    assert client.post("/vrf/consumers/fund", json={"consumer": ALICE, "amount": 200_000}).json()["balance"] == 200_000
    rid = client.post("/vrf/requests", json={"consumer": ALICE, "gas_limit": 100_000}).json()["request_id"]
    assert rid == 1

    cfg = client.get("/vrf/requests/1").json()
    assert cfg["consumer"] == ALICE and cfg["fulfilled"] is False

    _, sol = solve_next(coordinator, fulfiller)
    r = client.post(
        "/vrf/fulfill",
        json={
            "fulfiller": fulfiller.address,
            "request_id": rid,
            "input": sol.input,
            "signature": to_hex(sol.signature),
        },
    )
    assert r.status_code == 200
    receipt = r.json()
    assert receipt["request_id"] == 1

    res = client.get("/vrf/results/1").json()
    assert res == {"request_id": 1, "random_value": receipt["random_value"], "fulfilled": True}
    names = [e["name"] for e in client.get("/vrf/events").json()]
    assert names[-1] == "RequestFulfilled"
    assert client.get("/vrf/consumers/" + ALICE).json()["balance"] == 100_000


@pytest.mark.parametrize(
    "path,body,status,code",
    [
        ("/vrf/requests", {"consumer": BOB, "gas_limit": 1}, 403, "VRF_NOT_REGISTERED"),
        ("/vrf/consumers/fund", {"consumer": BOB, "amount": 0}, 400, "VRF_ZERO_FUNDING"),
        ("/vrf/consumers/withdraw", {"consumer": BOB, "amount": 5}, 402, "VRF_INSUFFICIENT_BALANCE"),
        ("/vrf/consumers/withdraw", {"consumer": BOB, "amount": 0}, 400, "VRF_ZERO_WITHDRAWAL"),
        ("/vrf/consumers/register", {"consumer": "0x" + "00" * 20}, 400, "VRF_INVALID_CONSUMER"),
        (
            "/vrf/fulfill",
            {"fulfiller": BOB, "request_id": 1, "input": 0, "signature": "0x" + "00" * 65},
            404,
            "VRF_REQUEST_NOT_FOUND",
        ),
    ],
)
def test_domain_errors_map_to_4xx(client, path, body, status, code):
    r = client.post(path, json=body)
    assert r.status_code == status
    assert r.json()["detail"]["code"] == code


def test_unknown_request_is_404(client):
    r = client.get("/vrf/requests/9")
    assert r.status_code == 404
    assert r.json()["detail"]["code"] == "VRF_REQUEST_NOT_FOUND"


def test_http_client_round_trip(client, coordinator, fulfiller):
    remote = HttpCoordinatorClient("http://testserver", session=client)
    remote.register_consumer(ALICE)
    remote.fund_consumer(ALICE, 200_000)
    rid = remote.request_randomness(ALICE, 100_000)

    assert remote.current_request_id == 2
    assert remote.request_config(rid).consumer == ALICE
    assert not remote.request_config(7).exists

    _, sol = solve_next(coordinator, fulfiller)
    receipt = remote.fulfill_randomness(fulfiller.address, rid, sol.input, sol.signature)
    assert remote.random_result(rid) == receipt.random_value
    assert remote.latest_fulfill_id == 1

    with pytest.raises(RemoteVRFError) as ei:
        remote.fulfill_randomness(fulfiller.address, rid, sol.input, sol.signature)
    assert ei.value.code == "VRF_ALREADY_FULFILLED"
    assert ei.value.status == 409


def test_ids_beyond_storage_range_are_rejected(client, fulfiller):
    huge = 1 << 64
    assert client.get(f"/vrf/requests/{huge}").status_code == 422
    assert client.get(f"/vrf/results/{huge}").status_code == 422
    r = client.post(
        "/vrf/fulfill",
        json={"fulfiller": fulfiller.address, "request_id": huge, "input": 0, "signature": "0x" + "00" * 65},
    )
    assert r.status_code == 422
