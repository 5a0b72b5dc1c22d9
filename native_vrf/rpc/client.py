"""
HTTP client for a remote coordinator.

`HttpCoordinatorClient` speaks the REST surface in
:mod:`native_vrf.rpc.router` and exposes the same read/submit methods the
fulfillment worker uses on an in-process :class:`~native_vrf.coordinator.Coordinator`,
so a worker can run on a different host from the coordinator.

Error responses carrying a `VRFError` payload are re-raised as
:class:`RemoteVRFError` with the server's `code`; transport failures surface
as `requests` exceptions and are left to the caller's retry loop.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import requests

from ..errors import VRFError
from ..types.core import Event, FulfillmentReceipt, RequestConfig
from ..utils.hash import to_hex

logger = logging.getLogger(__name__)


class RemoteVRFError(VRFError):
    """A domain error reported by a remote coordinator."""

    def __init__(self, code: str, message: str = "", *, status: int = 0, details: Optional[Mapping[str, Any]] = None) -> None:
        self.code = code
        self.status = status
        super().__init__(message, details=details)


class HttpCoordinatorClient:
    def __init__(
        self,
        base_url: str,
        *,
        prefix: str = "/vrf",
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + prefix
        self.timeout = float(timeout)
        self.session = session or requests.Session()

    # ---- transport -----------------------------------------------------------

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self.base_url + path
        r = self.session.request(method, url, timeout=self.timeout, **kwargs)
        if r.status_code >= 400:
            raise self._error(r)
        return r.json()

    @staticmethod
    def _error(r: requests.Response) -> Exception:
        try:
            detail = r.json().get("detail")
        except ValueError:
            detail = None
        if isinstance(detail, dict) and "code" in detail:
            return RemoteVRFError(
                str(detail["code"]),
                str(detail.get("message", "")),
                status=r.status_code,
                details=detail.get("details") or {},
            )
        return requests.HTTPError(f"HTTP {r.status_code}: {r.text}", response=r)

    def _get(self, path: str, **params: Any) -> Any:
        return self._request("GET", path, params=params or None)

    def _post(self, path: str, body: Dict[str, Any]) -> Any:
        return self._request("POST", path, json=body)

    # ---- views ---------------------------------------------------------------

    def status(self) -> Dict[str, Any]:
        return self._get("/status")

    @property
    def current_request_id(self) -> int:
        return int(self.status()["current_request_id"])

    @property
    def latest_fulfill_id(self) -> int:
        return int(self.status()["latest_fulfill_id"])

    @property
    def difficulty(self) -> int:
        return int(self.status()["difficulty"])

    def request_config(self, request_id: int) -> RequestConfig:
        try:
            return RequestConfig.from_dict(self._get(f"/requests/{int(request_id)}"))
        except RemoteVRFError as e:
            if e.status == 404:
                return RequestConfig.absent(request_id)
            raise

    def random_result(self, request_id: int) -> int:
        return int(self._get(f"/results/{int(request_id)}")["random_value"], 16)

    def events(self, since: int = 0) -> List[Event]:
        return [Event.from_dict(e) for e in self._get("/events", since=since)]

    # ---- mutations -----------------------------------------------------------

    def register_consumer(self, caller: str) -> bool:
        return bool(self._post("/consumers/register", {"consumer": caller})["created"])

    def fund_consumer(self, caller: str, amount: int) -> int:
        return int(self._post("/consumers/fund", {"consumer": caller, "amount": amount})["balance"])

    def withdraw_funds(self, caller: str, amount: int) -> int:
        return int(self._post("/consumers/withdraw", {"consumer": caller, "amount": amount})["balance"])

    def request_randomness(self, caller: str, gas_limit: int = 0) -> int:
        return int(self._post("/requests", {"consumer": caller, "gas_limit": gas_limit})["request_id"])

    def fulfill_randomness(
        self, caller: str, request_id: int, input_value: int, signature: bytes
    ) -> FulfillmentReceipt:
        body = {
            "fulfiller": caller,
            "request_id": request_id,
            "input": input_value,
            "signature": to_hex(signature),
        }
        receipt = FulfillmentReceipt.from_dict(self._post("/fulfill", body))
        logger.debug("remote fulfillment accepted id=%d payment=%d", request_id, receipt.payment)
        return receipt

    def close(self) -> None:
        self.session.close()


__all__ = ["HttpCoordinatorClient", "RemoteVRFError"]
