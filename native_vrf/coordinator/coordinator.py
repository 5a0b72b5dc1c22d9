"""
VRF coordinator: consumer accounts, request bookkeeping, and fulfillment
payment on top of the :class:`~native_vrf.ledger.RandomnessLedger`.

Request lifecycle
-----------------
    Unallocated --request_randomness--> Pending --fulfill_randomness--> Fulfilled

* ``request_randomness`` reserves ``gas_price * callback_gas_budget`` from the
  consumer's balance *before* allocating an id. The reservation is not
  refunded.
* ``fulfill_randomness`` runs the ledger checks, delivers the value to the
  consumer callback inside its own failure boundary, and pays the fulfiller
  ``gas_price * min(measured_gas, callback_gas_budget) + fixed_premium``.

Atomicity
---------
Every public mutation runs under the ledger lock and inside one store
transaction. If the payment transfer fails, the result, counters, fulfilled
flag and events written by that call are all rolled back and
:class:`~native_vrf.errors.PaymentTransferFailed` is raised. A callback that
raises (or runs out of gas) only rolls back its own nested transaction; the
fulfillment still commits and pays.

Store writes roll back; value already moved through the ``PaymentSink`` does
not. A callback may therefore re-enter the coordinator (register, request),
but ``fund_consumer``, ``withdraw_funds`` and ``fulfill_randomness`` raise
:class:`~native_vrf.errors.TransferDuringCallback` while it runs.

Events are persisted in the store's audit log as they are emitted and handed
to listeners only after the outermost transaction commits.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..config import VRFConfig
from ..constants import (
    DEFAULT_CALLBACK_GAS_LIMIT,
    DEFAULT_FIXED_PREMIUM,
    GAS_CALLBACK_BASE,
    GAS_EVENT,
    GAS_FULFILL_BASE,
    GAS_TRANSFER,
    GAS_UPDATE_WORD,
    MAX_REQUEST_ID,
    ZERO_ADDRESS,
)
from ..crypto.signer import normalize_address
from ..errors import (
    AlreadyFulfilled,
    InsufficientBalance,
    InvalidConsumer,
    NotRegistered,
    PaymentTransferFailed,
    RequestNotFound,
    TransferDuringCallback,
    Unauthorized,
    VRFError,
    ZeroFunding,
    ZeroWithdrawal,
)
from ..gas import GasMeter
from ..ledger import AllowlistPolicy, RandomnessLedger
from ..metrics import METRICS, Metrics, outcome_for
from ..oracle import FixedGasPrice, GasPriceOracle
from ..store import KeyValue, open_store
from ..store.kv import META_DEFAULT_CALLBACK_GAS, META_FIXED_PREMIUM, META_OWNER
from ..types.core import ConsumerAccount, Event, EventName, FulfillmentReceipt, RequestConfig
from .consumer import ConsumerCallback
from .payments import InMemoryPayments, PaymentSink

logger = logging.getLogger(__name__)

Listener = Callable[[Event], None]


def _consumer_address(caller: str) -> str:
    addr = normalize_address(caller)
    if not addr or addr == ZERO_ADDRESS:
        raise InvalidConsumer(str(caller))
    return addr


def _require_amount(name: str, v: int) -> int:
    if not isinstance(v, int) or isinstance(v, bool):
        raise TypeError(f"{name} must be int")
    if v < 0:
        raise ValueError(f"{name} must be non-negative (got {v})")
    return v


class Coordinator:
    def __init__(
        self,
        ledger: RandomnessLedger,
        *,
        address: str,
        owner: str,
        oracle: Optional[GasPriceOracle] = None,
        payments: Optional[PaymentSink] = None,
        fixed_premium: int = DEFAULT_FIXED_PREMIUM,
        default_callback_gas_limit: int = DEFAULT_CALLBACK_GAS_LIMIT,
        metrics: Optional[Metrics] = None,
        listeners: Optional[List[Listener]] = None,
    ) -> None:
        self.ledger = ledger
        self.kv = ledger.kv
        self.buckets = ledger.buckets
        self.lock = ledger.lock
        self.address = normalize_address(address)
        self.oracle: GasPriceOracle = oracle or FixedGasPrice()
        self.payments: PaymentSink = payments if payments is not None else InMemoryPayments()
        self.metrics = metrics or METRICS

        self._callbacks: Dict[str, ConsumerCallback] = {}
        self._listeners: List[Listener] = list(listeners or [])
        self._outbox: List[Event] = []
        self._depth = 0
        self._in_callback = 0

        _require_amount("fixed_premium", fixed_premium)
        if _require_amount("default_callback_gas_limit", default_callback_gas_limit) == 0:
            raise ValueError("default_callback_gas_limit must be > 0")
        with self.lock, self.kv.transaction():
            if self.buckets.get_meta_str(META_OWNER) is None:
                self.buckets.put_meta_str(META_OWNER, normalize_address(owner))
                self.buckets.put_meta_int(META_FIXED_PREMIUM, fixed_premium)
                self.buckets.put_meta_int(META_DEFAULT_CALLBACK_GAS, default_callback_gas_limit)

    @classmethod
    def from_config(
        cls,
        cfg: VRFConfig,
        *,
        kv: Optional[KeyValue] = None,
        oracle: Optional[GasPriceOracle] = None,
        payments: Optional[PaymentSink] = None,
        metrics: Optional[Metrics] = None,
    ) -> "Coordinator":
        cfg.validate()
        store = kv if kv is not None else open_store(cfg.storage.uri)
        policy = AllowlistPolicy(cfg.ledger.allowlist) if cfg.ledger.allowlist else None
        ledger = RandomnessLedger(
            store,
            genesis_seed=cfg.ledger.genesis_seed,
            difficulty=cfg.ledger.difficulty,
            policy=policy,
        )
        c = cfg.coordinator
        return cls(
            ledger,
            address=c.address,
            owner=c.owner,
            oracle=oracle or FixedGasPrice(c.gas_price),
            payments=payments,
            fixed_premium=c.fixed_premium,
            default_callback_gas_limit=c.default_callback_gas_limit,
            metrics=metrics,
        )

    # ------------------------------------------------------------------
    # Transaction / event plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _mutation(self) -> Iterator[None]:
        with self.lock:
            mark = len(self._outbox)
            self._depth += 1
            try:
                with self.kv.transaction():
                    yield
            except BaseException:
                del self._outbox[mark:]
                raise
            finally:
                self._depth -= 1
            if self._depth == 0:
                self._flush()

    def _emit(self, name: EventName, /, **args: Any) -> Event:
        event = Event(name=name, args=args)
        seq = self.buckets.append_event(event.to_dict())
        event = replace(event, seq=seq)
        self._outbox.append(event)
        return event

    def _flush(self) -> None:
        events, self._outbox = self._outbox, []
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    logger.exception("event listener failed for %s", event.name.value)

    def _forbid_in_callback(self, action: str) -> None:
        # Sink transfers cannot be rolled back with the callback's transaction.
        if self._in_callback:
            raise TransferDuringCallback(action=action)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register an event listener; returns a function that removes it."""
        with self.lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self.lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def _account(self, address: str) -> ConsumerAccount:
        rec = self.buckets.get_consumer(address)
        return ConsumerAccount(address=address) if rec is None else ConsumerAccount.from_dict(rec)

    def _put_account(self, acct: ConsumerAccount) -> None:
        self.buckets.put_consumer(acct.address, acct.to_dict())

    def register_consumer(self, caller: str, *, callback: Optional[ConsumerCallback] = None) -> bool:
        """
        Register `caller` as a consumer. Idempotent: returns True only the
        first time (and only then emits ConsumerRegistered). A given
        `callback` replaces any previously attached one.
        """
        addr = _consumer_address(caller)
        with self._mutation():
            acct = self._account(addr)
            first = not acct.registered
            if first:
                self._put_account(replace(acct, registered=True))
                self._emit(EventName.CONSUMER_REGISTERED, consumer=addr)
            if callback is not None:
                self._callbacks[addr] = callback
        if first:
            logger.info("consumer registered %s", addr)
        return first

    def set_callback(self, caller: str, callback: Optional[ConsumerCallback]) -> None:
        addr = normalize_address(caller)
        with self.lock:
            if not self._account(addr).registered:
                raise NotRegistered(addr)
            if callback is None:
                self._callbacks.pop(addr, None)
            else:
                self._callbacks[addr] = callback

    def fund_consumer(self, caller: str, amount: int) -> int:
        """Credit `amount` to the caller's balance; returns the new balance."""
        addr = _consumer_address(caller)
        if _require_amount("amount", amount) == 0:
            raise ZeroFunding(addr)
        with self._mutation():
            self._forbid_in_callback("fund_consumer")
            acct = self._account(addr)
            acct = replace(acct, balance=acct.balance + amount)
            self._put_account(acct)
            self._emit(EventName.CONSUMER_FUNDED, consumer=addr, amount=amount)
            try:
                self.payments.deposit(addr, amount)
            except Exception as e:
                raise PaymentTransferFailed(recipient=self.address, amount=amount, reason=str(e)) from e
        logger.info("consumer funded %s amount=%d balance=%d", addr, amount, acct.balance)
        return acct.balance

    def withdraw_funds(self, caller: str, amount: int) -> int:
        """Move `amount` of the caller's balance back to them; returns the new balance."""
        addr = normalize_address(caller)
        if _require_amount("amount", amount) == 0:
            raise ZeroWithdrawal(addr)
        with self._mutation():
            self._forbid_in_callback("withdraw_funds")
            acct = self._account(addr)
            if acct.balance < amount:
                raise InsufficientBalance(addr, required=amount, available=acct.balance)
            acct = replace(acct, balance=acct.balance - amount)
            self._put_account(acct)
            self._emit(EventName.FUNDS_WITHDRAWN, consumer=addr, amount=amount)
            self._transfer(addr, amount)
        logger.info("consumer withdrew %s amount=%d balance=%d", addr, amount, acct.balance)
        return acct.balance

    def _transfer(self, recipient: str, amount: int) -> None:
        try:
            self.payments.transfer(recipient, amount)
        except Exception as e:
            raise PaymentTransferFailed(recipient=recipient, amount=amount, reason=str(e)) from e

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request_randomness(self, caller: str, gas_limit: int = 0) -> int:
        """
        Reserve funds for a callback budget of `gas_limit` (or the default
        when 0) and allocate the next request id.
        """
        _require_amount("gas_limit", gas_limit)
        try:
            addr = _consumer_address(caller)
            with self._mutation():
                acct = self._account(addr)
                if not acct.registered:
                    raise NotRegistered(addr)
                budget = gas_limit or self.default_callback_gas_limit
                price = self.oracle.gas_price()
                cost = price * budget
                if acct.balance < cost:
                    raise InsufficientBalance(addr, required=cost, available=acct.balance)
                self._put_account(replace(acct, balance=acct.balance - cost))
                rid = self.ledger.allocate()
                config = RequestConfig(
                    request_id=rid,
                    consumer=addr,
                    callback_gas_budget=budget,
                    gas_price=price,
                    reserved=cost,
                )
                self.buckets.put_request(rid, config.to_dict())
                self._emit(EventName.REQUEST_INITIATED, request_id=rid, consumer=addr, gas_limit=budget)
        except VRFError as e:
            self.metrics.record_request(outcome_for(e))
            raise
        self.metrics.record_request("accepted")
        logger.info("randomness requested id=%d consumer=%s budget=%d reserved=%d", rid, addr, budget, cost)
        return rid

    def fulfill_randomness(
        self,
        caller: str,
        request_id: int,
        input_value: int,
        signature: bytes,
    ) -> FulfillmentReceipt:
        """
        Verify a puzzle solution for `request_id`, deliver the random value to
        the consumer, and pay `caller`.
        """
        fulfiller = normalize_address(caller)
        try:
            with self._mutation():
                self._forbid_in_callback("fulfill_randomness")
                mark = len(self._outbox)
                config = self.request_config(request_id)
                if not config.exists:
                    raise RequestNotFound(request_id=request_id)
                if config.fulfilled:
                    raise AlreadyFulfilled(request_id=request_id)

                gas = GasMeter()
                gas.consume(GAS_FULFILL_BASE)
                random_value = self.ledger.fulfill(
                    request_id, input_value, signature, fulfiller=fulfiller, gas=gas
                )

                gas.consume(GAS_CALLBACK_BASE)
                child = gas.child(limit=config.callback_gas_budget)
                callback_ok = self._deliver(config, random_value, child)
                gas.absorb(child)

                gas.consume(GAS_UPDATE_WORD + GAS_EVENT + GAS_TRANSFER)
                measured = gas.used
                compensated = min(measured, config.callback_gas_budget)
                price = self.oracle.gas_price()
                payment = price * compensated + self.fixed_premium

                self.buckets.put_request(request_id, config.mark_fulfilled().to_dict())
                self._emit(
                    EventName.REQUEST_FULFILLED,
                    request_id=request_id,
                    fulfiller=fulfiller,
                    payment=payment,
                    random_value=hex(random_value),
                    callback_ok=callback_ok,
                )
                self._transfer(fulfiller, payment)
                events = tuple(self._outbox[mark:])
        except VRFError as e:
            self.metrics.record_fulfillment(outcome_for(e))
            logger.info("fulfillment rejected id=%s by %s: %s", request_id, fulfiller, e.code)
            raise
        self.metrics.record_fulfillment("accepted")
        self.metrics.record_payment(payment)
        logger.info(
            "request fulfilled id=%d fulfiller=%s gas=%d/%d price=%d payment=%d callback_ok=%s",
            request_id, fulfiller, compensated, measured, price, payment, callback_ok,
        )
        return FulfillmentReceipt(
            request_id=request_id,
            random_value=random_value,
            fulfiller=fulfiller,
            gas_used=compensated,
            gas_measured=measured,
            gas_price=price,
            payment=payment,
            callback_ok=callback_ok,
            events=events,
        )

    def _deliver(self, config: RequestConfig, random_value: int, gas: GasMeter) -> bool:
        callback = self._callbacks.get(config.consumer)
        if callback is None:
            logger.debug("no callback attached for %s; request %d", config.consumer, config.request_id)
            return True
        self._in_callback += 1
        try:
            with self._mutation():
                callback.raw_fulfill_randomness(
                    config.request_id, random_value, sender=self.address, gas=gas
                )
        except Exception as e:
            self.metrics.record_callback_failure()
            logger.warning(
                "consumer callback failed id=%d consumer=%s: %s",
                config.request_id, config.consumer, e,
            )
            return False
        finally:
            self._in_callback -= 1
        return True

    # ------------------------------------------------------------------
    # Owner-gated parameters
    # ------------------------------------------------------------------

    @property
    def owner(self) -> str:
        return self.buckets.get_meta_str(META_OWNER) or ""

    def _require_owner(self, caller: str, action: str) -> None:
        if normalize_address(caller) != self.owner:
            raise Unauthorized(caller, action=action)

    def _changed(self, name: str, old: Any, new: Any) -> None:
        self._emit(EventName.PARAMETER_CHANGED, name=name, old=old, new=new)
        logger.info("parameter %s changed %s -> %s", name, old, new)

    def set_fixed_premium(self, caller: str, value: int) -> None:
        _require_amount("fixed_premium", value)
        with self._mutation():
            self._require_owner(caller, "set_fixed_premium")
            old = self.fixed_premium
            self.buckets.put_meta_int(META_FIXED_PREMIUM, value)
            self._changed("fixed_premium", old, value)

    def set_default_callback_gas_limit(self, caller: str, value: int) -> None:
        if _require_amount("default_callback_gas_limit", value) == 0:
            raise ValueError("default_callback_gas_limit must be > 0")
        with self._mutation():
            self._require_owner(caller, "set_default_callback_gas_limit")
            old = self.default_callback_gas_limit
            self.buckets.put_meta_int(META_DEFAULT_CALLBACK_GAS, value)
            self._changed("default_callback_gas_limit", old, value)

    def set_difficulty(self, caller: str, value: int) -> None:
        with self._mutation():
            self._require_owner(caller, "set_difficulty")
            old = self.ledger.difficulty
            self.ledger.set_difficulty(value)
            self._changed("difficulty", old, value)

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        new = normalize_address(new_owner)
        if not new:
            raise ValueError("new owner must be set")
        with self._mutation():
            self._require_owner(caller, "transfer_ownership")
            old = self.owner
            self.buckets.put_meta_str(META_OWNER, new)
            self._changed("owner", old, new)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def fixed_premium(self) -> int:
        return int(self.buckets.get_meta_int(META_FIXED_PREMIUM, DEFAULT_FIXED_PREMIUM))

    @property
    def default_callback_gas_limit(self) -> int:
        return int(self.buckets.get_meta_int(META_DEFAULT_CALLBACK_GAS, DEFAULT_CALLBACK_GAS_LIMIT))

    @property
    def current_request_id(self) -> int:
        return self.ledger.current_request_id

    @property
    def latest_fulfill_id(self) -> int:
        return self.ledger.latest_fulfill_id

    @property
    def difficulty(self) -> int:
        return self.ledger.difficulty

    def request_config(self, request_id: int) -> RequestConfig:
        in_range = 0 <= request_id <= MAX_REQUEST_ID
        rec = self.buckets.get_request(request_id) if in_range else None
        return RequestConfig.absent(max(request_id, 0)) if rec is None else RequestConfig.from_dict(rec)

    def random_result(self, request_id: int) -> int:
        return self.ledger.random_result(request_id)

    def balance_of(self, address: str) -> int:
        return self._account(normalize_address(address)).balance

    def is_registered(self, address: str) -> bool:
        return self._account(normalize_address(address)).registered

    def events(self, since: int = 0) -> List[Event]:
        return [Event.from_dict(r) for r in self.buckets.iter_events(since)]

    def status(self) -> Dict[str, Any]:
        with self.lock:
            latest = self.latest_fulfill_id
            return {
                "address": self.address,
                "owner": self.owner,
                "current_request_id": self.current_request_id,
                "latest_fulfill_id": latest,
                "pending": len(self.ledger.pending()),
                "latest_random_value": hex(self.random_result(latest)),
                "difficulty": self.difficulty,
                "fixed_premium": self.fixed_premium,
                "default_callback_gas_limit": self.default_callback_gas_limit,
                "gas_price": self.oracle.gas_price(),
            }


__all__ = ["Coordinator", "Listener"]
