"""
native_vrf configuration.

Typed configuration objects for:
- the ledger (genesis seed, difficulty, fulfiller allow-list)
- the coordinator (identity, owner, premium, default callback gas, gas price)
- storage (URI of the authoritative store)
- the fulfillment worker (poll delay, solve budget, RPC endpoint)

Each dataclass validates itself; the top-level `VRFConfig` loads from
environment variables (prefix configurable) or a JSON file.
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .constants import (
    DEFAULT_CALLBACK_GAS_LIMIT,
    DEFAULT_DIFFICULTY,
    DEFAULT_FIXED_PREMIUM,
    DEFAULT_GENESIS_SEED,
    DEFAULT_POLL_DELAY_S,
    DEFAULT_SOLVE_MAX_ITERATIONS,
    DEFAULT_SOLVE_TIMEOUT_S,
    UINT256_MAX,
)
from .errors import ConfigurationError, InvalidDifficulty

DEFAULT_COORDINATOR_ADDRESS = "0x00000000000000000000000000000000000c0de1"
DEFAULT_OWNER = "0x000000000000000000000000000000000000dEaD"
DEFAULT_RPC_URL = "http://127.0.0.1:8645"

# -------------------------
# Sub-configs
# -------------------------


@dataclass
class LedgerConfig:
    """
    genesis_seed: random_results[0]; fixed at initialisation, never user input
    difficulty:   puzzle modulus (> 0); expected solve work ≈ difficulty signatures
    allowlist:    optional fulfiller addresses; empty means any self-signed fulfiller
    """

    genesis_seed: int = DEFAULT_GENESIS_SEED
    difficulty: int = DEFAULT_DIFFICULTY
    allowlist: List[str] = field(default_factory=list)

    def validate(self) -> None:
        if not (0 <= self.genesis_seed <= UINT256_MAX):
            raise ConfigurationError("genesis_seed must be a uint256")
        if self.difficulty <= 0:
            raise InvalidDifficulty(self.difficulty)


@dataclass
class CoordinatorConfig:
    """
    address:                    identity the coordinator presents to consumer callbacks
    owner:                      holder of the parameter-change capability
    fixed_premium:              flat reward added to every fulfillment payment
    default_callback_gas_limit: budget used when a request passes gas_limit=0
    gas_price:                  price for the built-in fixed oracle
    """

    address: str = DEFAULT_COORDINATOR_ADDRESS
    owner: str = DEFAULT_OWNER
    fixed_premium: int = DEFAULT_FIXED_PREMIUM
    default_callback_gas_limit: int = DEFAULT_CALLBACK_GAS_LIMIT
    gas_price: int = 1

    def validate(self) -> None:
        if not self.address:
            raise ConfigurationError("coordinator address must be set")
        if not self.owner:
            raise ConfigurationError("owner must be set")
        for name in ("fixed_premium", "default_callback_gas_limit", "gas_price"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must be >= 0")
        if self.default_callback_gas_limit == 0:
            raise ConfigurationError("default_callback_gas_limit must be > 0")


@dataclass
class StorageConfig:
    """uri: memory:// or sqlite:///path/to/vrf.db"""

    uri: str = "memory://"

    def validate(self) -> None:
        if not self.uri.startswith(("memory://", "sqlite://")):
            raise ConfigurationError("storage uri must be memory:// or sqlite://...")


@dataclass
class WorkerConfig:
    """
    poll_delay_s:        pause between polling rounds (also the retry delay after errors)
    solve_max_iterations: iteration budget per solve attempt
    solve_timeout_s:     wall-clock budget per solve attempt
    rpc_url:             coordinator REST endpoint for remote workers
    """

    poll_delay_s: float = DEFAULT_POLL_DELAY_S
    solve_max_iterations: int = DEFAULT_SOLVE_MAX_ITERATIONS
    solve_timeout_s: float = DEFAULT_SOLVE_TIMEOUT_S
    rpc_url: str = DEFAULT_RPC_URL

    def validate(self) -> None:
        if self.poll_delay_s < 0:
            raise ConfigurationError("poll_delay_s must be >= 0")
        if self.solve_max_iterations <= 0:
            raise ConfigurationError("solve_max_iterations must be > 0")
        if self.solve_timeout_s <= 0:
            raise ConfigurationError("solve_timeout_s must be > 0")


# -------------------------
# Top-level config
# -------------------------


@dataclass
class VRFConfig:
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    coordinator: CoordinatorConfig = field(default_factory=CoordinatorConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    worker: WorkerConfig = field(default_factory=WorkerConfig)

    def validate(self) -> None:
        self.ledger.validate()
        self.coordinator.validate()
        self.storage.validate()
        self.worker.validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    # -------------------------
    # Loaders
    # -------------------------

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "VRFConfig":
        cfg = VRFConfig(
            ledger=LedgerConfig(**data.get("ledger", {})),
            coordinator=CoordinatorConfig(**data.get("coordinator", {})),
            storage=StorageConfig(**data.get("storage", {})),
            worker=WorkerConfig(**data.get("worker", {})),
        )
        cfg.validate()
        return cfg

    @staticmethod
    def from_file(path: str | Path) -> "VRFConfig":
        with open(path, "r", encoding="utf-8") as f:
            return VRFConfig.from_dict(json.load(f))

    @staticmethod
    def from_env(prefix: str = "NATIVE_VRF_") -> "VRFConfig":
        """
        Load configuration from environment variables. All variables are optional.

          - NATIVE_VRF_GENESIS_SEED=42
          - NATIVE_VRF_DIFFICULTY=1000
          - NATIVE_VRF_ALLOWLIST=0xabc...,0xdef...

          - NATIVE_VRF_COORDINATOR_ADDRESS=0x...
          - NATIVE_VRF_OWNER=0x...
          - NATIVE_VRF_FIXED_PREMIUM=10000
          - NATIVE_VRF_DEFAULT_CALLBACK_GAS=500000
          - NATIVE_VRF_GAS_PRICE=1

          - NATIVE_VRF_STORE=sqlite:///./data/vrf.db

          - NATIVE_VRF_POLL_DELAY_S=1.0
          - NATIVE_VRF_SOLVE_MAX_ITERATIONS=1000000
          - NATIVE_VRF_SOLVE_TIMEOUT_S=120
          - NATIVE_VRF_RPC_URL=http://127.0.0.1:8645
        """

        def _get(name: str, cast: Any, default: Any) -> Any:
            key = prefix + name
            raw = os.getenv(key)
            if raw is None:
                return default
            try:
                if cast is list:
                    return [p.strip() for p in raw.split(",") if p.strip()]
                if cast is int:
                    return int(raw, 0)
                return cast(raw)
            except Exception as e:
                raise ConfigurationError(f"Invalid value for {key}: {raw!r}") from e

        cfg = VRFConfig(
            ledger=LedgerConfig(
                genesis_seed=_get("GENESIS_SEED", int, DEFAULT_GENESIS_SEED),
                difficulty=_get("DIFFICULTY", int, DEFAULT_DIFFICULTY),
                allowlist=_get("ALLOWLIST", list, []),
            ),
            coordinator=CoordinatorConfig(
                address=_get("COORDINATOR_ADDRESS", str, DEFAULT_COORDINATOR_ADDRESS),
                owner=_get("OWNER", str, DEFAULT_OWNER),
                fixed_premium=_get("FIXED_PREMIUM", int, DEFAULT_FIXED_PREMIUM),
                default_callback_gas_limit=_get("DEFAULT_CALLBACK_GAS", int, DEFAULT_CALLBACK_GAS_LIMIT),
                gas_price=_get("GAS_PRICE", int, 1),
            ),
            storage=StorageConfig(uri=_get("STORE", str, "memory://")),
            worker=WorkerConfig(
                poll_delay_s=_get("POLL_DELAY_S", float, DEFAULT_POLL_DELAY_S),
                solve_max_iterations=_get("SOLVE_MAX_ITERATIONS", int, DEFAULT_SOLVE_MAX_ITERATIONS),
                solve_timeout_s=_get("SOLVE_TIMEOUT_S", float, DEFAULT_SOLVE_TIMEOUT_S),
                rpc_url=_get("RPC_URL", str, DEFAULT_RPC_URL),
            ),
        )
        cfg.validate()
        return cfg


def load_config(path: Optional[str] = None) -> VRFConfig:
    """Config file if given, else environment."""
    return VRFConfig.from_file(path) if path else VRFConfig.from_env()


__all__ = [
    "LedgerConfig",
    "CoordinatorConfig",
    "StorageConfig",
    "WorkerConfig",
    "VRFConfig",
    "load_config",
    "DEFAULT_COORDINATOR_ADDRESS",
    "DEFAULT_OWNER",
    "DEFAULT_RPC_URL",
]
