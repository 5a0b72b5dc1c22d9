"""
native_vrf.cli
--------------

Operator CLI for the VRF coordinator and fulfillers.

Commands:
  - status : Show coordinator counters and parameters (via REST).
  - solve  : Search for a puzzle solution locally with a fulfiller key.
  - verify : Check a (seed, input, signature) candidate against a difficulty.
  - worker : Run the polling fulfillment worker against a remote coordinator.
  - serve  : Serve the coordinator REST API (uvicorn).

Environment:
  NATIVE_VRF_RPC_URL      : coordinator endpoint (default: http://127.0.0.1:8645)
  NATIVE_VRF_PRIVATE_KEY  : fulfiller key for `solve` and `worker`
  NATIVE_VRF_*            : see native_vrf.config.VRFConfig.from_env

Example:
  native-vrf solve --seed 42 --difficulty 4
  native-vrf verify --seed 42 --input 3 --signature 0x... --difficulty 4
  NATIVE_VRF_STORE=sqlite:///./vrf.db native-vrf serve --port 8645
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from typing import Optional, Sequence

import typer

from ..config import DEFAULT_RPC_URL, VRFConfig, load_config
from ..crypto.signer import ENV_PRIVATE_KEY, LocalSigner
from ..errors import SolverError, VRFError
from ..puzzle.solver import PuzzleSolver, verify_solution
from ..utils.hash import from_hex

__all__ = ["app", "main"]

_DEFAULT_RPC = os.getenv("NATIVE_VRF_RPC_URL") or DEFAULT_RPC_URL

app = typer.Typer(
    name="native-vrf",
    help="Native VRF coordinator and fulfiller tools.",
    no_args_is_help=True,
    add_completion=False,
)


def _opt_rpc() -> str:
    return typer.Option(_DEFAULT_RPC, "--rpc", help=f"Coordinator endpoint (default: {_DEFAULT_RPC})")  # type: ignore[return-value]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_int(s: str, name: str) -> int:
    try:
        return int(s, 0)
    except ValueError:
        raise typer.BadParameter(f"{name} must be an integer (decimal or 0x-hex)")


def _signer(key: Optional[str]) -> LocalSigner:
    return LocalSigner.from_key(key) if key else LocalSigner.from_env()


@app.command("status")
def cmd_status(rpc: str = _opt_rpc()) -> None:
    """Show coordinator counters and parameters."""
    from ..rpc.client import HttpCoordinatorClient

    client = HttpCoordinatorClient(rpc)
    try:
        res = client.status()
    except VRFError as e:
        raise SystemExit(f"coordinator error: {e}")
    except Exception as e:
        raise SystemExit(f"RPC failed: {e}")
    finally:
        client.close()
    typer.echo(json.dumps(res, indent=2))


@app.command("solve")
def cmd_solve(
    seed: str = typer.Option(..., "--seed", help="Previous random value (decimal or 0x-hex)."),
    difficulty: int = typer.Option(..., "--difficulty", "-d", min=1, help="Puzzle difficulty."),
    start: int = typer.Option(0, "--start", min=0, help="First input to try."),
    max_iterations: int = typer.Option(1_000_000, "--max-iterations", min=1, help="Search budget."),
    key: Optional[str] = typer.Option(None, "--key", help=f"Private key (default: ${ENV_PRIVATE_KEY})."),
) -> None:
    """Search for an input whose signed message meets the difficulty."""
    solver = PuzzleSolver(_signer(key), difficulty=difficulty, max_iterations=max_iterations)
    try:
        sol = solver.solve(_parse_int(seed, "seed"), start=start)
    except SolverError as e:
        raise SystemExit(f"no solution: {e}")
    out = sol.to_dict()
    out["signer"] = solver.signer.address
    typer.echo(json.dumps(out, indent=2))


@app.command("verify")
def cmd_verify(
    seed: str = typer.Option(..., "--seed", help="Previous random value (decimal or 0x-hex)."),
    input_value: str = typer.Option(..., "--input", "-i", help="Puzzle input."),
    signature: str = typer.Option(..., "--signature", "-s", help="0x-hex 65-byte signature."),
    difficulty: int = typer.Option(..., "--difficulty", "-d", min=1, help="Puzzle difficulty."),
    signer: Optional[str] = typer.Option(None, "--signer", help="Expected signer address."),
) -> None:
    """Check a candidate solution; exits 1 if it is not valid."""
    ok = verify_solution(
        _parse_int(seed, "seed"),
        _parse_int(input_value, "input"),
        from_hex(signature),
        difficulty=difficulty,
        signer=signer,
    )
    typer.echo(json.dumps({"valid": ok}, indent=2))
    if not ok:
        raise typer.Exit(code=1)


@app.command("worker")
def cmd_worker(
    rpc: str = _opt_rpc(),
    key: Optional[str] = typer.Option(None, "--key", help=f"Private key (default: ${ENV_PRIVATE_KEY})."),
    delay: Optional[float] = typer.Option(None, "--delay", min=0.0, help="Seconds between polling rounds."),
    rounds: Optional[int] = typer.Option(None, "--rounds", min=1, help="Stop after this many rounds."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
) -> None:
    """Poll the coordinator and fulfill pending requests in order."""
    from ..rpc.client import HttpCoordinatorClient
    from ..worker import FulfillmentWorker

    _configure_logging(log_level)
    cfg = VRFConfig.from_env().worker
    cfg.rpc_url = rpc
    if delay is not None:
        cfg.poll_delay_s = delay
    client = HttpCoordinatorClient(rpc)
    worker = FulfillmentWorker(client, _signer(key), config=cfg)
    try:
        asyncio.run(worker.run_forever(max_rounds=rounds))
    finally:
        client.close()


@app.command("serve")
def cmd_serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address."),
    port: int = typer.Option(8645, "--port", "-p", help="Bind port."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="JSON config file (default: environment)."),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level."),
) -> None:
    """Serve the coordinator REST API."""
    import uvicorn

    from ..coordinator import Coordinator
    from ..rpc.router import create_app

    _configure_logging(log_level)
    cfg = load_config(config)
    coordinator = Coordinator.from_config(cfg)
    typer.echo(f"serving coordinator {coordinator.address} on http://{host}:{port}/vrf", err=True)
    uvicorn.run(create_app(coordinator), host=host, port=port, log_level=log_level.lower())


def main(argv: Optional[Sequence[str]] = None) -> None:  # pragma: no cover - thin wrapper
    """Entry-point for the `native-vrf` console script."""
    try:
        app(args=list(argv) if argv is not None else None, prog_name="native-vrf")
    except KeyboardInterrupt:
        typer.echo("", err=True)
        sys.exit(130)


if __name__ == "__main__":  # pragma: no cover
    main()
