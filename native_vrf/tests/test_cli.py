from __future__ import annotations

import json

from typer.testing import CliRunner

from native_vrf.cli import app

from native_vrf.tests.conftest import FULFILLER_KEY

runner = CliRunner()


def test_solve_then_verify():
    r = runner.invoke(app, ["solve", "--seed", "42", "--difficulty", "4", "--key", FULFILLER_KEY])
    assert r.exit_code == 0, r.output
    sol = json.loads(r.stdout)
    assert int(sol["value"], 16) % 4 == 0

    r = runner.invoke(
        app,
        [
            "verify",
            "--seed", "0x2a",
            "--input", str(sol["input"]),
            "--signature", sol["signature"],
            "--difficulty", "4",
            "--signer", sol["signer"],
        ],
    )
    assert r.exit_code == 0, r.output
    assert json.loads(r.stdout) == {"valid": True}


def test_verify_rejects_bad_signature():
    r = runner.invoke(
        app,
        ["verify", "--seed", "42", "--input", "0", "--signature", "0x" + "00" * 65, "--difficulty", "4"],
    )
    assert r.exit_code == 1
    assert json.loads(r.stdout) == {"valid": False}


def test_solve_budget_exhausted():
    r = runner.invoke(
        app,
        [
            "solve", "--seed", "1", "--difficulty", str(2**255),
            "--max-iterations", "3", "--key", FULFILLER_KEY,
        ],
    )
    assert r.exit_code != 0
