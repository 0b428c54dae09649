"""Tests for the helper command line interface."""

from __future__ import annotations

import json

from smartsafe import compute_address, transaction_digest
from smartsafe.cli import main
from smartsafe.utils import logbook

TARGET = "0x" + "22" * 20


def _run(capsys, *argv: str) -> dict:
    assert main(list(argv)) == 0
    return json.loads(capsys.readouterr().out)


def test_digest_sign_recover(capsys, accounts) -> None:
    owner = accounts[0]
    digest = _run(capsys, "digest", "--from", owner.address, "--to", TARGET, "--nonce", "2", "--value", "5", "--data", "0x01")
    expected = transaction_digest(owner.address, TARGET, 2, 5, b"\x01")
    assert digest["digest"] == "0x" + bytes(expected).hex()

    signed = _run(capsys, "sign", "--digest", digest["digest"], "--key", owner.key.hex())
    recovered = _run(capsys, "recover", "--digest", digest["digest"], "--signature", signed["signature"])
    assert recovered["signer"] == owner.address


def test_sign_uses_configured_key(capsys, monkeypatch, accounts) -> None:
    monkeypatch.setenv("SMARTSAFE_SIGNER_KEY", accounts[1].key.hex())
    digest = "0x" + "ab" * 32
    signed = _run(capsys, "sign", "--digest", digest)
    recovered = _run(capsys, "recover", "--digest", digest, "--signature", signed["signature"])
    assert recovered["signer"] == accounts[1].address


def test_predict(capsys, accounts) -> None:
    factory, implementation, owner = accounts[3].address, accounts[4].address, accounts[0].address
    result = _run(
        capsys,
        "predict",
        "--factory",
        factory,
        "--implementation",
        implementation,
        "--owner",
        owner,
        "--counter",
        "3",
    )
    assert result["address"] == compute_address(factory, implementation, owner, 3)
    assert len(result["salt"]) == 66


def test_audit_verify(capsys, isolated_home) -> None:
    logbook.info({"event": "unit"})
    result = _run(capsys, "audit", "verify")
    assert result == {"entries": 1, "path": str(isolated_home / "audit.jsonl")}


def test_version_and_help(capsys) -> None:
    assert main(["--version"]) == 0
    assert capsys.readouterr().out.strip() == "smartsafe 0.1.0"
    assert main([]) == 1
