"""Headless helper CLI for SmartSafe integrators."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Optional, Sequence

from . import __version__
from .abi import as_bytes
from .config import Settings
from .factory import compute_address, compute_salt
from .signatures import SignatureVerifier, sign_digest, transaction_digest
from .utils import logbook


def _hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="smartsafe", description="SmartSafe digest, signing and deployment helpers")
    parser.add_argument("--version", action="store_true", help="Display version information and exit")
    subparsers = parser.add_subparsers(dest="command")

    digest = subparsers.add_parser("digest", help="Compute a proposal digest")
    digest.add_argument("--from", dest="origin", required=True)
    digest.add_argument("--to", required=True)
    digest.add_argument("--nonce", type=int, required=True)
    digest.add_argument("--value", type=int, default=0)
    digest.add_argument("--data", default="0x")

    sign = subparsers.add_parser("sign", help="Sign a digest as an owner")
    sign.add_argument("--digest", required=True)
    sign.add_argument("--key", help="Private key (defaults to SMARTSAFE_SIGNER_KEY)")

    recover = subparsers.add_parser("recover", help="Recover the signer of a digest")
    recover.add_argument("--digest", required=True)
    recover.add_argument("--signature", required=True)

    predict = subparsers.add_parser("predict", help="Predict a factory deployment address")
    predict.add_argument("--factory", required=True)
    predict.add_argument("--implementation", required=True)
    predict.add_argument("--owner", required=True)
    predict.add_argument("--counter", type=int, default=0)

    audit = subparsers.add_parser("audit", help="Inspect the signed audit trail")
    audit_sub = audit.add_subparsers(dest="audit_command")
    audit_sub.add_parser("verify", help="Verify hash links and signatures")

    return parser


def _handle_digest(args: argparse.Namespace, settings: Settings) -> Any:
    value = transaction_digest(args.origin, args.to, args.nonce, args.value, as_bytes(args.data))
    return {"digest": _hex(value)}


def _handle_sign(args: argparse.Namespace, settings: Settings) -> Any:
    key = args.key or settings.signer_key
    if not key:
        raise SystemExit("no signing key: pass --key or set SMARTSAFE_SIGNER_KEY")
    return {"signature": _hex(sign_digest(key, as_bytes(args.digest)))}


def _handle_recover(args: argparse.Namespace, settings: Settings) -> Any:
    signer = SignatureVerifier().recover(as_bytes(args.digest), as_bytes(args.signature))
    return {"signer": signer}


def _handle_predict(args: argparse.Namespace, settings: Settings) -> Any:
    return {
        "salt": _hex(compute_salt(args.owner, args.counter)),
        "address": compute_address(args.factory, args.implementation, args.owner, args.counter),
    }


def _handle_audit(args: argparse.Namespace, settings: Settings) -> Any:
    if args.audit_command == "verify":
        return {"entries": logbook.verify_chain(settings.state_dir), "path": str(logbook.audit_log(settings.state_dir))}
    raise ValueError("Unknown audit command")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.version:
        print(f"smartsafe {__version__}")
        return 0
    if args.command is None:
        parser.print_help()
        return 1
    settings = Settings.from_env()
    logbook.get_logger(settings.log_level, base=settings.state_dir)
    handlers = {
        "digest": _handle_digest,
        "sign": _handle_sign,
        "recover": _handle_recover,
        "predict": _handle_predict,
        "audit": _handle_audit,
    }
    result = handlers[args.command](args, settings)
    if result is not None:
        json.dump(result, sys.stdout, indent=2, default=str)
        sys.stdout.write("\n")
    return 0


__all__ = ["main"]
