"""Solidity ABI helpers: selectors, call data and address normalisation."""

from __future__ import annotations

from typing import Any, List, Sequence, Tuple

from eth_abi import decode, encode
from web3 import Web3

from .errors import InvalidAddress

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def parse_signature(signature: str) -> Tuple[str, List[str]]:
    """Split ``name(t1,t2)`` into its name and parameter types."""

    name, sep, rest = signature.partition("(")
    if not sep or not rest.endswith(")") or not name:
        raise ValueError(f"malformed function signature {signature!r}")
    types = [part.strip() for part in rest[:-1].split(",") if part.strip()]
    return name, types


def selector(signature: str) -> bytes:
    name, types = parse_signature(signature)
    canonical = f"{name}({','.join(types)})"
    return bytes(Web3.keccak(text=canonical)[:4])


def encode_call(signature: str, args: Sequence[Any]) -> bytes:
    _, types = parse_signature(signature)
    return selector(signature) + encode(types, list(args))


def _normalise(typ: str, value: Any) -> Any:
    if typ == "address":
        return Web3.to_checksum_address(value)
    if typ == "address[]":
        return [Web3.to_checksum_address(item) for item in value]
    return value


def decode_arguments(types: Sequence[str], payload: bytes) -> List[Any]:
    """Decode ABI *payload* with addresses returned in checksum form."""

    values = decode(list(types), bytes(payload))
    return [_normalise(typ, value) for typ, value in zip(types, values)]


def to_checksum(address: Any) -> str:
    if isinstance(address, (bytes, bytearray)) and len(address) == 20:
        return Web3.to_checksum_address(bytes(address))
    if not isinstance(address, str) or not Web3.is_address(address):
        raise InvalidAddress(str(address))
    return Web3.to_checksum_address(address)


def as_bytes(value: Any) -> bytes:
    """Accept raw bytes or a ``0x`` prefixed hex string."""

    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        text = value[2:] if value.startswith(("0x", "0X")) else value
        return bytes.fromhex(text)
    raise TypeError(f"expected bytes or hex string, got {type(value).__name__}")


__all__ = [
    "ZERO_ADDRESS",
    "as_bytes",
    "decode_arguments",
    "encode_call",
    "parse_signature",
    "selector",
    "to_checksum",
]
