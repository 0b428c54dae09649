"""Transaction digests and owner signature checks.

Owners sign the keccak digest of ``abi.encode(from, to, nonce, value,
payload)`` as an EIP-191 personal message, so any wallet that can sign
messages can co-sign a proposal.
"""

from __future__ import annotations

from typing import Optional

from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import keccak
from hexbytes import HexBytes

from .abi import to_checksum

DIGEST_TYPES = ["address", "address", "uint256", "uint256", "bytes"]
SIGNATURE_LENGTH = 65


def transaction_digest(sender: str, to: str, nonce: int, value: int, payload: bytes) -> HexBytes:
    """Canonical digest binding a transaction to its nonce."""

    encoded = encode(DIGEST_TYPES, [to_checksum(sender), to_checksum(to), int(nonce), int(value), bytes(payload)])
    return HexBytes(keccak(encoded))


def sign_digest(private_key: str, digest: bytes) -> HexBytes:
    signed = Account.sign_message(encode_defunct(primitive=bytes(digest)), private_key=private_key)
    return HexBytes(signed.signature)


class SignatureVerifier:
    """Recover and check secp256k1 owner signatures over a digest."""

    def recover(self, digest: bytes, signature: bytes) -> Optional[str]:
        if len(digest) != 32 or len(signature) != SIGNATURE_LENGTH:
            return None
        try:
            signer = Account.recover_message(encode_defunct(primitive=bytes(digest)), signature=bytes(signature))
        except Exception:
            return None
        return to_checksum(signer)

    def verify(self, signer: str, digest: bytes, signature: bytes) -> bool:
        recovered = self.recover(digest, signature)
        return recovered is not None and recovered == to_checksum(signer)


__all__ = ["SIGNATURE_LENGTH", "SignatureVerifier", "sign_digest", "transaction_digest"]
