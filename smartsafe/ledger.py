"""Append-only store of safe transaction proposals keyed by sequence number."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List

from hexbytes import HexBytes

from .errors import ProposalInactive, UnknownProposal


@dataclass
class Proposal:
    """A pending or executed outbound call and the signatures collected for it."""

    sequence: int
    origin: str
    to: str
    value: int
    payload: HexBytes
    signatures: List[HexBytes] = field(default_factory=list)
    signers: List[str] = field(default_factory=list)
    active: bool = True

    def serialise(self) -> Dict[str, object]:
        return {
            "sequence": self.sequence,
            "from": self.origin,
            "to": self.to,
            "value": self.value,
            "payload": "0x" + bytes(self.payload).hex(),
            "signatures": ["0x" + bytes(sig).hex() for sig in self.signatures],
            "signers": list(self.signers),
            "active": self.active,
        }


class TransactionLedger:
    """Proposals in creation order.

    ``nonce`` is the next sequence number to hand out; ``next_to_execute``
    is the oldest proposal still waiting for execution. Proposals are never
    deleted, executed ones stay behind as an audit trail.
    """

    def __init__(self) -> None:
        self._proposals: List[Proposal] = []
        self._executed = 0

    @property
    def nonce(self) -> int:
        return len(self._proposals)

    @property
    def next_to_execute(self) -> int:
        return self._executed

    def create_proposal(self, origin: str, to: str, value: int, payload: bytes, signature: bytes, signer: str) -> int:
        if value < 0:
            raise ValueError("proposal value must be non-negative")
        sequence = self.nonce
        self._proposals.append(
            Proposal(
                sequence=sequence,
                origin=origin,
                to=to,
                value=int(value),
                payload=HexBytes(payload),
                signatures=[HexBytes(signature)],
                signers=[signer],
            )
        )
        return sequence

    def get_proposal(self, sequence: int) -> Proposal:
        if not 0 <= sequence < len(self._proposals):
            raise UnknownProposal(max(int(sequence), 0))
        return self._proposals[sequence]

    def get_signatures(self, sequence: int) -> List[HexBytes]:
        return list(self.get_proposal(sequence).signatures)

    def append_signature(self, sequence: int, signature: bytes, signer: str) -> int:
        proposal = self.get_proposal(sequence)
        if not proposal.active:
            raise ProposalInactive(self._executed, sequence)
        proposal.signatures.append(HexBytes(signature))
        proposal.signers.append(signer)
        return len(proposal.signatures)

    def mark_executed(self, sequence: int) -> None:
        proposal = self.get_proposal(sequence)
        if not proposal.active:
            raise ProposalInactive(self._executed, sequence)
        proposal.active = False
        self._executed = sequence + 1

    def __len__(self) -> int:
        return len(self._proposals)

    def __iter__(self) -> Iterator[Proposal]:
        return iter(list(self._proposals))


__all__ = ["Proposal", "TransactionLedger"]
