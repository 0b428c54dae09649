"""Safe orchestration layer: proposals, co-signatures and ordered execution."""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Sequence

from hexbytes import HexBytes

from .abi import as_bytes, to_checksum
from .chain import Chain, Contract, Message, entrypoint
from .errors import (
    AlreadyInitialized,
    AlreadySigned,
    CallerIsNotAnOwner,
    DigestMismatch,
    ExecutionFailed,
    InsufficientSignatures,
    InvalidSignature,
    NonceMismatch,
    NotInitialized,
    ProposalInactive,
    ReentrantCall,
    SignaturesAlreadyCollected,
)
from .ledger import Proposal, TransactionLedger
from .owners import OwnerRegistry
from .signatures import SignatureVerifier, transaction_digest

logger = logging.getLogger(__name__)

SETUP_SIGNATURE = "setupOwners(address[],uint8)"


def _bytes32(value: bytes) -> bytes:
    return bytes(value)[:32].ljust(32, b"\x00")


class SmartSafe(Contract):
    """Multi-owner vault executing quorum-signed calls strictly in nonce order.

    A freshly deployed instance is inert until :meth:`setup_owners` runs.
    Afterwards any owner may propose a call by signing its digest, other
    owners add signatures until the threshold is met, and any owner then
    executes it. Proposals execute in creation order only.
    """

    _storage = ("owners", "ledger", "_initialized", "_entered")

    def __init__(self, chain: Chain, address: str, *, verifier: Optional[SignatureVerifier] = None) -> None:
        super().__init__(chain, address)
        self.verifier = verifier or SignatureVerifier()
        self.owners = OwnerRegistry()
        self.ledger = TransactionLedger()
        self._initialized = False
        self._entered = False

    def clone(self, address: str) -> "SmartSafe":
        return type(self)(self.chain, address, verifier=self.verifier)

    # -- guards -----------------------------------------------------------
    @contextmanager
    def _non_reentrant(self) -> Iterator[None]:
        if self._entered:
            raise ReentrantCall()
        self._entered = True
        try:
            yield
        finally:
            self._entered = False

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitialized()

    def _authenticate(self, signer: str, expected: bytes, digest: bytes, signature: bytes) -> None:
        if bytes(digest) != bytes(expected):
            raise DigestMismatch(bytes(expected), _bytes32(digest))
        if not self.verifier.verify(signer, expected, signature):
            raise InvalidSignature(signer)

    # -- setup ------------------------------------------------------------
    @entrypoint(SETUP_SIGNATURE, payable=True)
    def setup_owners(self, msg: Message, owners: Sequence[str], threshold: int) -> None:
        if self._initialized:
            raise AlreadyInitialized()
        self.owners.setup(owners, threshold)
        self._initialized = True
        self.emit("OwnersSetup", owners=self.owners.owners, threshold=self.owners.threshold)

    def receive(self, msg: Message) -> bytes:
        if msg.value:
            self.emit("Received", sender=msg.sender, value=msg.value)
        return b""

    # -- proposals --------------------------------------------------------
    @entrypoint(
        "createTransactionProposal(address,address,uint256,bytes,address,bytes32,bytes)",
        returns="uint256",
    )
    def create_transaction_proposal(
        self,
        msg: Message,
        origin: str,
        to: str,
        value: int,
        payload: bytes,
        proposer: str,
        digest: bytes,
        signature: bytes,
    ) -> int:
        with self._non_reentrant():
            self._require_initialized()
            proposer = to_checksum(proposer)
            if not self.owners.is_owner(proposer):
                raise CallerIsNotAnOwner(proposer)
            origin, to = to_checksum(origin), to_checksum(to)
            payload, signature = as_bytes(payload), as_bytes(signature)
            expected = transaction_digest(origin, to, self.ledger.nonce, value, payload)
            self._authenticate(proposer, expected, as_bytes(digest), signature)
            sequence = self.ledger.create_proposal(origin, to, value, payload, signature, proposer)
            self.emit("ProposalCreated", sequence=sequence, proposer=proposer)
            logger.info("safe %s: proposal %d created by %s", self.address, sequence, proposer)
            if self.owners.threshold == 1:
                self._execute(sequence, proposer)
            return sequence

    @entrypoint("addTransactionSignature(uint256,address,bytes32,bytes)")
    def add_transaction_signature(
        self,
        msg: Message,
        sequence: int,
        signer: str,
        digest: bytes,
        signature: bytes,
    ) -> int:
        with self._non_reentrant():
            self._require_initialized()
            proposal = self.ledger.get_proposal(sequence)
            if not proposal.active:
                raise ProposalInactive(self.ledger.next_to_execute, sequence)
            signer = to_checksum(signer)
            if not self.owners.is_owner(signer):
                raise CallerIsNotAnOwner(signer)
            signature = as_bytes(signature)
            self._authenticate(signer, self.expected_digest(sequence), as_bytes(digest), signature)
            if signer in proposal.signers:
                raise AlreadySigned(sequence, signer)
            threshold = self.owners.threshold
            if len(proposal.signatures) + 1 > threshold:
                raise SignaturesAlreadyCollected(sequence, threshold)
            count = self.ledger.append_signature(sequence, signature, signer)
            self.emit("SignatureAdded", sequence=sequence, signer=signer)
            return count

    # -- execution --------------------------------------------------------
    @entrypoint("executeTransaction(uint256)", returns="bytes")
    def execute_transaction(self, msg: Message, sequence: int) -> bytes:
        with self._non_reentrant():
            self._require_initialized()
            return self._execute(sequence, msg.sender)

    def _execute(self, sequence: int, caller: str) -> bytes:
        if not self.owners.is_owner(caller):
            raise CallerIsNotAnOwner(caller)
        proposal = self.ledger.get_proposal(sequence)
        required = self.ledger.next_to_execute
        if not proposal.active:
            raise ProposalInactive(required, sequence)
        if sequence != required:
            raise NonceMismatch(required, sequence)
        threshold = self.owners.threshold
        if len(proposal.signatures) < threshold:
            raise InsufficientSignatures(len(proposal.signatures), threshold)

        result = self.chain.call(self.address, proposal.to, value=proposal.value, data=bytes(proposal.payload))
        if not result.success:
            logger.warning("safe %s: proposal %d failed, left active for retry", self.address, sequence)
            raise ExecutionFailed(bytes(result.return_data))
        # rolled-back nested frames replace ledger storage, so go through self.ledger
        self.ledger.mark_executed(sequence)
        self.emit("ExecutionSuccess", sequence=sequence)
        logger.info("safe %s: proposal %d executed by %s", self.address, sequence, caller)
        return bytes(result.return_data)

    # -- views ------------------------------------------------------------
    @property
    def nonce(self) -> int:
        return self.ledger.nonce

    @property
    def next_to_execute(self) -> int:
        return self.ledger.next_to_execute

    @property
    def initialized(self) -> bool:
        return self._initialized

    def get_owners(self) -> List[str]:
        return self.owners.owners

    def get_threshold(self) -> int:
        return self.owners.threshold

    def is_owner(self, address: str) -> bool:
        return self.owners.is_owner(address)

    def get_proposal(self, sequence: int) -> Proposal:
        return copy.deepcopy(self.ledger.get_proposal(sequence))

    def get_signatures(self, sequence: int) -> List[HexBytes]:
        return self.ledger.get_signatures(sequence)

    def transaction_digest(self, origin: str, to: str, nonce: int, value: int, payload: bytes) -> HexBytes:
        return transaction_digest(origin, to, nonce, value, as_bytes(payload))

    def expected_digest(self, sequence: int) -> HexBytes:
        proposal = self.ledger.get_proposal(sequence)
        return transaction_digest(proposal.origin, proposal.to, proposal.sequence, proposal.value, proposal.payload)


__all__ = ["SETUP_SIGNATURE", "SmartSafe"]
