"""SmartSafe: quorum-controlled vaults with ordered execution and deterministic deployment."""

from .chain import CallResult, Chain, Contract, Event, Message, entrypoint
from .errors import SafeError, decode_error
from .factory import SmartSafeFactory, bootstrap, compute_address, compute_salt
from .ledger import Proposal, TransactionLedger
from .owners import OwnerRegistry
from .safe import SmartSafe
from .signatures import SignatureVerifier, sign_digest, transaction_digest

__version__ = "0.1.0"

__all__ = [
    "CallResult",
    "Chain",
    "Contract",
    "Event",
    "Message",
    "OwnerRegistry",
    "Proposal",
    "SafeError",
    "SignatureVerifier",
    "SmartSafe",
    "SmartSafeFactory",
    "TransactionLedger",
    "bootstrap",
    "compute_address",
    "compute_salt",
    "decode_error",
    "entrypoint",
    "sign_digest",
    "transaction_digest",
]
