"""Failure taxonomy shared by the safe, its ledger and the deployment factory.

Every error mirrors a Solidity custom error: it carries a canonical
signature such as ``NonceMismatch(uint256,uint256)`` and can be rendered as
ABI revert data (``selector || abi.encode(args)``). Failed forwarded calls
surface that payload unmodified so callers can decode the underlying cause
with :func:`decode_error`.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Type

from eth_abi import decode, encode
from eth_utils import keccak, to_checksum_address


def _split_signature(signature: str) -> Tuple[str, List[str]]:
    name, _, rest = signature.partition("(")
    inner = rest[:-1] if rest.endswith(")") else rest
    types = [part.strip() for part in inner.split(",") if part.strip()]
    return name, types


_REGISTRY: Dict[bytes, Type["SafeError"]] = {}


class SafeError(RuntimeError):
    """Base class for every failure raised by SmartSafe components."""

    signature = "SafeError()"
    fields: Tuple[str, ...] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        shadowed = [name for name in cls.fields if name == "values" or hasattr(SafeError, name)]
        if shadowed:
            raise TypeError(f"{cls.__name__} field(s) {shadowed} shadow SafeError attributes")
        _REGISTRY[cls.selector()] = cls

    def __init__(self, *values: Any) -> None:
        if len(values) != len(self.fields):
            raise TypeError(f"{type(self).__name__} expects {len(self.fields)} argument(s), got {len(values)}")
        self.values = values
        for field_name, value in zip(self.fields, values):
            setattr(self, field_name, value)
        super().__init__(self._describe())

    @classmethod
    def selector(cls) -> bytes:
        return keccak(text=cls.signature)[:4]

    @classmethod
    def types(cls) -> List[str]:
        return _split_signature(cls.signature)[1]

    def _describe(self) -> str:
        name = _split_signature(self.signature)[0]
        rendered = []
        for field_name, value in zip(self.fields, self.values):
            if isinstance(value, (bytes, bytearray)):
                value = "0x" + bytes(value).hex()
            rendered.append(f"{field_name}={value}")
        return f"{name}({', '.join(rendered)})"

    @property
    def revert_data(self) -> bytes:
        """ABI encoded diagnostic payload for this failure."""

        cls = type(self)
        return cls.selector() + encode(cls.types(), list(self.values))


# -- validation -----------------------------------------------------------
class InvalidOwners(SafeError):
    signature = "InvalidOwners(string)"
    fields = ("reason",)


class InvalidThreshold(SafeError):
    signature = "InvalidThreshold(uint256,uint256)"
    fields = ("threshold", "owners")


class InvalidAddress(SafeError):
    signature = "InvalidAddress(string)"
    fields = ("value",)


# -- authorization --------------------------------------------------------
class CallerIsNotAnOwner(SafeError):
    signature = "CallerIsNotAnOwner(address)"
    fields = ("caller",)


class InvalidSignature(SafeError):
    signature = "InvalidSignature(address)"
    fields = ("signer",)


class DigestMismatch(SafeError):
    signature = "DigestMismatch(bytes32,bytes32)"
    fields = ("expected", "got")


# -- state ----------------------------------------------------------------
class AlreadyInitialized(SafeError):
    signature = "AlreadyInitialized()"


class NotInitialized(SafeError):
    signature = "NotInitialized()"


class UnknownProposal(SafeError):
    signature = "UnknownProposal(uint256)"
    fields = ("sequence",)


class NonceMismatch(SafeError):
    signature = "NonceMismatch(uint256,uint256)"
    fields = ("required", "got")


class ProposalInactive(NonceMismatch):
    """Raised when an already executed proposal is targeted again."""

    signature = "ProposalInactive(uint256,uint256)"


class InsufficientSignatures(SafeError):
    signature = "InsufficientSignatures(uint256,uint256)"
    fields = ("collected", "threshold")


class SignaturesAlreadyCollected(SafeError):
    signature = "SignaturesAlreadyCollected(uint256,uint256)"
    fields = ("sequence", "threshold")


class AlreadySigned(SafeError):
    signature = "AlreadySigned(uint256,address)"
    fields = ("sequence", "signer")


class ReentrantCall(SafeError):
    signature = "ReentrantCall()"


# -- deployment -----------------------------------------------------------
class AddressIsNotAContract(SafeError):
    signature = "AddressIsNotAContract(address)"
    fields = ("address",)


class MismatchedAddress(SafeError):
    signature = "MismatchedAddress(address,address)"
    fields = ("predicted", "actual")


class DeployFailed(SafeError):
    signature = "DeployFailed(bytes)"
    fields = ("data",)


# -- execution ------------------------------------------------------------
class ExecutionFailed(SafeError):
    signature = "ExecutionFailed(bytes)"
    fields = ("data",)


class InsufficientBalance(SafeError):
    signature = "InsufficientBalance(address,uint256,uint256)"
    fields = ("account", "balance", "required")


class NonPayable(SafeError):
    signature = "NonPayable(string)"
    fields = ("function",)


class UnknownSelector(SafeError):
    signature = "UnknownSelector(bytes4)"
    fields = ("function_selector",)


class MalformedCalldata(SafeError):
    signature = "MalformedCalldata(bytes4)"
    fields = ("function_selector",)


def decode_error(data: bytes) -> Optional[SafeError]:
    """Rebuild the :class:`SafeError` encoded in *data*, if it is a known one."""

    payload = bytes(data)
    if len(payload) < 4:
        return None
    cls = _REGISTRY.get(payload[:4])
    if cls is None:
        return None
    values = list(decode(cls.types(), payload[4:]))
    for index, typ in enumerate(cls.types()):
        if typ == "address":
            values[index] = to_checksum_address(values[index])
    return cls(*values)


__all__ = [
    "AddressIsNotAContract",
    "AlreadyInitialized",
    "AlreadySigned",
    "CallerIsNotAnOwner",
    "DeployFailed",
    "DigestMismatch",
    "ExecutionFailed",
    "InsufficientBalance",
    "InsufficientSignatures",
    "InvalidAddress",
    "InvalidOwners",
    "InvalidSignature",
    "InvalidThreshold",
    "MalformedCalldata",
    "MismatchedAddress",
    "NonPayable",
    "NonceMismatch",
    "NotInitialized",
    "ProposalInactive",
    "ReentrantCall",
    "SafeError",
    "SignaturesAlreadyCollected",
    "UnknownProposal",
    "UnknownSelector",
    "decode_error",
]
