"""In-memory world state hosting safes, factories and plain accounts.

The chain serialises every state-mutating call into an atomic frame under a
single re-entrant lock. A frame snapshots balances, the code registry and the
event log on entry, and the storage of each contract the first time that
contract is entered inside it; all of it is restored if anything below raises.
Notifications emitted inside the outermost frame are only published (to the
``smartsafe`` logger and, when enabled, the signed audit trail) once that
frame commits.
"""

from __future__ import annotations

import copy
import functools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional, Tuple, Type, TypeVar

from eth_abi import encode
from eth_abi.exceptions import DecodingError
from eth_utils import encode_hex, keccak, to_canonical_address, to_checksum_address
from hexbytes import HexBytes

from .abi import ZERO_ADDRESS, decode_arguments, parse_signature, selector, to_checksum
from .config import Settings
from .errors import (
    AddressIsNotAContract,
    InsufficientBalance,
    MalformedCalldata,
    NonPayable,
    SafeError,
    UnknownSelector,
)
from .utils import logbook

logger = logging.getLogger(__name__)

C = TypeVar("C", bound="Contract")

# EIP-1167 minimal proxy creation code around the 20-byte implementation.
_CLONE_PREFIX = bytes.fromhex("3d602d80600a3d3981f3363d3d373d3d3d363d73")
_CLONE_SUFFIX = bytes.fromhex("5af43d82803e903d91602b57fd5bf3")


def clone_init_code(implementation: str) -> bytes:
    return _CLONE_PREFIX + to_canonical_address(implementation) + _CLONE_SUFFIX


def create2_address(deployer: str, salt: bytes, init_code: bytes) -> str:
    if len(salt) != 32:
        raise ValueError("CREATE2 salt must be 32 bytes")
    raw = keccak(b"\xff" + to_canonical_address(deployer) + bytes(salt) + keccak(init_code))
    return to_checksum_address(raw[12:])


class Message(NamedTuple):
    sender: str
    value: int


@dataclass
class Event:
    address: str
    name: str
    fields: Dict[str, Any] = field(default_factory=dict)

    def serialise(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"event": self.name, "address": self.address}
        for key, value in self.fields.items():
            payload[key] = encode_hex(value) if isinstance(value, (bytes, bytearray)) else value
        return payload


@dataclass
class CallResult:
    success: bool
    return_data: HexBytes = field(default_factory=lambda: HexBytes(b""))


@dataclass(frozen=True)
class EntryPoint:
    signature: str
    payable: bool
    returns: Optional[str]
    func: Callable[..., Any]

    @property
    def selector(self) -> bytes:
        return selector(self.signature)

    @property
    def types(self) -> List[str]:
        return parse_signature(self.signature)[1]


def entrypoint(signature: str, *, payable: bool = False, returns: Optional[str] = None) -> Callable:
    """Expose a contract method under an ABI *signature*.

    The decorated method receives a :class:`Message` after ``self``. Called
    from Python it takes ``sender=`` (and ``value=`` when payable) keywords
    and runs in its own atomic frame.
    """

    def decorate(func: Callable[..., Any]) -> Callable[..., Any]:
        spec = EntryPoint(signature=signature, payable=payable, returns=returns, func=func)

        @functools.wraps(func)
        def wrapper(self: "Contract", *args: Any, sender: str, value: int = 0) -> Any:
            return self.chain.invoke(self, spec, args, sender=sender, value=value)

        wrapper.__entrypoint__ = spec  # type: ignore[attr-defined]
        return wrapper

    return decorate


class Contract:
    """Base class for code living at an address on a :class:`Chain`."""

    _storage: Tuple[str, ...] = ()
    _abi: Dict[bytes, EntryPoint] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        table: Dict[bytes, EntryPoint] = {}
        for klass in reversed(cls.__mro__):
            for attr in vars(klass).values():
                spec = getattr(attr, "__entrypoint__", None)
                if spec is not None:
                    table[spec.selector] = spec
        cls._abi = table

    def __init__(self, chain: "Chain", address: str) -> None:
        self.chain = chain
        self.address = to_checksum_address(address)

    # -- storage ----------------------------------------------------------
    def snapshot(self) -> Dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._storage}

    def restore(self, state: Dict[str, Any]) -> None:
        for name, value in state.items():
            setattr(self, name, value)

    def clone(self: C, address: str) -> C:
        """Return a fresh instance sharing this contract's code."""

        raise AddressIsNotAContract(self.address)

    # -- messaging --------------------------------------------------------
    def emit(self, name: str, **fields: Any) -> None:
        self.chain.record(Event(self.address, name, fields))

    def receive(self, msg: Message) -> bytes:
        if msg.value:
            raise NonPayable("receive()")
        return b""

    def dispatch(self, msg: Message, data: bytes) -> bytes:
        if not data:
            return self.receive(msg)
        spec = self._abi.get(bytes(data[:4]))
        if spec is None:
            raise UnknownSelector(bytes(data[:4]).ljust(4, b"\x00"))
        if msg.value and not spec.payable:
            raise NonPayable(spec.signature)
        try:
            args = decode_arguments(spec.types, data[4:])
        except DecodingError as exc:
            raise MalformedCalldata(spec.selector) from exc
        result = spec.func(self, msg, *args)
        if spec.returns is None:
            return b""
        return encode([spec.returns], [result])


class Chain:
    """Serialised ledger of balances, code and notifications."""

    def __init__(self, *, audit: bool = False, state_dir: Optional[Path] = None) -> None:
        self.audit = audit
        self.state_dir = state_dir
        self.balances: Dict[str, int] = {}
        self.code: Dict[str, Contract] = {}
        self.events: List[Event] = []
        self._deploy_nonces: Dict[str, int] = {}
        # one storage snapshot table per open frame, keyed by contract address
        self._frames: List[Dict[str, Dict[str, Any]]] = []
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "Chain":
        settings = settings or Settings.from_env()
        if settings.audit:
            logbook.get_logger(settings.log_level, base=settings.state_dir)
        return cls(audit=settings.audit, state_dir=settings.state_dir)

    # -- accounts ---------------------------------------------------------
    def balance_of(self, address: str) -> int:
        return self.balances.get(to_checksum(address), 0)

    def credit(self, address: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("credit amount must be non-negative")
        account = to_checksum(address)
        with self._lock:
            self.balances[account] = self.balances.get(account, 0) + int(amount)

    def is_contract(self, address: str) -> bool:
        return to_checksum(address) in self.code

    def _transfer(self, sender: str, recipient: str, value: int) -> None:
        if value < 0:
            raise ValueError("value must be non-negative")
        if value == 0:
            return
        available = self.balances.get(sender, 0)
        if available < value:
            raise InsufficientBalance(sender, available, value)
        self.balances[sender] = available - value
        self.balances[recipient] = self.balances.get(recipient, 0) + value

    # -- deployment -------------------------------------------------------
    def next_address(self, deployer: str) -> str:
        deployer = to_checksum(deployer)
        nonce = self._deploy_nonces.get(deployer, 0)
        self._deploy_nonces[deployer] = nonce + 1
        raw = keccak(encode(["address", "uint256"], [deployer, nonce]))
        return to_checksum_address(raw[12:])

    def deploy(self, cls: Type[C], *args: Any, deployer: str, **kwargs: Any) -> C:
        """Install a new *cls* contract at the deployer's next address."""

        with self.atomic():
            address = self.next_address(deployer)
            contract = cls(self, address, *args, **kwargs)
            self.code[contract.address] = contract
        logger.debug("deployed %s at %s", cls.__name__, contract.address)
        return contract

    def create2_clone(self, deployer: str, salt: bytes, implementation: str) -> str:
        """Install a clone of *implementation* at its CREATE2 address.

        Returns the zero address when that address is already occupied.
        """

        impl = self.code.get(to_checksum(implementation))
        if impl is None:
            raise AddressIsNotAContract(to_checksum(implementation))
        address = create2_address(deployer, salt, clone_init_code(impl.address))
        if address in self.code:
            return ZERO_ADDRESS
        self.code[address] = impl.clone(address)
        return address

    # -- frames -----------------------------------------------------------
    def _snapshot(self) -> Dict[str, Any]:
        return {
            "balances": dict(self.balances),
            "code": dict(self.code),
            "events": len(self.events),
            "nonces": dict(self._deploy_nonces),
            "storage": {},
        }

    def _restore(self, snap: Dict[str, Any]) -> None:
        self.balances = snap["balances"]
        self.code = snap["code"]
        del self.events[snap["events"]:]
        self._deploy_nonces = snap["nonces"]
        for address, state in snap["storage"].items():
            contract = self.code.get(address)
            if contract is not None:
                contract.restore(copy.deepcopy(state))

    def _touch(self, contract: Contract) -> None:
        """Snapshot *contract* in every open frame that has not seen it yet."""

        state: Optional[Dict[str, Any]] = None
        for frame in self._frames:
            if contract.address not in frame:
                if state is None:
                    state = contract.snapshot()
                frame[contract.address] = state

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Run the enclosed block all-or-nothing, serialised with other frames."""

        with self._lock:
            snap = self._snapshot()
            self._frames.append(snap["storage"])
            try:
                yield
            except BaseException:
                self._frames.pop()
                self._restore(snap)
                raise
            self._frames.pop()
            if not self._frames:
                self._publish(self.events[snap["events"]:])

    def record(self, event: Event) -> None:
        self.events.append(event)

    def _publish(self, events: List[Event]) -> None:
        for event in events:
            payload = event.serialise()
            logger.debug("event %s", payload)
            if self.audit:
                logbook.info(payload, base=self.state_dir)

    def events_for(self, address: Optional[str] = None, name: Optional[str] = None) -> List[Event]:
        matches = []
        for event in self.events:
            if address is not None and event.address != to_checksum(address):
                continue
            if name is not None and event.name != name:
                continue
            matches.append(event)
        return matches

    # -- calls ------------------------------------------------------------
    def invoke(self, contract: Contract, spec: EntryPoint, args: Tuple[Any, ...], *, sender: str, value: int = 0) -> Any:
        """Run a Python-level call to *spec* on *contract* atomically."""

        sender = to_checksum(sender)
        with self.atomic():
            self._touch(contract)
            if value and not spec.payable:
                raise NonPayable(spec.signature)
            self._transfer(sender, contract.address, value)
            return spec.func(contract, Message(sender, value), *args)

    def call(self, sender: str, to: str, *, value: int = 0, data: bytes = b"") -> CallResult:
        """Low-level message call: never raises on failure, reports it instead."""

        sender = to_checksum(sender)
        target = to_checksum(to)
        try:
            with self.atomic():
                self._transfer(sender, target, value)
                contract = self.code.get(target)
                if contract is None:
                    return CallResult(True, HexBytes(b""))
                self._touch(contract)
                output = contract.dispatch(Message(sender, value), bytes(data))
        except SafeError as exc:
            logger.debug("call %s -> %s reverted: %s", sender, target, exc)
            return CallResult(False, HexBytes(exc.revert_data))
        return CallResult(True, HexBytes(output))


__all__ = [
    "CallResult",
    "Chain",
    "Contract",
    "EntryPoint",
    "Event",
    "Message",
    "clone_init_code",
    "create2_address",
    "entrypoint",
]
