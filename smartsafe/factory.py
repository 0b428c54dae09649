"""Deterministic deployment of SmartSafe clones.

Each deployment derives a salt from the first owner and the factory's
deployment counter, predicts the CREATE2 address of an EIP-1167 clone of the
shared implementation, creates the clone, checks that it landed on the
predicted address and initialises it with ``setupOwners`` in the same atomic
call.
"""

from __future__ import annotations

import logging
from typing import List, Sequence

from eth_abi import encode
from eth_utils import keccak
from hexbytes import HexBytes

from .abi import as_bytes, encode_call, to_checksum
from .chain import Chain, Contract, Message, clone_init_code, create2_address, entrypoint
from .errors import (
    AddressIsNotAContract,
    CallerIsNotAnOwner,
    DeployFailed,
    InvalidOwners,
    InvalidThreshold,
    MismatchedAddress,
)
from .owners import MAX_THRESHOLD
from .safe import SETUP_SIGNATURE, SmartSafe

logger = logging.getLogger(__name__)


def compute_salt(owner: str, counter: int) -> HexBytes:
    return HexBytes(keccak(encode(["address", "uint256"], [to_checksum(owner), int(counter)])))


def compute_address(factory: str, implementation: str, owner: str, counter: int) -> str:
    """Predict the clone address *factory* will produce for *owner* at *counter*."""

    salt = compute_salt(owner, counter)
    return create2_address(to_checksum(factory), bytes(salt), clone_init_code(to_checksum(implementation)))


class SmartSafeFactory(Contract):
    """Produces SmartSafe clones at predictable addresses."""

    _storage = ("owner", "implementation", "deployment_counter", "_instances")

    def __init__(self, chain: Chain, address: str, implementation: str, owner: str) -> None:
        super().__init__(chain, address)
        self.implementation = to_checksum(implementation)
        self.owner = to_checksum(owner)
        self.deployment_counter = 0
        self._instances: List[str] = []

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise CallerIsNotAnOwner(caller)

    # -- prediction -------------------------------------------------------
    def compute_salt(self, owner: str) -> HexBytes:
        return compute_salt(owner, self.deployment_counter)

    def compute_address(self, owner: str) -> str:
        return compute_address(self.address, self.implementation, owner, self.deployment_counter)

    @property
    def deployed_instances(self) -> List[str]:
        return list(self._instances)

    # -- deployment -------------------------------------------------------
    @entrypoint("deploySmartSafeProxy(address[],uint8)", payable=True, returns="address")
    def deploy_smart_safe_proxy(self, msg: Message, owners: Sequence[str], threshold: int) -> str:
        if not self.chain.is_contract(self.implementation):
            raise AddressIsNotAContract(self.implementation)
        owners = [to_checksum(owner) for owner in owners]
        if not owners:
            raise InvalidOwners("owner set is empty")
        if not 1 <= int(threshold) <= min(len(owners), MAX_THRESHOLD):
            raise InvalidThreshold(max(int(threshold), 0), len(owners))

        salt = self.compute_salt(owners[0])
        predicted = self.compute_address(owners[0])
        actual = self.chain.create2_clone(self.address, bytes(salt), self.implementation)
        if actual != predicted:
            raise MismatchedAddress(predicted, actual)

        data = encode_call(SETUP_SIGNATURE, [owners, int(threshold)])
        result = self.chain.call(self.address, actual, value=msg.value, data=data)
        if not result.success:
            raise DeployFailed(bytes(result.return_data))

        self.deployment_counter += 1
        self._instances.append(actual)
        self.emit("SmartSafeDeployed", instance=actual)
        logger.info("factory %s: deployed safe %s for %d owner(s)", self.address, actual, len(owners))
        return actual

    @entrypoint("callImpl(bytes,address)", payable=True, returns="bytes")
    def call_impl(self, msg: Message, data: bytes, target: str) -> bytes:
        self._only_owner(msg.sender)
        result = self.chain.call(self.address, to_checksum(target), value=msg.value, data=as_bytes(data))
        if not result.success:
            raise DeployFailed(bytes(result.return_data))
        self.emit("CallCompleted", data=bytes(result.return_data))
        return bytes(result.return_data)

    # -- administration ---------------------------------------------------
    @entrypoint("setSmartSafeImplementation(address)")
    def set_smart_safe_implementation(self, msg: Message, new_implementation: str) -> None:
        self._only_owner(msg.sender)
        new_implementation = to_checksum(new_implementation)
        if not self.chain.is_contract(new_implementation):
            raise AddressIsNotAContract(new_implementation)
        previous, self.implementation = self.implementation, new_implementation
        self.emit("ImplementationUpdated", previous=previous, implementation=new_implementation)

    @entrypoint("renounceOwnership(address)")
    def renounce_ownership(self, msg: Message, new_owner: str) -> None:
        self._only_owner(msg.sender)
        previous, self.owner = self.owner, to_checksum(new_owner)
        self.emit("OwnershipTransferred", previous=previous, owner=self.owner)

    def instance(self, address: str) -> SmartSafe:
        """Return the deployed safe at *address*."""

        address = to_checksum(address)
        if address not in self._instances:
            raise AddressIsNotAContract(address)
        contract = self.chain.code[address]
        assert isinstance(contract, SmartSafe)
        return contract


def bootstrap(chain: Chain, deployer: str) -> SmartSafeFactory:
    """Deploy a SmartSafe implementation and a factory owned by *deployer*."""

    implementation = chain.deploy(SmartSafe, deployer=deployer)
    return chain.deploy(SmartSafeFactory, implementation.address, deployer, deployer=deployer)


__all__ = ["SmartSafeFactory", "bootstrap", "compute_address", "compute_salt"]
