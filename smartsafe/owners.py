"""Owner set and quorum threshold of a safe."""

from __future__ import annotations

from typing import Iterable, List

from .abi import ZERO_ADDRESS, to_checksum
from .errors import AlreadyInitialized, InvalidAddress, InvalidOwners, InvalidThreshold

MAX_THRESHOLD = 255  # threshold travels as uint8


class OwnerRegistry:
    """Membership and threshold, written once by :meth:`setup`."""

    def __init__(self) -> None:
        self._owners: List[str] = []
        self._threshold = 0

    @property
    def initialized(self) -> bool:
        return bool(self._owners)

    @property
    def owners(self) -> List[str]:
        return list(self._owners)

    @property
    def threshold(self) -> int:
        return self._threshold

    def setup(self, owners: Iterable[str], threshold: int) -> None:
        if self.initialized:
            raise AlreadyInitialized()
        candidates = list(owners)
        if not candidates:
            raise InvalidOwners("owner set is empty")
        normalised: List[str] = []
        for owner in candidates:
            address = to_checksum(owner)
            if address == ZERO_ADDRESS:
                raise InvalidOwners("zero address cannot be an owner")
            if address in normalised:
                raise InvalidOwners(f"duplicate owner {address}")
            normalised.append(address)
        threshold = int(threshold)
        if not 1 <= threshold <= len(normalised) or threshold > MAX_THRESHOLD:
            raise InvalidThreshold(max(threshold, 0), len(normalised))
        self._owners = normalised
        self._threshold = threshold

    def is_owner(self, address: str) -> bool:
        try:
            return to_checksum(address) in self._owners
        except InvalidAddress:
            return False

    def __len__(self) -> int:
        return len(self._owners)


__all__ = ["MAX_THRESHOLD", "OwnerRegistry"]
