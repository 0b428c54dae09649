from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, List, Sequence

import pytest
from eth_account import Account
from eth_account.signers.local import LocalAccount

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from smartsafe import Chain, SmartSafe, SmartSafeFactory, bootstrap, sign_digest  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    home = tmp_path.resolve()
    monkeypatch.setenv("SMARTSAFE_STATE_DIR", str(home))
    for key in ("SMARTSAFE_AUDIT", "SMARTSAFE_LOG_LEVEL", "SMARTSAFE_SIGNER_KEY"):
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    return home


@pytest.fixture()
def accounts() -> List[LocalAccount]:
    return [Account.from_key("0x" + f"{index:064x}") for index in range(1, 7)]


@pytest.fixture()
def deployer(accounts: List[LocalAccount]) -> LocalAccount:
    return accounts[5]


@pytest.fixture()
def chain() -> Chain:
    return Chain()


@pytest.fixture()
def factory(chain: Chain, deployer: LocalAccount) -> SmartSafeFactory:
    return bootstrap(chain, deployer.address)


@pytest.fixture()
def make_safe(chain: Chain, factory: SmartSafeFactory, deployer: LocalAccount) -> Callable[..., SmartSafe]:
    def _make(owners: Sequence[LocalAccount], threshold: int, *, funds: int = 0) -> SmartSafe:
        address = factory.deploy_smart_safe_proxy([owner.address for owner in owners], threshold, sender=deployer.address)
        safe = factory.instance(address)
        if funds:
            chain.credit(safe.address, funds)
        return safe

    return _make


@pytest.fixture()
def propose() -> Callable[..., int]:
    def _propose(safe: SmartSafe, signer: LocalAccount, to: str, value: int = 0, payload: bytes = b"") -> int:
        digest = safe.transaction_digest(safe.address, to, safe.nonce, value, payload)
        signature = sign_digest(signer.key, digest)
        return safe.create_transaction_proposal(
            safe.address, to, value, payload, signer.address, digest, signature, sender=signer.address
        )

    return _propose


@pytest.fixture()
def cosign() -> Callable[..., int]:
    def _cosign(safe: SmartSafe, sequence: int, signer: LocalAccount) -> int:
        digest = safe.expected_digest(sequence)
        signature = sign_digest(signer.key, digest)
        return safe.add_transaction_signature(sequence, signer.address, digest, signature, sender=signer.address)

    return _cosign
