"""Tests for environment driven settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from smartsafe import Chain, bootstrap
from smartsafe.config import Settings, state_dir
from smartsafe.utils import verify_chain


def test_defaults(isolated_home: Path) -> None:
    settings = Settings.from_env(isolated_home / "missing.env")
    assert settings.state_dir == isolated_home
    assert settings.audit is False
    assert settings.log_level == "INFO"
    assert settings.signer_key is None


def test_dotenv_file_is_loaded(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("SMARTSAFE_AUDIT=yes\nSMARTSAFE_LOG_LEVEL=debug\nSMARTSAFE_SIGNER_KEY=0xabc\n", encoding="utf-8")
    settings = Settings.from_env(env_file)
    assert settings.audit is True
    assert settings.log_level == "DEBUG"
    assert settings.signer_key == "0xabc"


def test_environment_wins_over_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("SMARTSAFE_AUDIT=1\n", encoding="utf-8")
    monkeypatch.setenv("SMARTSAFE_AUDIT", "off")
    assert Settings.from_env(env_file).audit is False


def test_chain_from_settings_writes_to_configured_state_dir(isolated_home: Path, deployer) -> None:
    elsewhere = isolated_home / "elsewhere"
    chain = Chain.from_settings(Settings(state_dir=elsewhere, audit=True))
    assert chain.audit is True
    assert chain.state_dir == elsewhere

    bootstrap(chain, deployer.address).deploy_smart_safe_proxy([deployer.address], 1, sender=deployer.address)

    assert (elsewhere / "audit.jsonl").exists()
    assert (elsewhere / "audit_ed25519.pem").exists()
    assert not (isolated_home / "audit.jsonl").exists()
    assert verify_chain(elsewhere) == 2
    assert Chain.from_settings(Settings(state_dir=elsewhere)).audit is False


def test_state_dir_override(isolated_home: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    assert state_dir() == isolated_home
    monkeypatch.delenv("SMARTSAFE_STATE_DIR")
    assert state_dir() == Path.home() / ".smartsafe"
