"""Rotating logger plus a tamper-evident, signed audit trail.

Committed safe and factory notifications are appended to ``audit.jsonl`` in
the state directory. Each line links to the previous one through ``prev``
(sha256 over the canonical JSON of ``ts``/``prev``/``record``) and is signed
with an Ed25519 key kept next to the log.
"""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from ..config import state_dir

LOGGER_NAME = "smartsafe"


class AuditLogError(RuntimeError):
    """Raised when the audit trail fails verification."""


def log_file(base: Optional[Path] = None) -> Path:
    return (base or state_dir()) / "logs" / "smartsafe.log"


def audit_log(base: Optional[Path] = None) -> Path:
    return (base or state_dir()) / "audit.jsonl"


def audit_key(base: Optional[Path] = None) -> Path:
    return (base or state_dir()) / "audit_ed25519.pem"


def get_logger(level: Optional[str] = None, base: Optional[Path] = None) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if level:
        logger.setLevel(level.upper())
    if logger.handlers:
        return logger

    path = log_file(base)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=1_000_000, backupCount=5, encoding="utf-8")
    handler.setFormatter(logging.Formatter("%(asctime)s - smartsafe - %(levelname)s - %(message)s"))
    if not level:
        logger.setLevel(logging.INFO)
    logger.addHandler(handler)
    return logger


def _load_or_create_key(base: Optional[Path]) -> ed25519.Ed25519PrivateKey:
    path = audit_key(base)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.exists():
        return serialization.load_pem_private_key(path.read_bytes(), password=None)
    key = ed25519.Ed25519PrivateKey.generate()
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    path.write_bytes(pem)
    os.chmod(path, 0o600)
    return key


def _last_hash(base: Optional[Path]) -> Optional[str]:
    path = audit_log(base)
    if not path.exists():
        return None
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    if not lines:
        return None
    try:
        return json.loads(lines[-1]).get("hash")
    except json.JSONDecodeError as exc:
        raise AuditLogError(f"corrupt audit tail in {path}") from exc


def _canonical(entry: Dict[str, object]) -> bytes:
    signed = {k: entry[k] for k in ("ts", "prev", "record")}
    return json.dumps(signed, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _write_audit_record(record: Dict[str, object], base: Optional[Path]) -> Dict[str, object]:
    key = _load_or_create_key(base)
    entry: Dict[str, object] = {
        "ts": time.time(),
        "prev": _last_hash(base),
        "record": record,
    }
    canonical = _canonical(entry)
    digest = hashlib.sha256(canonical).digest()
    entry["hash"] = hashlib.sha256(canonical).hexdigest()
    entry["signature"] = base64.b64encode(key.sign(digest)).decode("ascii")
    entry["public_key"] = base64.b64encode(
        key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
    ).decode("ascii")
    path = audit_log(base)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(json.dumps(entry, sort_keys=True) + "\n")
    return entry


def info(record: Dict[str, object], base: Optional[Path] = None) -> Dict[str, object]:
    """Write *record* to the rotating log and append it to the audit trail.

    *base* selects the state directory, defaulting to :func:`state_dir`.
    """

    get_logger(base=base).info(json.dumps(record, sort_keys=True))
    return _write_audit_record(record, base)


def verify_chain(base: Optional[Path] = None) -> int:
    """Check hash links and signatures; return the number of entries."""

    path = audit_log(base)
    if not path.exists():
        return 0
    prev: Optional[str] = None
    count = 0
    for lineno, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        entry = json.loads(line)
        if entry.get("prev") != prev:
            raise AuditLogError(f"broken hash link at line {lineno}")
        canonical = _canonical(entry)
        if hashlib.sha256(canonical).hexdigest() != entry.get("hash"):
            raise AuditLogError(f"hash mismatch at line {lineno}")
        public_key = ed25519.Ed25519PublicKey.from_public_bytes(base64.b64decode(entry["public_key"]))
        try:
            public_key.verify(base64.b64decode(entry["signature"]), hashlib.sha256(canonical).digest())
        except InvalidSignature as exc:
            raise AuditLogError(f"bad signature at line {lineno}") from exc
        prev = entry["hash"]
        count += 1
    return count


__all__ = ["AuditLogError", "audit_log", "get_logger", "info", "verify_chain"]
