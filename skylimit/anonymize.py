"""Keyed hashing for deterministic, non-reversible source aliases."""

from __future__ import annotations

import hashlib
import hmac

SELF_ALIAS = "user_0000"


def hmac_hex(secret_key: str, message: str) -> str:
    """HMAC-SHA256 of ``message`` under ``secret_key`` as a hex string."""
    return hmac.new(
        secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256,
    ).hexdigest()


def alias_for(secret_key: str, source_id: str) -> str:
    """Anonymized display alias: ``user_`` + last 4 hex chars of the HMAC."""
    return "user_" + hmac_hex(secret_key, "anonymize_" + source_id)[-4:]
