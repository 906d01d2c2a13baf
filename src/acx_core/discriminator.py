"""ACX - Deterministic account discriminators."""
from __future__ import annotations

import hashlib

from .protocol import ACCOUNT_NAMESPACE, DISCRIMINATOR_SIZE


def account_discriminator(name: str) -> bytes:
    """Compute the 8 byte tag prepended to every encoded account.

    The tag is the truncated SHA-256 of ``"account:<name>"``.
    """
    payload = f"{ACCOUNT_NAMESPACE}:{name}"
    return hashlib.sha256(payload.encode("utf-8")).digest()[:DISCRIMINATOR_SIZE]


def discriminator_hex(name: str) -> str:
    return account_discriminator(name).hex()
