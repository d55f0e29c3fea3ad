"""Cryptographic helpers: hashing and HMAC."""

from __future__ import annotations

import hashlib
import hmac

from eth_utils import keccak


def sha256(data: bytes) -> bytes:
    """Single SHA-256 hash."""
    return hashlib.sha256(data).digest()


def sha256d(data: bytes) -> bytes:
    """Double SHA-256 hash (SHA256(SHA256(data)))."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def keccak256(data: bytes) -> bytes:
    """Keccak-256 (the pre-standard SHA-3 variant used for TRON addresses)."""
    return keccak(primitive=data)


def hmac_sha256_hex(key: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of *body* under *key*."""
    return hmac.new(key.encode("utf-8"), body, hashlib.sha256).hexdigest()
