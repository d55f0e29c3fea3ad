"""TRON address encoding: Base58Check <-> 21-byte hex form.

A TRON address is ``0x41 || keccak256(pubkey)[-20:]`` encoded as
Base58Check (4-byte double-SHA-256 checksum), which always renders as a
34-character string starting with ``T``.
"""

from __future__ import annotations

from tron_gateway.utils.crypto import keccak256, sha256d

ADDRESS_PREFIX = 0x41
ADDRESS_LENGTH = 21  # prefix byte + 20-byte account id

# ---------------------------------------------------------------------------
# Base58Check encoding / decoding
# ---------------------------------------------------------------------------

_B58_ALPHABET = b"123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def base58_encode(payload: bytes) -> str:
    """Encode raw bytes to Base58 (no checksum)."""
    n = int.from_bytes(payload, "big")
    result: list[int] = []
    while n > 0:
        n, remainder = divmod(n, 58)
        result.append(_B58_ALPHABET[remainder])
    for byte in payload:
        if byte == 0:
            result.append(_B58_ALPHABET[0])
        else:
            break
    return bytes(reversed(result)).decode("ascii")


def base58_decode(s: str) -> bytes:
    """Decode a Base58 string to raw bytes (no checksum).

    Raises:
        ValueError: If *s* contains a character outside the alphabet.
    """
    n = 0
    for char in s:
        idx = _B58_ALPHABET.find(char.encode("ascii", errors="replace"))
        if idx < 0:
            msg = f"invalid base58 character {char!r}"
            raise ValueError(msg)
        n = n * 58 + idx
    result = n.to_bytes((n.bit_length() + 7) // 8, "big") if n > 0 else b""
    pad_count = len(s) - len(s.lstrip("1"))
    return b"\x00" * pad_count + result


def base58check_encode(payload: bytes) -> str:
    """Encode bytes with a 4-byte SHA256d checksum (Base58Check)."""
    return base58_encode(payload + sha256d(payload)[:4])


def base58check_decode(s: str) -> bytes:
    """Decode a Base58Check string, verifying the checksum.

    Raises:
        ValueError: If the string is malformed or the checksum is invalid.
    """
    raw = base58_decode(s)
    if len(raw) < 5:
        msg = "Base58Check string too short"
        raise ValueError(msg)
    payload, checksum = raw[:-4], raw[-4:]
    if sha256d(payload)[:4] != checksum:
        msg = "Base58Check checksum mismatch"
        raise ValueError(msg)
    return payload


# ---------------------------------------------------------------------------
# Address helpers
# ---------------------------------------------------------------------------


def is_valid_address(address: str) -> bool:
    """Return True if *address* is a well-formed Base58Check TRON address."""
    if not address.startswith("T") or not 30 <= len(address) <= 40:
        return False
    try:
        payload = base58check_decode(address)
    except ValueError:
        return False
    return len(payload) == ADDRESS_LENGTH and payload[0] == ADDRESS_PREFIX


def address_to_hex(address: str) -> str:
    """Convert a Base58 address to its 42-char hex form (``41`` + 20 bytes).

    Hex input (with or without ``0x``) is normalised and returned as-is.

    Raises:
        ValueError: If the address cannot be decoded.
    """
    if address.startswith("0x"):
        address = address[2:]
    if len(address) == ADDRESS_LENGTH * 2 and address.lower().startswith("41"):
        bytes.fromhex(address)
        return address.lower()
    payload = base58check_decode(address)
    if len(payload) != ADDRESS_LENGTH or payload[0] != ADDRESS_PREFIX:
        msg = f"not a TRON address: {address}"
        raise ValueError(msg)
    return payload.hex()


def hex_to_address(hex_address: str) -> str:
    """Convert a hex address (``41...`` or ``0x...`` 20-byte form) to Base58."""
    h = hex_address[2:] if hex_address.startswith("0x") else hex_address
    raw = bytes.fromhex(h)
    if len(raw) == ADDRESS_LENGTH - 1:
        raw = bytes([ADDRESS_PREFIX]) + raw
    if len(raw) != ADDRESS_LENGTH or raw[0] != ADDRESS_PREFIX:
        msg = f"not a TRON hex address: {hex_address}"
        raise ValueError(msg)
    return base58check_encode(raw)


def public_key_to_address(public_key: bytes) -> str:
    """Derive the Base58 address from a 64-byte (or 0x04-prefixed) raw public key."""
    if len(public_key) == 65 and public_key[0] == 0x04:
        public_key = public_key[1:]
    if len(public_key) != 64:
        msg = f"Invalid raw public key length: {len(public_key)}"
        raise ValueError(msg)
    account_id = keccak256(public_key)[-20:]
    return base58check_encode(bytes([ADDRESS_PREFIX]) + account_id)
