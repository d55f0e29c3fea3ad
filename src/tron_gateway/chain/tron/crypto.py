"""Key generation and transaction signing on secp256k1.

TRON signs the transaction id, ``sha256(raw_data_hex)``, and appends a
65-byte ``r || s || recovery_id`` signature to the transaction's
``signature`` list.
"""

from __future__ import annotations

import copy
import hashlib
import logging
import secrets

from ecdsa import SECP256k1, SigningKey, VerifyingKey
from ecdsa.util import sigdecode_string, sigencode_string_canonize

from tron_gateway.chain.gateway import GeneratedWallet, SignedTransaction, UnsignedTransaction
from tron_gateway.chain.tron.address import address_to_hex, public_key_to_address
from tron_gateway.errors.gateway_errors import CryptoError
from tron_gateway.utils.crypto import sha256

logger = logging.getLogger(__name__)

_CURVE = SECP256k1
_CURVE_ORDER = _CURVE.order


def private_key_to_public_key(privkey_bytes: bytes) -> bytes:
    """Return the 64-byte raw (x || y) public key for a 32-byte private key."""
    sk = SigningKey.from_string(privkey_bytes, curve=_CURVE)
    return sk.get_verifying_key().to_string()


class TronWalletGenerator:
    """Generates fresh custodial keypairs."""

    def generate(self) -> GeneratedWallet:
        """Create a random private key and derive its address.

        Raises:
            CryptoError: If key derivation fails.
        """
        try:
            scalar = secrets.randbelow(_CURVE_ORDER - 1) + 1
            privkey = scalar.to_bytes(32, "big")
            address = public_key_to_address(private_key_to_public_key(privkey))
        except ValueError as exc:
            raise CryptoError(f"wallet generation failed: {exc}") from exc
        return GeneratedWallet(
            address=address,
            hex_address=address_to_hex(address),
            private_key=privkey.hex(),
        )


class TronTransactionSigner:
    """Signs unsigned transactions returned by TronGrid."""

    def sign(self, unsigned_tx: UnsignedTransaction, private_key: str) -> SignedTransaction:
        """Return a copy of *unsigned_tx* with a signature appended.

        Args:
            unsigned_tx: Transaction dict carrying ``raw_data_hex`` (or ``txID``).
            private_key: 64-char hex private key.

        Raises:
            CryptoError: If the transaction or key is malformed.
        """
        try:
            digest = self.transaction_digest(unsigned_tx)
            sk = SigningKey.from_string(bytes.fromhex(private_key), curve=_CURVE)
        except (ValueError, KeyError) as exc:
            raise CryptoError(f"cannot sign transaction: {exc}") from exc

        sig = sk.sign_digest_deterministic(
            digest, hashfunc=hashlib.sha256, sigencode=sigencode_string_canonize
        )
        recovery_id = self._recovery_id(sig, digest, sk.get_verifying_key())

        signed = copy.deepcopy(unsigned_tx)
        signed.setdefault("signature", []).append((sig + bytes([recovery_id])).hex())
        logger.debug("Signed transaction %s", digest.hex())
        return signed

    @staticmethod
    def transaction_digest(tx: UnsignedTransaction) -> bytes:
        """The 32-byte transaction id that gets signed.

        Raises:
            KeyError: If the transaction carries neither ``raw_data_hex`` nor ``txID``.
        """
        raw_hex = tx.get("raw_data_hex")
        if raw_hex:
            digest = sha256(bytes.fromhex(raw_hex))
            tx_id = tx.get("txID")
            if tx_id and tx_id.lower() != digest.hex():
                msg = "txID does not match raw_data_hex"
                raise ValueError(msg)
            return digest
        return bytes.fromhex(tx["txID"])

    @staticmethod
    def _recovery_id(sig: bytes, digest: bytes, vk: VerifyingKey) -> int:
        # Candidates come back ordered by the parity of R.y, which is the recovery id.
        candidates = VerifyingKey.from_public_key_recovery_with_digest(
            sig, digest, _CURVE, sigdecode=sigdecode_string
        )
        for idx, candidate in enumerate(candidates):
            if candidate.to_string() == vk.to_string():
                return idx
        msg = "could not determine signature recovery id"
        raise CryptoError(msg)
