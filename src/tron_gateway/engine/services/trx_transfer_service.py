"""Native TRX transfers: used for gas sponsorship and wallet activation."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from tron_gateway.errors.gateway_errors import ValidationError

if TYPE_CHECKING:
    from tron_gateway.chain.gateway import NetworkGateway, Signer

logger = logging.getLogger(__name__)


class NativeTransferService:
    """Builds, signs and broadcasts plain TRX transfers."""

    def __init__(self, gateway: NetworkGateway, signer: Signer) -> None:
        self._gateway = gateway
        self._signer = signer

    async def send_trx(
        self,
        from_address: str,
        private_key: str,
        to_address: str,
        amount: Decimal,
    ) -> str:
        """Send *amount* TRX and return the broadcast transaction hash.

        Raises:
            ValidationError: If the amount is not positive.
            NetworkError: If building or broadcasting fails.
            CryptoError: If signing fails.
        """
        if amount <= 0:
            raise ValidationError("amount", "must be greater than zero")
        unsigned = await self._gateway.build_native_transfer(from_address, to_address, amount)
        signed = self._signer.sign(unsigned, private_key)
        tx_hash = await self._gateway.broadcast(signed)
        logger.info("Sent %s TRX %s -> %s (tx %s)", amount, from_address, to_address, tx_hash)
        return tx_hash
