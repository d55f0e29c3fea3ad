"""Gas sponsorship: top up a custodial wallet with TRX before a sweep.

The policy is unconditional: every outgoing transfer is preceded by a
fixed ``min_trx_amount`` top-up from the master wallet, whatever the
wallet already holds. Sponsorship never fails the caller; the result is
reported as a ``SponsorshipOutcome``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tron_gateway.domain.enums import SponsorshipStatus
from tron_gateway.errors.gateway_errors import GatewayError

if TYPE_CHECKING:
    from decimal import Decimal

    from tron_gateway.chain.gateway import NetworkGateway
    from tron_gateway.config.settings import GasSponsorshipConfig, TronConfig
    from tron_gateway.engine.services.trx_transfer_service import NativeTransferService
    from tron_gateway.metrics.collector import GatewayMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SponsorshipOutcome:
    status: SponsorshipStatus
    tx_hash: str | None = None
    reason: str | None = None

    @property
    def sent(self) -> bool:
        return self.status is SponsorshipStatus.SENT


class GasSponsorshipCoordinator:
    """Sends the fixed TRX top-up from the master wallet."""

    def __init__(
        self,
        gateway: NetworkGateway,
        native: NativeTransferService,
        config: GasSponsorshipConfig,
        tron: TronConfig,
        *,
        metrics: GatewayMetrics | None = None,
    ) -> None:
        self._gateway = gateway
        self._native = native
        self._config = config
        self._tron = tron
        self._metrics = metrics

    @property
    def settle_delay(self) -> float:
        """Seconds to wait after a top-up before spending it."""
        return self._config.settle_delay_seconds

    @property
    def master_address(self) -> str:
        return self._tron.master_wallet_address

    async def ensure_gas(self, wallet_address: str, transfer_amount: Decimal) -> SponsorshipOutcome:
        """Top up *wallet_address* ahead of a transfer of *transfer_amount*.

        Never raises: network and signing failures become a FAILED outcome.
        """
        outcome = await self._sponsor(wallet_address, transfer_amount)
        if self._metrics:
            self._metrics.record_sponsorship(outcome.status.value)
        return outcome

    async def _sponsor(self, wallet_address: str, transfer_amount: Decimal) -> SponsorshipOutcome:
        if not self._config.enabled:
            return SponsorshipOutcome(SponsorshipStatus.SKIPPED, reason="sponsorship disabled")
        if not self._tron.master_wallet_address or not self._tron.master_wallet_private_key:
            logger.warning("Gas sponsorship for %s skipped: no master wallet", wallet_address)
            return SponsorshipOutcome(SponsorshipStatus.SKIPPED, reason="no master wallet")

        amount = self._config.min_trx_amount
        try:
            master_balance = await self._gateway.get_native_balance(self.master_address)
            if master_balance < amount:
                logger.warning(
                    "Master wallet balance %s TRX is below the %s TRX top-up",
                    master_balance,
                    amount,
                )
            tx_hash = await self._native.send_trx(
                self.master_address,
                self._tron.master_wallet_private_key,
                wallet_address,
                amount,
            )
        except GatewayError as exc:
            logger.warning("Gas sponsorship for %s failed: %s", wallet_address, exc.message)
            return SponsorshipOutcome(SponsorshipStatus.FAILED, reason=exc.message)

        logger.info(
            "Sponsored %s TRX to %s for a %s transfer (tx %s)",
            amount,
            wallet_address,
            transfer_amount,
            tx_hash,
        )
        return SponsorshipOutcome(SponsorshipStatus.SENT, tx_hash=tx_hash)
