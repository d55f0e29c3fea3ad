"""Wallet service: custodial deposit wallet creation and lookup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select

from tron_gateway.domain.validation import validate_address, validate_owner_id
from tron_gateway.engine.models.wallet import Wallet
from tron_gateway.errors.gateway_errors import (
    ConfigurationError,
    GatewayError,
    WalletNotFoundError,
)

if TYPE_CHECKING:
    from decimal import Decimal

    from tron_gateway.chain.gateway import NetworkGateway, WalletGenerator
    from tron_gateway.config.settings import TronConfig, WalletActivationConfig
    from tron_gateway.datastore.client import Datastore
    from tron_gateway.engine.services.token_service import TokenService
    from tron_gateway.engine.services.trx_transfer_service import NativeTransferService
    from tron_gateway.notifications.webhook import WebhookNotifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalletCreation:
    """Result of ``create_wallet``; activation failures do not fail creation."""

    wallet: Wallet
    activated: bool = False
    activation_tx_hash: str | None = None


class WalletService:
    """Creates custodial wallets and answers wallet/balance queries.

    A new wallet is optionally activated by sending it a small TRX amount
    from the master wallet, since TRON accounts do not exist on chain
    until they first receive TRX.
    """

    def __init__(
        self,
        datastore: Datastore,
        gateway: NetworkGateway,
        generator: WalletGenerator,
        native: NativeTransferService,
        tokens: TokenService,
        *,
        tron: TronConfig,
        activation: WalletActivationConfig,
        notifier: WebhookNotifier | None = None,
    ) -> None:
        self._datastore = datastore
        self._gateway = gateway
        self._generator = generator
        self._native = native
        self._tokens = tokens
        self._tron = tron
        self._activation = activation
        self._notifier = notifier

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_wallet(self, owner_id: str | None = None) -> WalletCreation:
        """Generate, persist and (optionally) activate a new wallet.

        Args:
            owner_id: External reference for the wallet's owner.

        Raises:
            ValidationError: If *owner_id* is too long.
            CryptoError: If key generation fails.
        """
        if owner_id is not None:
            validate_owner_id(owner_id)

        generated = self._generator.generate()
        wallet = Wallet(
            address=generated.address,
            hex_address=generated.hex_address,
            private_key=generated.private_key,
            owner_id=owner_id,
        )
        async with self._datastore.session() as session:
            session.add(wallet)
            await session.commit()
            await session.refresh(wallet)

        logger.info("Created wallet %d (%s)", wallet.id, wallet.address)
        if self._notifier:
            self._notifier.notify_wallet_created(wallet)

        tx_hash = await self._try_activate(wallet)
        return WalletCreation(
            wallet=wallet, activated=tx_hash is not None, activation_tx_hash=tx_hash
        )

    async def activate_wallet_by_address(self, address: str) -> str:
        """Send the activation amount to *address* and return the tx hash.

        Raises:
            ValidationError: If *address* is invalid.
            ConfigurationError: If the master wallet is not configured.
            NetworkError: If the transfer fails.
        """
        validate_address(address)
        if not self._tron.master_wallet_address or not self._tron.master_wallet_private_key:
            msg = "master wallet is not configured"
            raise ConfigurationError(msg)
        return await self._native.send_trx(
            self._tron.master_wallet_address,
            self._tron.master_wallet_private_key,
            address,
            self._activation.amount,
        )

    async def _try_activate(self, wallet: Wallet) -> str | None:
        if not self._activation.enabled:
            return None
        try:
            tx_hash = await self.activate_wallet_by_address(wallet.address)
        except GatewayError as exc:
            logger.warning("Activation of wallet %d failed: %s", wallet.id, exc.message)
            return None
        if self._notifier:
            self._notifier.notify_wallet_activated(wallet, tx_hash)
        return tx_hash

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_wallet(self, wallet_id: int) -> Wallet:
        """Raises ``WalletNotFoundError`` if *wallet_id* is unknown."""
        async with self._datastore.session() as session:
            wallet = await session.get(Wallet, wallet_id)
        if wallet is None:
            raise WalletNotFoundError(wallet_id)
        return wallet

    async def get_wallet_by_address(self, address: str) -> Wallet | None:
        async with self._datastore.session() as session:
            result = await session.execute(select(Wallet).where(Wallet.address == address))
            return result.scalar_one_or_none()

    async def list_wallets(self) -> list[Wallet]:
        async with self._datastore.session() as session:
            result = await session.execute(select(Wallet).order_by(Wallet.id))
            return list(result.scalars().all())

    async def get_wallet_balance(self, wallet_id: int) -> tuple[Decimal, Decimal]:
        """Return ``(usdt_balance, trx_balance)`` for a wallet.

        Raises:
            WalletNotFoundError: If *wallet_id* is unknown.
            NetworkError: If either balance query fails.
        """
        wallet = await self.get_wallet(wallet_id)
        usdt = await self._tokens.get_token_balance(wallet.address, "USDT")
        trx = await self._gateway.get_native_balance(wallet.address)
        return usdt, trx
