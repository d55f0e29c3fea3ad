"""GatewayEngine: owns the datastore, chain access and every service."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tron_gateway.chain.gateway import NetworkGateway, Signer, WalletGenerator
    from tron_gateway.chain.tron.client import TronGridClient
    from tron_gateway.config.settings import AppConfig
    from tron_gateway.datastore.client import Datastore
    from tron_gateway.domain.tokens import TokenInfo, TokenRegistry
    from tron_gateway.engine.services.fee_service import FeePricingEngine
    from tron_gateway.engine.services.gas_service import GasSponsorshipCoordinator
    from tron_gateway.engine.services.monitoring_service import IncomingMonitor
    from tron_gateway.engine.services.token_service import TokenService
    from tron_gateway.engine.services.transfer_service import TransferOrchestrator
    from tron_gateway.engine.services.trx_transfer_service import NativeTransferService
    from tron_gateway.engine.services.wallet_service import WalletService
    from tron_gateway.metrics.collector import GatewayMetrics
    from tron_gateway.notifications.webhook import WebhookNotifier
    from tron_gateway.taskmanager.manager import TaskManager

logger = logging.getLogger(__name__)

_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class GatewayEngine:
    """Central engine: builds the service graph and manages its lifecycle.

    Services receive their collaborators explicitly at construction; the
    engine is only the composition root. ``gateway``, ``signer`` and
    ``generator`` may be injected (tests use in-memory fakes); otherwise
    the TronGrid client and the secp256k1 implementations are used. The
    HTTP app passes in the ``GatewayMetrics`` its middleware already uses.

    Background loops are opt-in via :meth:`start_scheduler`.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        gateway: NetworkGateway | None = None,
        signer: Signer | None = None,
        generator: WalletGenerator | None = None,
        metrics: GatewayMetrics | None = None,
    ) -> None:
        self._config = config
        self._initialized = False

        self._injected_gateway = gateway
        self._injected_signer = signer
        self._injected_generator = generator
        self._injected_metrics = metrics

        # Infrastructure
        self._datastore: Datastore | None = None
        self._gateway: NetworkGateway | None = None
        self._tron_client: TronGridClient | None = None
        self._registry: TokenRegistry | None = None
        self._metrics: GatewayMetrics | None = None
        self._notifier: WebhookNotifier | None = None

        # Services
        self._fees: FeePricingEngine | None = None
        self._native: NativeTransferService | None = None
        self._sponsorship: GasSponsorshipCoordinator | None = None
        self._tokens: TokenService | None = None
        self._wallets: WalletService | None = None
        self._transfers: TransferOrchestrator | None = None
        self._monitor: IncomingMonitor | None = None
        self._task_manager: TaskManager | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Open the datastore, connect the gateway and wire the services.

        Calling it on an initialized engine is a no-op.
        """
        if self._initialized:
            return

        from tron_gateway.chain.tron.client import TronGridClient
        from tron_gateway.chain.tron.crypto import TronTransactionSigner, TronWalletGenerator
        from tron_gateway.datastore.client import Datastore
        from tron_gateway.domain.tokens import TokenRegistry
        from tron_gateway.engine.models.base import Base
        from tron_gateway.engine.services.fee_service import FeePricingEngine
        from tron_gateway.engine.services.gas_service import GasSponsorshipCoordinator
        from tron_gateway.engine.services.monitoring_service import IncomingMonitor
        from tron_gateway.engine.services.token_service import TokenService
        from tron_gateway.engine.services.transfer_service import TransferOrchestrator
        from tron_gateway.engine.services.trx_transfer_service import NativeTransferService
        from tron_gateway.engine.services.wallet_service import WalletService
        from tron_gateway.metrics.collector import GatewayMetrics
        from tron_gateway.notifications.webhook import WebhookNotifier

        cfg = self._config

        self._datastore = Datastore(cfg.db)
        await self._datastore.open(base=Base)

        if self._injected_gateway is not None:
            self._gateway = self._injected_gateway
        else:
            self._tron_client = TronGridClient(cfg.tron, cfg.retry)
            await self._tron_client.connect()
            self._gateway = self._tron_client
        signer = self._injected_signer or TronTransactionSigner()
        generator = self._injected_generator or TronWalletGenerator()

        self._registry = TokenRegistry()
        self._registry.update_from_config(cfg.tron)
        token = self._registry.primary()

        if self._injected_metrics is not None:
            self._metrics = self._injected_metrics
        elif cfg.metrics.enabled:
            self._metrics = GatewayMetrics()

        self._notifier = WebhookNotifier(cfg.webhook, cfg.retry)
        await self._notifier.start()

        self._tokens = TokenService(self._gateway, self._registry, cfg.cache)
        self._native = NativeTransferService(self._gateway, signer)
        self._fees = FeePricingEngine(self._gateway, cfg.fees, token, metrics=self._metrics)
        self._sponsorship = GasSponsorshipCoordinator(
            self._gateway,
            self._native,
            cfg.gas_sponsorship,
            cfg.tron,
            metrics=self._metrics,
        )
        self._wallets = WalletService(
            self._datastore,
            self._gateway,
            generator,
            self._native,
            self._tokens,
            tron=cfg.tron,
            activation=cfg.wallet.activation,
            notifier=self._notifier,
        )
        self._transfers = TransferOrchestrator(
            self._datastore,
            self._gateway,
            signer,
            self._fees,
            self._sponsorship,
            token,
            tron=cfg.tron,
            limits=cfg.transfers,
            tokens=self._tokens,
            notifier=self._notifier,
            metrics=self._metrics,
        )
        self._monitor = IncomingMonitor(
            self._datastore,
            self._gateway,
            token,
            cfg.monitoring,
            page_size=cfg.tron.transfer_page_size,
            notifier=self._notifier,
            metrics=self._metrics,
        )

        self._initialized = True
        logger.info(
            "Gateway engine initialized (token %s, master %s)",
            token.symbol,
            cfg.tron.master_wallet_address or "<unset>",
        )

    async def start_scheduler(self) -> TaskManager | None:
        """Register and start the background jobs.

        Returns None when the scheduler is disabled in config.
        """
        if not self._initialized:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        if not self._config.scheduler.enabled:
            logger.info("Scheduler disabled by configuration")
            return None
        if self._task_manager is not None:
            return self._task_manager

        from tron_gateway.taskmanager.manager import TaskManager
        from tron_gateway.taskmanager.tasks import register_jobs

        self._task_manager = TaskManager(metrics=self._metrics)
        register_jobs(self._task_manager, self)
        await self._task_manager.start()
        return self._task_manager

    async def run_once(self) -> dict[str, bool]:
        """One scan, drain and health check, outside the scheduler."""
        from tron_gateway.taskmanager.tasks import run_once

        if not self._initialized:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return await run_once(self)

    async def close(self) -> None:
        """Stop loops and release connections. Safe to call repeatedly."""
        if not self._initialized:
            return

        # Loops first; they use everything below.
        if self._task_manager is not None:
            await self._task_manager.stop()
            self._task_manager = None

        if self._notifier is not None:
            await self._notifier.stop()
            self._notifier = None

        self._monitor = None
        self._transfers = None
        self._wallets = None
        self._sponsorship = None
        self._fees = None
        self._native = None
        self._tokens = None
        self._metrics = None
        self._registry = None

        if self._tron_client is not None:
            await self._tron_client.close()
            self._tron_client = None
        self._gateway = None

        if self._datastore is not None:
            await self._datastore.close()
            self._datastore = None

        self._initialized = False
        logger.info("Gateway engine closed")

    async def health_check(self) -> dict[str, str]:
        """Component statuses: ``ok``, ``error``, ``disabled`` or ``not_initialized``."""
        status = {
            "engine": "ok" if self._initialized else "not_initialized",
            "datastore": "unknown",
            "gateway": "unknown",
            "webhook": "unknown",
            "scheduler": "unknown",
        }
        if not self._initialized:
            return status

        assert self._datastore is not None
        assert self._gateway is not None
        status["datastore"] = "ok" if await self._datastore.ping() else "error"
        status["gateway"] = "ok" if await self._gateway.ping() else "error"
        status["webhook"] = "ok" if self._notifier and self._notifier.enabled else "disabled"
        if self._task_manager is not None and self._task_manager.is_running:
            status["scheduler"] = "ok"
        else:
            status["scheduler"] = "disabled"
        return status

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def datastore(self) -> Datastore:
        if self._datastore is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._datastore

    @property
    def gateway(self) -> NetworkGateway:
        if self._gateway is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._gateway

    @property
    def registry(self) -> TokenRegistry:
        if self._registry is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._registry

    @property
    def token(self) -> TokenInfo:
        """The settlement token (USDT unless reconfigured)."""
        return self.registry.primary()

    @property
    def notifier(self) -> WebhookNotifier:
        if self._notifier is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._notifier

    @property
    def fees(self) -> FeePricingEngine:
        if self._fees is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._fees

    @property
    def sponsorship(self) -> GasSponsorshipCoordinator:
        if self._sponsorship is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._sponsorship

    @property
    def native(self) -> NativeTransferService:
        if self._native is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._native

    @property
    def tokens(self) -> TokenService:
        if self._tokens is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._tokens

    @property
    def wallets(self) -> WalletService:
        if self._wallets is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._wallets

    @property
    def transfers(self) -> TransferOrchestrator:
        if self._transfers is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._transfers

    @property
    def monitor(self) -> IncomingMonitor:
        if self._monitor is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._monitor

    @property
    def metrics(self) -> GatewayMetrics | None:
        """None when metrics are disabled."""
        return self._metrics

    @property
    def task_manager(self) -> TaskManager | None:
        """None until :meth:`start_scheduler` runs."""
        return self._task_manager

    def status(self) -> dict[str, Any]:
        return {
            "initialized": self._initialized,
            "jobs": self._task_manager.status() if self._task_manager else {},
        }
