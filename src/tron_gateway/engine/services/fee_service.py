"""Fee pricing: gas cost, percentage commission and settlement total.

Gas cost is priced in three tiers:

1. Dynamic: a cached ``NetworkState`` (refreshed when older than the
   configured max age) scales ``base_trx_per_transaction`` by congestion and
   energy-price multipliers, clamped to ``[dynamic_min_fee, dynamic_max_fee]``.
2. Static: the gateway's energy estimate for the specific transfer.
3. Fallback: ``base_trx_per_transaction`` with no network call at all.

The commission is ``order_amount * commission_percentage / 100`` clamped to
``[min_commission_usdt, max_commission_usdt]``, and the total is
``order_amount + gas_cost + commission``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

from tron_gateway.domain.enums import CongestionLevel, FeeSource
from tron_gateway.errors.gateway_errors import GatewayError

if TYPE_CHECKING:
    from tron_gateway.chain.gateway import NetworkGateway
    from tron_gateway.config.settings import FeeConfig
    from tron_gateway.domain.tokens import TokenInfo
    from tron_gateway.metrics.collector import GatewayMetrics

logger = logging.getLogger(__name__)

_LOW_MULTIPLIER = Decimal("0.8")
_MEDIUM_MULTIPLIER = Decimal("1.0")
_HIGH_ENERGY_MULTIPLIER = Decimal("1.2")
_QUANTUM = Decimal("0.000001")


def _q(value: Decimal) -> Decimal:
    """Round to token precision (6 places)."""
    return value.quantize(_QUANTUM, rounding=ROUND_HALF_UP)


def _clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(value, high))


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NetworkState:
    """Snapshot of network pricing inputs."""

    timestamp: float  # time.time()
    energy_price: int  # sun
    bandwidth_price: int  # sun
    congestion_level: CongestionLevel
    recommended_fee: Decimal  # TRX

    def age(self, now: float | None = None) -> float:
        return (now if now is not None else time.time()) - self.timestamp

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "energy_price": self.energy_price,
            "bandwidth_price": self.bandwidth_price,
            "congestion_level": self.congestion_level.value,
            "recommended_fee": str(self.recommended_fee),
        }


@dataclass(frozen=True)
class FeeQuote:
    """Full cost breakdown for one order. Never persisted or cached."""

    order_amount: Decimal
    gas_cost: Decimal
    percentage_commission: Decimal
    final_commission: Decimal
    total_amount: Decimal
    fee_source: FeeSource

    def to_dict(self) -> dict[str, str]:
        return {
            "order_amount": str(self.order_amount),
            "gas_cost": str(self.gas_cost),
            "percentage_commission": str(self.percentage_commission),
            "final_commission": str(self.final_commission),
            "total_amount": str(self.total_amount),
            "fee_source": self.fee_source.value,
        }


# ---------------------------------------------------------------------------
# Network state cache
# ---------------------------------------------------------------------------


class NetworkStateCache:
    """Holds the shared ``NetworkState`` snapshot.

    Reads never block. Writes are serialised by an ``asyncio.Lock`` so only
    one refresh talks to the network at a time; callers that arrive while
    a refresh is running reuse its result.
    """

    def __init__(self, gateway: NetworkGateway, config: FeeConfig) -> None:
        self._gateway = gateway
        self._config = config
        self._state: NetworkState | None = None
        self._lock = asyncio.Lock()

    @property
    def state(self) -> NetworkState | None:
        return self._state

    def is_fresh(self, now: float | None = None) -> bool:
        return (
            self._state is not None
            and self._state.age(now) <= self._config.state_max_age_seconds
        )

    async def get(self) -> NetworkState:
        """Return the cached state, refreshing it first if stale."""
        if self.is_fresh():
            assert self._state is not None
            return self._state
        return await self.refresh(force=False)

    async def refresh(self, *, force: bool = True) -> NetworkState:
        """Query the network and replace the snapshot.

        Raises:
            NetworkError: If the metrics query fails; the old snapshot is kept.
        """
        async with self._lock:
            if not force and self.is_fresh():
                assert self._state is not None
                return self._state
            metrics = await self._gateway.get_network_metrics()
            level = CongestionLevel.from_load(metrics.load)
            state = NetworkState(
                timestamp=time.time(),
                energy_price=metrics.energy_price,
                bandwidth_price=metrics.bandwidth_price,
                congestion_level=level,
                recommended_fee=self.recommended_fee(level, metrics.energy_price),
            )
            self._state = state
            logger.info(
                "Network state refreshed: congestion=%s energy_price=%d fee=%s TRX",
                level.value,
                metrics.energy_price,
                state.recommended_fee,
            )
            return state

    def congestion_multiplier(self, level: CongestionLevel) -> Decimal:
        if level is CongestionLevel.LOW:
            return _LOW_MULTIPLIER
        if level is CongestionLevel.MEDIUM:
            return _MEDIUM_MULTIPLIER
        return self._config.network_congestion_multiplier

    def energy_multiplier(self, energy_price: int) -> Decimal:
        if energy_price > self._config.energy_price_threshold_sun:
            return _HIGH_ENERGY_MULTIPLIER
        return Decimal(1)

    def recommended_fee(self, level: CongestionLevel, energy_price: int) -> Decimal:
        """``base × congestion × energy``, clamped to the dynamic fee range (TRX)."""
        raw = (
            self._config.base_trx_per_transaction
            * self.congestion_multiplier(level)
            * self.energy_multiplier(energy_price)
        )
        return _clamp(raw, self._config.dynamic_min_fee, self._config.dynamic_max_fee)


# ---------------------------------------------------------------------------
# Pricing engine
# ---------------------------------------------------------------------------


class FeePricingEngine:
    """Computes ``FeeQuote`` objects for outgoing transfers."""

    def __init__(
        self,
        gateway: NetworkGateway,
        config: FeeConfig,
        token: TokenInfo,
        *,
        state_cache: NetworkStateCache | None = None,
        metrics: GatewayMetrics | None = None,
    ) -> None:
        self._gateway = gateway
        self._config = config
        self._token = token
        self._cache = state_cache or NetworkStateCache(gateway, config)
        self._metrics = metrics

    @property
    def config(self) -> FeeConfig:
        return self._config

    @property
    def network_state(self) -> NetworkState | None:
        return self._cache.state

    @property
    def state_cache(self) -> NetworkStateCache:
        return self._cache

    async def refresh_network_state(self) -> NetworkState:
        """Force a refresh of the cached network state."""
        return await self._cache.refresh(force=True)

    def percentage_commission(self, order_amount: Decimal) -> Decimal:
        raw = order_amount * self._config.commission_percentage / Decimal(100)
        return _q(
            _clamp(raw, self._config.min_commission_usdt, self._config.max_commission_usdt)
        )

    def trx_to_quote(self, trx: Decimal) -> Decimal:
        return _q(trx * self._config.trx_to_usdt_rate)

    async def gas_cost(
        self, order_amount: Decimal, from_address: str, to_address: str | None = None
    ) -> tuple[Decimal, FeeSource]:
        """Gas cost in quote currency plus the tier that produced it."""
        if self._config.dynamic_fees_enabled:
            try:
                state = await self._cache.get()
                return self.trx_to_quote(state.recommended_fee), FeeSource.DYNAMIC
            except GatewayError as exc:
                logger.warning("Dynamic fee unavailable, using static estimate: %s", exc.message)
        return await self._static_gas_cost(order_amount, from_address, to_address or from_address)

    async def quote(
        self, order_amount: Decimal, from_address: str, to_address: str | None = None
    ) -> FeeQuote:
        """Price an order of *order_amount* sent from *from_address*.

        Never raises for network reasons: the fallback tier needs no network.
        """
        gas, source = await self.gas_cost(order_amount, from_address, to_address)
        commission = self.percentage_commission(order_amount)
        final_commission = commission
        quote = FeeQuote(
            order_amount=order_amount,
            gas_cost=gas,
            percentage_commission=commission,
            final_commission=final_commission,
            total_amount=order_amount + gas + final_commission,
            fee_source=source,
        )
        if self._metrics:
            self._metrics.record_fee_quote(source.value)
        return quote

    def stats(self) -> dict[str, Any]:
        state = self._cache.state
        return {
            "dynamic_fees_enabled": self._config.dynamic_fees_enabled,
            "dynamic_state_fresh": self._cache.is_fresh(),
            "network_state": state.to_dict() if state else None,
            "base_trx_per_transaction": str(self._config.base_trx_per_transaction),
            "trx_to_usdt_rate": str(self._config.trx_to_usdt_rate),
            "commission_percentage": str(self._config.commission_percentage),
            "min_commission_usdt": str(self._config.min_commission_usdt),
            "max_commission_usdt": str(self._config.max_commission_usdt),
            "dynamic_min_fee": str(self._config.dynamic_min_fee),
            "dynamic_max_fee": str(self._config.dynamic_max_fee),
        }

    async def _static_gas_cost(
        self, order_amount: Decimal, from_address: str, to_address: str
    ) -> tuple[Decimal, FeeSource]:
        try:
            wei = self._token.to_wei(order_amount)
            trx = await self._gateway.estimate_fee(from_address, to_address, wei)
            return self.trx_to_quote(trx), FeeSource.STATIC
        except GatewayError as exc:
            logger.warning("Static fee estimate failed, using config default: %s", exc.message)
        return self.trx_to_quote(self._config.base_trx_per_transaction), FeeSource.FALLBACK
