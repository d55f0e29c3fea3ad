"""Token service: multi-token balances with a short-lived cache.

Balances are cached per ``address:symbol`` for ``cache.balance_ttl_seconds``.
The cache sits behind a read/write lock: lookups share it, inserts and
invalidations take it exclusively.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tron_gateway.errors.gateway_errors import GatewayError, ValidationError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from decimal import Decimal

    from tron_gateway.chain.gateway import NetworkGateway
    from tron_gateway.config.settings import CacheConfig
    from tron_gateway.domain.tokens import TokenInfo, TokenRegistry

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False

    @contextlib.asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer)
            self._readers += 1
        try:
            yield
        finally:
            async with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextlib.asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            self._writer = True
        try:
            yield
        finally:
            async with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass(frozen=True)
class CachedBalance:
    balance: Decimal
    fetched_at: float

    def expired(self, ttl: float, now: float) -> bool:
        return now - self.fetched_at > ttl


class TokenService:
    """Balance lookups across every token in the registry."""

    def __init__(
        self,
        gateway: NetworkGateway,
        registry: TokenRegistry,
        config: CacheConfig,
    ) -> None:
        self._gateway = gateway
        self._registry = registry
        self._ttl = float(config.balance_ttl_seconds)
        self._cache: dict[str, CachedBalance] = {}
        self._lock = ReadWriteLock()

    @property
    def registry(self) -> TokenRegistry:
        return self._registry

    @staticmethod
    def _key(address: str, symbol: str) -> str:
        return f"{address}:{symbol.upper()}"

    def _token(self, symbol: str) -> TokenInfo:
        token = self._registry.get(symbol)
        if token is None:
            raise ValidationError("symbol", f"unsupported token {symbol!r}")
        if not token.enabled:
            raise ValidationError("symbol", f"token {token.symbol} is disabled")
        return token

    async def get_token_balance(self, address: str, symbol: str = "USDT") -> Decimal:
        """Balance of *symbol* held by *address*, served from cache when fresh.

        Raises:
            ValidationError: If the token is unknown or disabled.
            NetworkError: If the balance query fails.
        """
        token = self._token(symbol)
        key = self._key(address, token.symbol)
        async with self._lock.read():
            cached = self._cache.get(key)
            if cached is not None and not cached.expired(self._ttl, time.monotonic()):
                return cached.balance

        wei = await self._gateway.get_token_balance(address, token.contract_address)
        balance = token.from_wei(wei)
        async with self._lock.write():
            self._cache[key] = CachedBalance(balance=balance, fetched_at=time.monotonic())
        return balance

    async def get_multi_token_balance(self, address: str) -> dict[str, Decimal | None]:
        """Balances for every enabled token; ``None`` where the query failed."""
        balances: dict[str, Decimal | None] = {}
        for token in self._registry.enabled_tokens():
            try:
                balances[token.symbol] = await self.get_token_balance(address, token.symbol)
            except GatewayError as exc:
                logger.warning(
                    "%s balance for %s unavailable: %s", token.symbol, address, exc.message
                )
                balances[token.symbol] = None
        return balances

    async def invalidate_cache(self, address: str) -> int:
        """Drop every cached balance for *address*. Returns the number removed."""
        prefix = f"{address}:"
        async with self._lock.write():
            keys = [k for k in self._cache if k.startswith(prefix)]
            for key in keys:
                del self._cache[key]
        return len(keys)

    async def cleanup_cache(self) -> int:
        """Remove expired entries. Returns the number removed."""
        now = time.monotonic()
        async with self._lock.write():
            expired = [k for k, v in self._cache.items() if v.expired(self._ttl, now)]
            for key in expired:
                del self._cache[key]
        if expired:
            logger.debug("Balance cache cleanup removed %d entries", len(expired))
        return len(expired)

    async def cache_stats(self) -> dict[str, Any]:
        now = time.monotonic()
        async with self._lock.read():
            total = len(self._cache)
            expired = sum(1 for v in self._cache.values() if v.expired(self._ttl, now))
        return {
            "total_entries": total,
            "expired_entries": expired,
            "active_entries": total - expired,
            "ttl_seconds": self._ttl,
        }

    def supported_tokens(self, *, include_disabled: bool = False) -> list[TokenInfo]:
        if include_disabled:
            return self._registry.all_tokens()
        return self._registry.enabled_tokens()

    def add_token(self, token: TokenInfo) -> None:
        self._registry.add(token)

    def set_token_enabled(self, symbol: str, enabled: bool) -> bool:
        changed = self._registry.set_enabled(symbol, enabled)
        if changed:
            logger.info("Token %s %s", symbol.upper(), "enabled" if enabled else "disabled")
        return changed
