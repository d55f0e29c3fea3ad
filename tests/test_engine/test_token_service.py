"""Tests for multi-token balances and the balance cache."""

from __future__ import annotations

import asyncio
from decimal import Decimal

import pytest

from tron_gateway.config.settings import CacheConfig
from tron_gateway.domain.tokens import TokenInfo, TokenRegistry
from tron_gateway.engine.services.token_service import ReadWriteLock, TokenService
from tron_gateway.errors import NetworkError, ValidationError

ADDR = "TAddress"


@pytest.fixture
def service(gateway) -> TokenService:
    return TokenService(gateway, TokenRegistry(), CacheConfig(balance_ttl_seconds=30))


class TestBalances:
    async def test_balance_is_scaled(self, gateway, service) -> None:
        gateway.token_balances[ADDR] = 12_345_678
        assert await service.get_token_balance(ADDR) == Decimal("12.345678")

    async def test_cached_within_ttl(self, gateway, service) -> None:
        gateway.token_balances[ADDR] = 1_000_000
        await service.get_token_balance(ADDR)
        gateway.token_balances[ADDR] = 2_000_000
        assert await service.get_token_balance(ADDR, "usdt") == Decimal("1")
        assert gateway.calls.count("get_token_balance") == 1

    async def test_zero_ttl_always_queries(self, gateway) -> None:
        service = TokenService(gateway, TokenRegistry(), CacheConfig(balance_ttl_seconds=0))
        await service.get_token_balance(ADDR)
        await asyncio.sleep(0.01)
        await service.get_token_balance(ADDR)
        assert gateway.calls.count("get_token_balance") == 2

    async def test_invalidate(self, gateway, service) -> None:
        gateway.token_balances[ADDR] = 1_000_000
        await service.get_token_balance(ADDR)
        assert await service.invalidate_cache(ADDR) == 1
        assert await service.invalidate_cache(ADDR) == 0
        gateway.token_balances[ADDR] = 3_000_000
        assert await service.get_token_balance(ADDR) == Decimal("3")

    async def test_unknown_and_disabled_tokens(self, service) -> None:
        with pytest.raises(ValidationError, match="unsupported"):
            await service.get_token_balance(ADDR, "DOGE")
        with pytest.raises(ValidationError, match="disabled"):
            await service.get_token_balance(ADDR, "USDC")

    async def test_multi_token_reports_failures_as_none(self, gateway, service) -> None:
        service.set_token_enabled("USDC", True)
        gateway.fail["get_token_balance"] = NetworkError("down")
        assert await service.get_multi_token_balance(ADDR) == {"USDT": None, "USDC": None}

    async def test_multi_token(self, gateway, service) -> None:
        gateway.token_balances[ADDR] = 5_000_000
        assert await service.get_multi_token_balance(ADDR) == {"USDT": Decimal("5")}


class TestCacheMaintenance:
    async def test_cleanup_removes_expired(self, gateway) -> None:
        service = TokenService(gateway, TokenRegistry(), CacheConfig(balance_ttl_seconds=0))
        await service.get_token_balance("TA")
        await service.get_token_balance("TB")
        await asyncio.sleep(0.01)
        stats = await service.cache_stats()
        assert stats["total_entries"] == 2
        assert stats["expired_entries"] == 2
        assert await service.cleanup_cache() == 2
        assert (await service.cache_stats())["total_entries"] == 0

    async def test_cleanup_keeps_fresh(self, service) -> None:
        await service.get_token_balance(ADDR)
        assert await service.cleanup_cache() == 0
        assert (await service.cache_stats())["active_entries"] == 1


class TestRegistryPassthrough:
    def test_supported_tokens(self, service) -> None:
        assert [t.symbol for t in service.supported_tokens()] == ["USDT"]
        assert len(service.supported_tokens(include_disabled=True)) == 3

    def test_add_and_toggle(self, service) -> None:
        service.add_token(TokenInfo(symbol="WIN", name="WINk", contract_address="TW", decimals=6))
        assert "WIN" in {t.symbol for t in service.supported_tokens()}
        assert service.set_token_enabled("WIN", False) is True
        assert service.set_token_enabled("NOPE", True) is False


class TestReadWriteLock:
    async def test_readers_share(self) -> None:
        lock = ReadWriteLock()
        inside = 0
        peak = 0

        async def reader() -> None:
            nonlocal inside, peak
            async with lock.read():
                inside += 1
                peak = max(peak, inside)
                await asyncio.sleep(0.01)
                inside -= 1

        await asyncio.gather(*(reader() for _ in range(3)))
        assert peak == 3

    async def test_writer_excludes_readers(self) -> None:
        lock = ReadWriteLock()
        events: list[str] = []

        async def writer() -> None:
            async with lock.write():
                events.append("w-start")
                await asyncio.sleep(0.01)
                events.append("w-end")

        async def reader() -> None:
            await asyncio.sleep(0)
            async with lock.read():
                events.append("r")

        await asyncio.gather(writer(), reader())
        assert events == ["w-start", "w-end", "r"]
