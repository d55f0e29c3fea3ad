"""Tests for the token registry and fixed-point conversion."""

from __future__ import annotations

from decimal import Decimal

import pytest

from tron_gateway.config.settings import TronConfig
from tron_gateway.domain.tokens import TokenInfo, TokenRegistry, default_tokens
from tron_gateway.errors import ValidationError

USDT = TokenInfo(
    symbol="USDT",
    name="Tether USD",
    contract_address="TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t",
    decimals=6,
    is_stable=True,
    min_amount=Decimal("1"),
    max_amount=Decimal("1000000"),
)


class TestTokenInfo:
    def test_to_wei(self) -> None:
        assert USDT.to_wei(Decimal("50")) == 50_000_000
        assert USDT.to_wei(Decimal("0.000001")) == 1

    def test_from_wei(self) -> None:
        assert USDT.from_wei(53_250_000) == Decimal("53.25")

    @pytest.mark.parametrize("decimals", [6, 18])
    @pytest.mark.parametrize(
        "amount", ["0.000001", "1", "53.25", "999999.999999", "1000000", "1000000000"]
    )
    def test_round_trip(self, decimals: int, amount: str) -> None:
        token = TokenInfo(
            symbol="TKN", name="Token", contract_address=USDT.contract_address, decimals=decimals
        )
        assert token.from_wei(token.to_wei(Decimal(amount))) == Decimal(amount)

    def test_round_trip_smallest_unit_at_18_decimals(self) -> None:
        token = TokenInfo(
            symbol="TKN", name="Token", contract_address=USDT.contract_address, decimals=18
        )
        smallest = Decimal("0.000000000000000001")
        assert token.to_wei(smallest) == 1
        assert token.from_wei(1) == smallest

    def test_to_wei_rejects_extra_precision(self) -> None:
        with pytest.raises(ValidationError, match="decimal places"):
            USDT.to_wei(Decimal("1.0000001"))

    def test_to_wei_rejects_negative(self) -> None:
        with pytest.raises(ValidationError):
            USDT.to_wei(Decimal("-1"))

    def test_limits(self) -> None:
        USDT.validate_amount(Decimal("1"))
        with pytest.raises(ValidationError, match="minimum"):
            USDT.validate_amount(Decimal("0.5"))
        with pytest.raises(ValidationError, match="maximum"):
            USDT.validate_amount(Decimal("1000001"))


class TestTokenRegistry:
    def test_defaults(self) -> None:
        registry = TokenRegistry()
        assert {t.symbol for t in registry.all_tokens()} == {"USDT", "USDC", "BTT"}
        assert [t.symbol for t in registry.enabled_tokens()] == ["USDT"]

    def test_lookup_is_case_insensitive(self) -> None:
        registry = TokenRegistry()
        assert registry.get("usdt") is registry.get("USDT")
        assert registry.get("DOGE") is None

    def test_get_by_contract(self) -> None:
        registry = TokenRegistry()
        token = registry.get_by_contract("TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t")
        assert token is not None
        assert token.symbol == "USDT"

    def test_primary_is_usdt(self) -> None:
        assert TokenRegistry().primary().symbol == "USDT"

    def test_primary_falls_back_to_enabled_stablecoin(self) -> None:
        registry = TokenRegistry()
        registry.set_enabled("USDT", False)
        registry.set_enabled("USDC", True)
        assert registry.primary().symbol == "USDC"

    def test_primary_raises_without_enabled_stablecoin(self) -> None:
        registry = TokenRegistry([t for t in default_tokens() if t.symbol == "BTT"])
        with pytest.raises(LookupError):
            registry.primary()

    def test_set_enabled_unknown(self) -> None:
        assert TokenRegistry().set_enabled("DOGE", True) is False

    def test_add_replaces(self) -> None:
        registry = TokenRegistry()
        registry.add(TokenInfo(symbol="usdt", name="X", contract_address="TX", decimals=6))
        token = registry.get("USDT")
        assert token is not None
        assert token.contract_address == "TX"

    def test_update_from_config_points_usdt_at_configured_contract(self) -> None:
        registry = TokenRegistry()
        registry.update_from_config(
            TronConfig(usdt_contract="TG3XXyExBkPp9nzdajDZsozEu4BkaSJozs", usdt_decimals=6)
        )
        token = registry.primary()
        assert token.contract_address == "TG3XXyExBkPp9nzdajDZsozEu4BkaSJozs"
        assert token.min_amount == Decimal("1")
