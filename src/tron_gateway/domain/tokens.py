"""Token registry: supported TRC-20 tokens and fixed-point conversion.

Amounts cross the API as base-10 strings and live in memory as ``Decimal``;
on-chain they are integers scaled by the token's ``decimals``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import TYPE_CHECKING

from tron_gateway.errors.gateway_errors import ValidationError

if TYPE_CHECKING:
    from tron_gateway.config.settings import TronConfig

logger = logging.getLogger(__name__)

_UINT256_MAX = 2**256 - 1


@dataclass(frozen=True)
class TokenInfo:
    """Metadata for one supported token."""

    symbol: str
    name: str
    contract_address: str
    decimals: int
    is_stable: bool = False
    min_amount: Decimal = Decimal("0")
    max_amount: Decimal | None = None
    enabled: bool = True

    def to_wei(self, amount: Decimal) -> int:
        """Scale a decimal amount to the token's smallest unit.

        Raises:
            ValidationError: If the amount is negative, too precise, or too large.
        """
        if amount < 0:
            raise ValidationError("amount", "must not be negative")
        scaled = amount.scaleb(self.decimals)
        if scaled != scaled.to_integral_value():
            raise ValidationError(
                "amount", f"{self.symbol} supports at most {self.decimals} decimal places"
            )
        wei = int(scaled)
        if wei > _UINT256_MAX:
            raise ValidationError("amount", "exceeds uint256 range")
        return wei

    def from_wei(self, wei: int) -> Decimal:
        """Convert smallest-unit integer back to a decimal amount."""
        return Decimal(wei).scaleb(-self.decimals)

    def validate_amount(self, amount: Decimal) -> None:
        """Check *amount* against the token's min/max limits.

        Raises:
            ValidationError: If the amount is outside the allowed range.
        """
        if amount < self.min_amount:
            raise ValidationError(
                "amount", f"minimum {self.symbol} amount is {self.min_amount}"
            )
        if self.max_amount is not None and amount > self.max_amount:
            raise ValidationError(
                "amount", f"maximum {self.symbol} amount is {self.max_amount}"
            )


def default_tokens() -> list[TokenInfo]:
    """Tokens known out of the box (mainnet contracts)."""
    return [
        TokenInfo(
            symbol="USDT",
            name="Tether USD",
            contract_address="TR7NHqjeKQxGTCi8q8ZY4pL8otSzgjLj6t",
            decimals=6,
            is_stable=True,
            min_amount=Decimal("1"),
            max_amount=Decimal("1000000"),
            enabled=True,
        ),
        TokenInfo(
            symbol="USDC",
            name="USD Coin",
            contract_address="TEkxiTehnzSmSe2XqrBj4w32RUN966rdz8",
            decimals=6,
            is_stable=True,
            min_amount=Decimal("1"),
            max_amount=Decimal("1000000"),
            enabled=False,
        ),
        TokenInfo(
            symbol="BTT",
            name="BitTorrent",
            contract_address="TAFjULxiVgT4qWk6UZwjqwZXTSaGaqnVp4",
            decimals=18,
            is_stable=False,
            min_amount=Decimal("1000"),
            max_amount=None,
            enabled=False,
        ),
    ]


class TokenRegistry:
    """Mutable mapping of symbol -> ``TokenInfo``.

    The first registered stablecoin that is enabled is the primary
    settlement token (USDT by default).
    """

    def __init__(self, tokens: list[TokenInfo] | None = None) -> None:
        self._tokens: dict[str, TokenInfo] = {}
        for token in tokens if tokens is not None else default_tokens():
            self._tokens[token.symbol.upper()] = token

    def get(self, symbol: str) -> TokenInfo | None:
        return self._tokens.get(symbol.upper())

    def get_by_contract(self, contract_address: str) -> TokenInfo | None:
        for token in self._tokens.values():
            if token.contract_address == contract_address:
                return token
        return None

    def primary(self) -> TokenInfo:
        """Return the settlement token.

        Raises:
            LookupError: If no enabled token is registered.
        """
        usdt = self._tokens.get("USDT")
        if usdt is not None and usdt.enabled:
            return usdt
        for token in self._tokens.values():
            if token.enabled and token.is_stable:
                return token
        msg = "no enabled settlement token"
        raise LookupError(msg)

    def enabled_tokens(self) -> list[TokenInfo]:
        return [t for t in self._tokens.values() if t.enabled]

    def all_tokens(self) -> list[TokenInfo]:
        return list(self._tokens.values())

    def add(self, token: TokenInfo) -> None:
        """Register or replace a token by symbol."""
        self._tokens[token.symbol.upper()] = token
        logger.info("Token %s registered (contract %s)", token.symbol, token.contract_address)

    def set_enabled(self, symbol: str, enabled: bool) -> bool:
        """Toggle a token. Returns False if the symbol is unknown."""
        token = self.get(symbol)
        if token is None:
            return False
        self._tokens[token.symbol.upper()] = replace(token, enabled=enabled)
        return True

    def update_from_config(self, config: TronConfig) -> None:
        """Point USDT at the configured contract (testnet deployments use a different one)."""
        usdt = self.get("USDT")
        if usdt is None:
            return
        if config.usdt_contract and config.usdt_contract != usdt.contract_address:
            self._tokens["USDT"] = replace(
                usdt,
                contract_address=config.usdt_contract,
                decimals=config.usdt_decimals,
            )
