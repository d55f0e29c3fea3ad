"""V1 API request/response schemas.

Money crosses the wire as base-10 strings: request amounts are ``str``
fields parsed server-side, and ``Decimal`` response fields serialize to
strings in JSON mode. ORM rows are mapped to these models in the routers.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Pydantic needs this at runtime
from decimal import Decimal  # noqa: TC003
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Body of every error: ``{"code": "...", "message": "..."}``."""

    code: str
    message: str


# ---------------------------------------------------------------------------
# Wallets
# ---------------------------------------------------------------------------


class WalletCreateRequest(BaseModel):
    """POST /api/v1/wallets"""

    owner_id: str | None = Field(None, max_length=100)


class WalletResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    address: str
    hex_address: str
    owner_id: str | None = None
    created_at: datetime


class WalletCreateResponse(WalletResponse):
    activated: bool = False
    activation_tx_hash: str | None = None


class WalletBalanceResponse(BaseModel):
    wallet_id: int
    address: str
    usdt_balance: Decimal
    trx_balance: Decimal


# ---------------------------------------------------------------------------
# Transfers
# ---------------------------------------------------------------------------


class TransferCreateRequest(BaseModel):
    """POST /api/v1/transfers and /api/v1/transfers/preview"""

    from_wallet_id: int
    order_amount: str = Field(..., description="Decimal string, e.g. \"50.25\"")
    reference_id: str | None = None


class FeeQuoteResponse(BaseModel):
    order_amount: Decimal
    gas_cost: Decimal
    percentage_commission: Decimal
    final_commission: Decimal
    total_amount: Decimal
    fee_source: str


class TransferPreviewResponse(BaseModel):
    from_wallet_id: int
    reference_id: str | None = None
    quote: FeeQuoteResponse
    master_wallet_receives: Decimal
    trx_to_usdt_rate: Decimal
    breakdown: str


class TransferResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    from_wallet_id: int
    to_address: str
    amount: Decimal
    gas_cost: Decimal | None = None
    commission: Decimal | None = None
    total_amount: Decimal | None = None
    fee_source: str | None = None
    status: str
    tx_hash: str | None = None
    reference_id: str | None = None
    error_message: str | None = None
    created_at: datetime
    completed_at: datetime | None = None


class IncomingTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    wallet_id: int
    tx_hash: str
    block_number: int | None = None
    from_address: str
    to_address: str
    amount: Decimal
    status: str
    detected_at: datetime
    confirmed_at: datetime | None = None


# ---------------------------------------------------------------------------
# Tokens / fees
# ---------------------------------------------------------------------------


class TokenResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    symbol: str
    name: str
    contract_address: str
    decimals: int
    is_stable: bool
    min_amount: Decimal
    max_amount: Decimal | None = None
    enabled: bool


class FeeStatsResponse(BaseModel):
    stats: dict[str, Any]
