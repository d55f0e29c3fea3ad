"""TronGrid HTTP client: balances, fee estimates, transaction build/broadcast.

Async client for the TronGrid REST + full-node HTTP API:
- GET  /v1/accounts/{address}: TRX balance (sun)
- GET  /v1/accounts/{address}/transactions/trc20: recent TRC-20 transfers
- POST /wallet/triggerconstantcontract: balanceOf / energy estimate (read-only)
- POST /wallet/triggersmartcontract: build a TRC-20 transfer
- POST /wallet/createtransaction: build a TRX transfer
- POST /wallet/broadcasttransaction: submit a signed transaction
- POST /wallet/getchainparameters, /wallet/getnowblock: network metrics

Every request runs through ``RetryPolicy``; non-2xx responses are classified
into ``NetworkError`` kinds.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import httpx

from tron_gateway.chain.gateway import (
    NetworkMetrics,
    SignedTransaction,
    TokenTransferRecord,
    UnsignedTransaction,
)
from tron_gateway.chain.retry import RetryPolicy
from tron_gateway.chain.tron.address import address_to_hex
from tron_gateway.errors.network_errors import (
    NetworkError,
    NetworkErrorKind,
    classify_http_status,
)

if TYPE_CHECKING:
    from tron_gateway.config.settings import RetryConfig, TronConfig

logger = logging.getLogger(__name__)

SUN_PER_TRX = Decimal(1_000_000)
API_KEY_HEADER = "TRON-PRO-API-KEY"

_TRANSFER_SELECTOR = "transfer(address,uint256)"
_BALANCE_OF_SELECTOR = "balanceOf(address)"

# Fallback when the node does not report energy usage for the estimate
_DEFAULT_TRANSFER_ENERGY = 31_895
# Serialized size of a signed TRC-20 transfer, billed as bandwidth
_TRANSFER_BANDWIDTH_BYTES = 345
_DEFAULT_ENERGY_PRICE = 420  # sun
_DEFAULT_BANDWIDTH_PRICE = 1000  # sun

# Block time is fixed at 3 s, used to derive confirmations from timestamps
_BLOCK_INTERVAL_MS = 3000
# Transactions per block treated as 100% load
_BLOCK_TX_CAPACITY = 1000

# Broadcast reply when the node already holds this exact signed transaction
_DUPLICATE_TX_CODE = "DUP_TRANSACTION_ERROR"


def _abi_address(address: str) -> str:
    """ABI-encode an address argument (20-byte account id, left padded)."""
    return address_to_hex(address)[2:].rjust(64, "0")


def _abi_uint(value: int) -> str:
    return format(value, "x").rjust(64, "0")


def _decode_message(message: Any) -> str:
    """Broadcast errors arrive as hex-encoded text or a list of byte values."""
    if isinstance(message, list):
        raw = bytes(int(b) & 0xFF for b in message)
    elif isinstance(message, str):
        try:
            raw = bytes.fromhex(message)
        except ValueError:
            return message
    else:
        return str(message)
    return raw.decode("utf-8", errors="replace") or raw.hex()


class TronGridClient:
    """Async HTTP client implementing ``NetworkGateway`` against TronGrid.

    Usage::

        client = TronGridClient(config.tron, config.retry)
        await client.connect()
        try:
            trx = await client.get_native_balance("T...")
        finally:
            await client.close()
    """

    def __init__(self, config: TronConfig, retry: RetryConfig | None = None) -> None:
        """Initialize the client.

        Args:
            config: TronGrid endpoint, API key and contract settings.
            retry: Backoff settings for every request.
        """
        self._config = config
        self._retry = RetryPolicy(retry)
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        headers: dict[str, str] = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self._config.api_key:
            headers[API_KEY_HEADER] = self._config.api_key

        self._client = httpx.AsyncClient(
            base_url=self._config.base_url.rstrip("/"),
            headers=headers,
            timeout=self._config.request_timeout,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    async def get_native_balance(self, address: str) -> Decimal:
        """TRX balance of *address*; unactivated accounts report zero."""
        data = await self._get(f"/v1/accounts/{address}", operation="get_native_balance")
        accounts = data.get("data") or []
        if not accounts:
            return Decimal(0)
        sun = int(accounts[0].get("balance", 0))
        return Decimal(sun) / SUN_PER_TRX

    async def get_token_balance(self, address: str, contract: str | None = None) -> int:
        """Raw TRC-20 balance (smallest unit) via a constant ``balanceOf`` call."""
        result = await self._trigger_constant(
            owner=address,
            contract=contract or self._config.usdt_contract,
            selector=_BALANCE_OF_SELECTOR,
            parameter=_abi_address(address),
            operation="get_token_balance",
        )
        constant = result.get("constant_result") or []
        if not constant or not constant[0]:
            return 0
        return int(constant[0], 16)

    # ------------------------------------------------------------------
    # Fees
    # ------------------------------------------------------------------

    async def estimate_fee(self, from_address: str, to_address: str, amount: int) -> Decimal:
        """Estimate the TRX burnt by a TRC-20 ``transfer`` of *amount* units.

        Energy comes from a dry-run of the contract call; bandwidth is a
        fixed size estimate. Both are priced at the current chain parameters.
        """
        result = await self._trigger_constant(
            owner=from_address,
            contract=self._config.usdt_contract,
            selector=_TRANSFER_SELECTOR,
            parameter=_abi_address(to_address) + _abi_uint(amount),
            operation="estimate_fee",
        )
        energy = int(result.get("energy_used") or _DEFAULT_TRANSFER_ENERGY)
        energy_price, bandwidth_price = await self._chain_prices()
        sun = energy * energy_price + _TRANSFER_BANDWIDTH_BYTES * bandwidth_price
        return Decimal(sun) / SUN_PER_TRX

    async def get_network_metrics(self) -> NetworkMetrics:
        """Current energy/bandwidth prices and latest-block utilisation."""
        energy_price, bandwidth_price = await self._chain_prices()
        block = await self._post("/wallet/getnowblock", {}, operation="get_now_block")
        tx_count = len(block.get("transactions") or [])
        load = min(1.0, tx_count / _BLOCK_TX_CAPACITY)
        return NetworkMetrics(
            energy_price=energy_price,
            bandwidth_price=bandwidth_price,
            load=load,
        )

    async def ping(self) -> bool:
        """Return True if the node answers ``getnowblock``."""
        try:
            await self._post("/wallet/getnowblock", {}, operation="ping")
        except NetworkError:
            return False
        return True

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def build_native_transfer(
        self, from_address: str, to_address: str, amount: Decimal
    ) -> UnsignedTransaction:
        """Build an unsigned TRX transfer of *amount* TRX."""
        sun = int((amount * SUN_PER_TRX).to_integral_value())
        data = await self._post(
            "/wallet/createtransaction",
            {
                "owner_address": address_to_hex(from_address),
                "to_address": address_to_hex(to_address),
                "amount": sun,
            },
            operation="build_native_transfer",
        )
        if "Error" in data or "raw_data" not in data:
            raise NetworkError(
                f"createtransaction rejected: {data.get('Error', data)}",
                kind=NetworkErrorKind.PERMANENT,
            )
        return data

    async def build_token_transfer(
        self,
        from_address: str,
        to_address: str,
        amount: int,
        contract: str | None = None,
    ) -> UnsignedTransaction:
        """Build an unsigned TRC-20 ``transfer(to, amount)`` call."""
        data = await self._post(
            "/wallet/triggersmartcontract",
            {
                "owner_address": address_to_hex(from_address),
                "contract_address": address_to_hex(contract or self._config.usdt_contract),
                "function_selector": _TRANSFER_SELECTOR,
                "parameter": _abi_address(to_address) + _abi_uint(amount),
                "fee_limit": self._config.fee_limit,
                "call_value": 0,
            },
            operation="build_token_transfer",
        )
        result = data.get("result") or {}
        tx = data.get("transaction")
        if not result.get("result") or not tx:
            message = _decode_message(result.get("message", "no transaction returned"))
            raise NetworkError(
                f"triggersmartcontract rejected: {message}",
                kind=NetworkErrorKind.PERMANENT,
            )
        return tx

    async def broadcast(self, signed_tx: SignedTransaction) -> str:
        """Submit a signed transaction and return its hash.

        A resend after a lost response is answered with
        ``DUP_TRANSACTION_ERROR``; the transaction is then already in the
        node's pool and its own ``txID`` is returned.

        Raises:
            NetworkError: PERMANENT if the node rejects the transaction.
        """
        data = await self._post(
            "/wallet/broadcasttransaction", signed_tx, operation="broadcast"
        )
        if data.get("result") is True:
            tx_hash = data.get("txid") or signed_tx.get("txID")
            if tx_hash:
                logger.info("Broadcast accepted: %s", tx_hash)
                return str(tx_hash)
        if data.get("code") == _DUPLICATE_TX_CODE and signed_tx.get("txID"):
            logger.info("Broadcast already known to the node: %s", signed_tx["txID"])
            return str(signed_tx["txID"])
        message = _decode_message(data.get("message", "unknown broadcast error"))
        code = data.get("code", "")
        raise NetworkError(
            f"broadcast failed: {code} {message}".strip(),
            kind=NetworkErrorKind.PERMANENT,
        )

    async def list_recent_token_transfers(
        self, address: str, contract: str | None = None, limit: int = 50
    ) -> list[TokenTransferRecord]:
        """Most recent TRC-20 transfers touching *address*.

        Confirmations are derived from the head block timestamp.
        """
        data = await self._get(
            f"/v1/accounts/{address}/transactions/trc20",
            params={
                "limit": limit,
                "contract_address": contract or self._config.usdt_contract,
            },
            operation="list_recent_token_transfers",
        )
        head_number, head_ts = await self._head_block()
        records: list[TokenTransferRecord] = []
        for item in data.get("data") or []:
            tx_hash = item.get("transaction_id")
            if not tx_hash:
                logger.warning("Skipping TRC-20 entry without transaction_id for %s", address)
                continue
            token_info = item.get("token_info") or {}
            block_ts = item.get("block_timestamp")
            confirmations = 0
            block_number = None
            if block_ts is not None and head_ts:
                confirmations = max(0, (head_ts - int(block_ts)) // _BLOCK_INTERVAL_MS)
                block_number = head_number - confirmations
            records.append(
                TokenTransferRecord(
                    tx_hash=tx_hash,
                    from_address=item.get("from", ""),
                    to_address=item.get("to", ""),
                    value=int(item.get("value") or 0),
                    decimals=int(token_info.get("decimals") or 6),
                    confirmations=confirmations,
                    block_number=block_number,
                    block_timestamp=block_ts,
                )
            )
        return records

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            msg = "TronGrid client not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._client

    async def _get(
        self, path: str, *, operation: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        client = self._ensure_connected()

        async def _do() -> dict[str, Any]:
            response = await client.get(path, params=params)
            return self._parse(response, operation)

        return await self._retry.call(operation, _do)

    async def _post(self, path: str, payload: dict[str, Any], *, operation: str) -> dict[str, Any]:
        client = self._ensure_connected()

        async def _do() -> dict[str, Any]:
            response = await client.post(path, json=payload)
            return self._parse(response, operation)

        return await self._retry.call(operation, _do)

    @staticmethod
    def _parse(response: httpx.Response, operation: str) -> dict[str, Any]:
        if response.status_code >= 300:
            raise classify_http_status(
                response.status_code,
                f"TronGrid {operation} failed ({response.status_code}): {response.text[:200]}",
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkError(
                f"TronGrid {operation} returned invalid JSON",
                kind=NetworkErrorKind.TEMPORARY,
            ) from exc
        return data if isinstance(data, dict) else {"data": data}

    async def _trigger_constant(
        self, *, owner: str, contract: str, selector: str, parameter: str, operation: str
    ) -> dict[str, Any]:
        return await self._post(
            "/wallet/triggerconstantcontract",
            {
                "owner_address": address_to_hex(owner),
                "contract_address": address_to_hex(contract),
                "function_selector": selector,
                "parameter": parameter,
            },
            operation=operation,
        )

    async def _chain_prices(self) -> tuple[int, int]:
        data = await self._post("/wallet/getchainparameters", {}, operation="chain_parameters")
        params = {p.get("key"): p.get("value") for p in data.get("chainParameter") or []}
        energy_price = int(params.get("getEnergyFee") or _DEFAULT_ENERGY_PRICE)
        bandwidth_price = int(params.get("getTransactionFee") or _DEFAULT_BANDWIDTH_PRICE)
        return energy_price, bandwidth_price

    async def _head_block(self) -> tuple[int, int]:
        block = await self._post("/wallet/getnowblock", {}, operation="get_now_block")
        raw = (block.get("block_header") or {}).get("raw_data") or {}
        return int(raw.get("number") or 0), int(raw.get("timestamp") or 0)
