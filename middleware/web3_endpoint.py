from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Dict, Optional, TypeVar

import aiohttp
from eth_typing import ChecksumAddress
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import TransactionNotFound, Web3Exception

from core.settings import settings
from transactions.encoding import to_bytes
from transactions.typed import AccessListItem, AccessListResult, TypedTransaction

from .endpoint import BlockRef, Endpoint, EndpointError

T = TypeVar("T")


def _error_data(e: BaseException) -> Dict[str, Any]:
    data: Dict[str, Any] = {"type": type(e).__name__}
    rpc_response = getattr(e, "rpc_response", None)
    if rpc_response:
        data["rpc_response"] = rpc_response
    return data


class Web3Endpoint(Endpoint):
    """
    JSON-RPC endpoint over HTTP using web3's async client.

    Usage:
        endpoint = Web3Endpoint(settings.RPC_URL)
        provider = Provider(endpoint)
    """

    def __init__(self, rpc_url: Optional[str] = None, *, timeout: Optional[float] = None) -> None:
        url = (rpc_url or settings.RPC_URL or "").strip()
        if not url:
            raise ValueError("Missing RPC URL. Set RPC_URL.")
        self._url = url
        self._w3 = AsyncWeb3(
            AsyncHTTPProvider(url, request_kwargs={"timeout": float(timeout or settings.HTTP_TIMEOUT_SEC)})
        )

    @property
    def url(self) -> str:
        return self._url

    @property
    def w3(self) -> AsyncWeb3:
        return self._w3

    async def _request(self, op: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except Web3Exception as e:
            raise EndpointError("rpc_error", f"{op}: {e}", _error_data(e)) from e
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise EndpointError("transport_error", f"{op}: {e}", _error_data(e)) from e

    async def chain_id(self) -> int:
        return int(await self._request("eth_chainId", self._w3.eth.chain_id))

    async def transaction_count(self, address: ChecksumAddress, block: BlockRef = None) -> int:
        return int(
            await self._request(
                "eth_getTransactionCount",
                self._w3.eth.get_transaction_count(address, block_identifier="latest" if block is None else block),
            )
        )

    async def send_raw_transaction(self, raw: bytes) -> bytes:
        return bytes(await self._request("eth_sendRawTransaction", self._w3.eth.send_raw_transaction(raw)))

    async def send_transaction(self, tx: TypedTransaction) -> bytes:
        return bytes(await self._request("eth_sendTransaction", self._w3.eth.send_transaction(tx.to_dict())))

    async def estimate_gas(self, tx: TypedTransaction, block: BlockRef = None) -> int:
        return int(
            await self._request("eth_estimateGas", self._w3.eth.estimate_gas(tx.to_dict(), block_identifier=block))
        )

    async def create_access_list(self, tx: TypedTransaction, block: BlockRef = None) -> AccessListResult:
        result = await self._request(
            "eth_createAccessList",
            self._w3.eth.create_access_list(tx.to_dict(), block_identifier=block),
        )
        items = tuple(
            AccessListItem(
                address=item["address"],
                storage_keys=tuple(to_bytes(k, name="storageKey") for k in item.get("storageKeys") or ()),
            )
            for item in result.get("accessList") or ()
        )
        return AccessListResult(access_list=items, gas_used=int(result.get("gasUsed") or 0))

    async def call(self, tx: TypedTransaction, block: BlockRef = None) -> bytes:
        return bytes(await self._request("eth_call", self._w3.eth.call(tx.to_dict(), block_identifier=block)))

    async def gas_price(self) -> int:
        return int(await self._request("eth_gasPrice", self._w3.eth.gas_price))

    async def max_priority_fee(self) -> int:
        return int(await self._request("eth_maxPriorityFeePerGas", self._w3.eth.max_priority_fee))

    async def base_fee(self) -> int:
        block = await self._request("eth_getBlockByNumber", self._w3.eth.get_block("latest"))
        base_fee = block.get("baseFeePerGas")
        if base_fee is None:
            raise EndpointError("no_base_fee", "latest block has no baseFeePerGas (pre-London chain)", {})
        return int(base_fee)

    async def block_number(self) -> int:
        return int(await self._request("eth_blockNumber", self._w3.eth.block_number))

    async def transaction_receipt(self, tx_hash: bytes) -> Optional[Dict[str, Any]]:
        try:
            receipt = await self._request("eth_getTransactionReceipt", self._w3.eth.get_transaction_receipt(tx_hash))
        except EndpointError as e:
            if isinstance(e.__cause__, TransactionNotFound):
                return None
            raise
        return dict(receipt)
