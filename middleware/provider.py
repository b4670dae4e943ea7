from __future__ import annotations

from typing import Any, Awaitable, Dict, Optional, TypeVar, Union

from eth_typing import ChecksumAddress

from observability import build_log_context, log_event
from primitives.signature import Signature
from transactions.typed import AccessListResult, FeeMarketTransaction, TypedTransaction

from .base import Middleware, TransactionLike, as_transaction
from .endpoint import BlockRef, Endpoint, EndpointError
from .errors import MiddlewareError
from .pending import PendingTransaction

T = TypeVar("T")


class Provider(Middleware):
    """
    Innermost layer: adapts an ``Endpoint`` to the Middleware contract.

    Fills the gas limit and fee fields from the node. The fee-market cap is
    ``2 * base_fee + tip``; no further fee policy is applied. A Provider cannot
    sign, so ``sign``/``sign_transaction`` fail with ``Unsupported``.
    """

    class Error(MiddlewareError):
        """endpoint request failed"""

        CODE = "provider_error"

    class Unsupported(Error):
        """operation requires a signing layer"""

        CODE = "unsupported"

    def __init__(self, endpoint: Endpoint) -> None:
        super().__init__(None)
        self._endpoint = endpoint
        self._log_ctx = build_log_context(component="provider")

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    def default_sender(self) -> Optional[ChecksumAddress]:
        return None

    def is_signer(self) -> bool:
        return False

    async def _endpoint_call(self, op: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except EndpointError as e:
            log_event(
                "endpoint_error",
                ctx=self._log_ctx,
                data={"op": op, "code": e.code, "message": e.message},
                level="warning",
            )
            raise self.Error.from_err(e) from e

    async def fill_transaction(self, tx: TypedTransaction, block: BlockRef = None) -> TypedTransaction:
        if isinstance(tx, FeeMarketTransaction):
            if tx.max_priority_fee_per_gas is None:
                tx.max_priority_fee_per_gas = await self._endpoint_call(
                    "max_priority_fee", self._endpoint.max_priority_fee()
                )
            if tx.max_fee_per_gas is None:
                base_fee = await self._endpoint_call("base_fee", self._endpoint.base_fee())
                tx.max_fee_per_gas = 2 * base_fee + tx.max_priority_fee_per_gas
        elif tx.gas_price is None:
            tx.gas_price = await self._endpoint_call("gas_price", self._endpoint.gas_price())

        if tx.gas is None:
            tx.gas = await self._endpoint_call("estimate_gas", self._endpoint.estimate_gas(tx, block))
        return tx

    async def sign_transaction(self, tx: TypedTransaction, address: ChecksumAddress) -> Signature:
        raise self.Unsupported(data={"op": "sign_transaction", "address": address})

    async def sign(self, data: Union[bytes, str], address: ChecksumAddress) -> Signature:
        raise self.Unsupported(data={"op": "sign", "address": address})

    async def send_transaction(self, tx: TransactionLike, block: BlockRef = None) -> PendingTransaction:
        tx = await self.fill_transaction(as_transaction(tx), block)
        tx_hash = await self._endpoint_call("send_transaction", self._endpoint.send_transaction(tx))
        return PendingTransaction(tx_hash, self)

    async def send_raw_transaction(self, raw: bytes) -> PendingTransaction:
        tx_hash = await self._endpoint_call("send_raw_transaction", self._endpoint.send_raw_transaction(raw))
        return PendingTransaction(tx_hash, self)

    async def estimate_gas(self, tx: TransactionLike, block: BlockRef = None) -> int:
        return await self._endpoint_call("estimate_gas", self._endpoint.estimate_gas(as_transaction(tx), block))

    async def create_access_list(self, tx: TransactionLike, block: BlockRef = None) -> AccessListResult:
        return await self._endpoint_call(
            "create_access_list", self._endpoint.create_access_list(as_transaction(tx), block)
        )

    async def call(self, tx: TransactionLike, block: BlockRef = None) -> bytes:
        return await self._endpoint_call("call", self._endpoint.call(as_transaction(tx), block))

    async def get_transaction_count(self, address: ChecksumAddress, block: BlockRef = None) -> int:
        return await self._endpoint_call("transaction_count", self._endpoint.transaction_count(address, block))

    async def get_chainid(self) -> int:
        return await self._endpoint_call("chain_id", self._endpoint.chain_id())

    async def get_block_number(self) -> int:
        return await self._endpoint_call("block_number", self._endpoint.block_number())

    async def get_transaction_receipt(self, tx_hash: bytes) -> Optional[Dict[str, Any]]:
        return await self._endpoint_call("transaction_receipt", self._endpoint.transaction_receipt(tx_hash))


ProviderError = Provider.Error
