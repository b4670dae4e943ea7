from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, ClassVar, Dict, Optional, Type, TypeVar, Union

from eth_typing import ChecksumAddress

from primitives.signature import Signature
from transactions.typed import AccessListResult, TypedTransaction, transaction_from_dict

from .endpoint import BlockRef
from .errors import MiddlewareError

if TYPE_CHECKING:
    from .pending import PendingTransaction

T = TypeVar("T")

TransactionLike = Union[TypedTransaction, Dict[str, Any]]


def as_transaction(tx: TransactionLike) -> TypedTransaction:
    if isinstance(tx, TypedTransaction):
        return tx
    if isinstance(tx, dict):
        return transaction_from_dict(tx)
    raise TypeError(f"expected a TypedTransaction or a params dict, got {type(tx).__name__}")


class Middleware:
    """
    One layer of the transaction pipeline.

    Every layer owns exactly one inner layer and, by default, delegates every
    operation to it unchanged. A concrete layer overrides only what it
    intercepts. Failures from the inner layer are re-raised as this layer's
    ``Error.from_err(...)`` so the whole stack forms a nested error chain.

    ``fill_transaction`` completes the draft in place and returns it; a layer may
    return a different object (e.g. a legacy downgrade), so callers must continue
    with the returned transaction.
    """

    Error: ClassVar[Type[MiddlewareError]] = MiddlewareError

    def __init__(self, inner: Optional["Middleware"]) -> None:
        self._inner = inner

    @property
    def inner(self) -> Optional["Middleware"]:
        return self._inner

    def default_sender(self) -> Optional[ChecksumAddress]:
        return self._inner.default_sender() if self._inner is not None else None

    def is_signer(self) -> bool:
        return self._inner.is_signer() if self._inner is not None else False

    async def _forward(self, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except MiddlewareError as e:
            raise self.Error.from_err(e) from e

    #
    # Transaction operations
    #

    async def fill_transaction(self, tx: TypedTransaction, block: BlockRef = None) -> TypedTransaction:
        return await self._forward(self._inner.fill_transaction(tx, block))

    async def sign_transaction(self, tx: TypedTransaction, address: ChecksumAddress) -> Signature:
        return await self._forward(self._inner.sign_transaction(tx, address))

    async def send_transaction(self, tx: TransactionLike, block: BlockRef = None) -> "PendingTransaction":
        return await self._forward(self._inner.send_transaction(as_transaction(tx), block))

    async def send_raw_transaction(self, raw: bytes) -> "PendingTransaction":
        return await self._forward(self._inner.send_raw_transaction(raw))

    async def sign(self, data: Union[bytes, str], address: ChecksumAddress) -> Signature:
        return await self._forward(self._inner.sign(data, address))

    async def estimate_gas(self, tx: TransactionLike, block: BlockRef = None) -> int:
        return await self._forward(self._inner.estimate_gas(as_transaction(tx), block))

    async def create_access_list(self, tx: TransactionLike, block: BlockRef = None) -> AccessListResult:
        return await self._forward(self._inner.create_access_list(as_transaction(tx), block))

    async def call(self, tx: TransactionLike, block: BlockRef = None) -> bytes:
        return await self._forward(self._inner.call(as_transaction(tx), block))

    #
    # Reads
    #

    async def get_transaction_count(self, address: ChecksumAddress, block: BlockRef = None) -> int:
        return await self._forward(self._inner.get_transaction_count(address, block))

    async def get_chainid(self) -> int:
        return await self._forward(self._inner.get_chainid())

    async def get_block_number(self) -> int:
        return await self._forward(self._inner.get_block_number())

    async def get_transaction_receipt(self, tx_hash: bytes) -> Optional[Dict[str, Any]]:
        return await self._forward(self._inner.get_transaction_receipt(tx_hash))
