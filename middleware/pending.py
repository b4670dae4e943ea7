from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Dict, Generator, Optional

from core.settings import settings

if TYPE_CHECKING:
    from .base import Middleware


class PendingTransaction:
    """
    Handle to a broadcast transaction.

    Holds only the hash and the layer used to poll for inclusion; dropping the
    handle has no effect on the network. Awaiting it polls until the receipt has
    the requested number of confirmations. Callers that need a deadline wrap the
    await in ``asyncio.wait_for``.
    """

    def __init__(
        self,
        tx_hash: bytes,
        provider: "Middleware",
        *,
        confirmations: int = 1,
        interval: Optional[float] = None,
    ) -> None:
        if len(tx_hash) != 32:
            raise ValueError("transaction hash must be 32 bytes")
        if confirmations < 1:
            raise ValueError("confirmations must be at least 1")
        self._tx_hash = bytes(tx_hash)
        self._provider = provider
        self._confirmations = confirmations
        self._interval = interval if interval is not None else settings.RECEIPT_POLL_INTERVAL_SEC

    @property
    def tx_hash(self) -> bytes:
        return self._tx_hash

    @property
    def tx_hash_hex(self) -> str:
        return "0x" + self._tx_hash.hex()

    def confirmations(self, confirmations: int) -> "PendingTransaction":
        return PendingTransaction(self._tx_hash, self._provider, confirmations=confirmations, interval=self._interval)

    def interval(self, seconds: float) -> "PendingTransaction":
        return PendingTransaction(self._tx_hash, self._provider, confirmations=self._confirmations, interval=seconds)

    async def receipt(self) -> Optional[Dict[str, Any]]:
        """Single poll; None while the transaction is not included."""
        return await self._provider.get_transaction_receipt(self._tx_hash)

    async def wait(self) -> Dict[str, Any]:
        while True:
            receipt = await self.receipt()
            if receipt is not None and receipt.get("blockNumber") is not None:
                if self._confirmations == 1:
                    return receipt
                current = await self._provider.get_block_number()
                if current - int(receipt["blockNumber"]) + 1 >= self._confirmations:
                    return receipt
            await asyncio.sleep(self._interval)

    def __await__(self) -> Generator[Any, None, Dict[str, Any]]:
        return self.wait().__await__()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PendingTransaction):
            return NotImplemented
        return self._tx_hash == other._tx_hash

    def __hash__(self) -> int:
        return hash(self._tx_hash)

    def __repr__(self) -> str:
        return f"PendingTransaction(tx_hash={self.tx_hash_hex}, confirmations={self._confirmations})"
