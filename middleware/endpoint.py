from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from eth_typing import ChecksumAddress

from transactions.typed import AccessListResult, TypedTransaction

BlockRef = Union[int, str, None]


@dataclass
class EndpointError(Exception):
    """Transport or JSON-RPC failure reported by the remote ledger endpoint."""

    code: str
    message: str
    data: Dict[str, Any]

    def __str__(self) -> str:
        return self.message


class Endpoint(ABC):
    """
    The remote ledger as seen by the pipeline.

    Every method is a single request; implementations raise EndpointError and
    never retry.
    """

    @abstractmethod
    async def chain_id(self) -> int:
        raise NotImplementedError

    @abstractmethod
    async def transaction_count(self, address: ChecksumAddress, block: BlockRef = None) -> int:
        raise NotImplementedError

    @abstractmethod
    async def send_raw_transaction(self, raw: bytes) -> bytes:
        """Broadcast signed bytes; returns the transaction hash."""
        raise NotImplementedError

    @abstractmethod
    async def send_transaction(self, tx: TypedTransaction) -> bytes:
        """eth_sendTransaction for accounts managed by the node."""
        raise NotImplementedError

    @abstractmethod
    async def estimate_gas(self, tx: TypedTransaction, block: BlockRef = None) -> int:
        raise NotImplementedError

    @abstractmethod
    async def create_access_list(self, tx: TypedTransaction, block: BlockRef = None) -> AccessListResult:
        raise NotImplementedError

    @abstractmethod
    async def call(self, tx: TypedTransaction, block: BlockRef = None) -> bytes:
        raise NotImplementedError

    @abstractmethod
    async def gas_price(self) -> int:
        raise NotImplementedError

    @abstractmethod
    async def max_priority_fee(self) -> int:
        raise NotImplementedError

    @abstractmethod
    async def base_fee(self) -> int:
        """Base fee per gas of the latest block."""
        raise NotImplementedError

    @abstractmethod
    async def block_number(self) -> int:
        raise NotImplementedError

    @abstractmethod
    async def transaction_receipt(self, tx_hash: bytes) -> Optional[Dict[str, Any]]:
        """None while the transaction is not yet included."""
        raise NotImplementedError
