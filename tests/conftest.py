import asyncio
from typing import Any, Dict, List, Optional

import pytest
from eth_utils import keccak

from middleware.base import Middleware
from middleware.endpoint import Endpoint, EndpointError
from middleware.provider import Provider
from signing.wallet import Wallet
from transactions.typed import AccessListResult

KEY_1 = "0x" + "00" * 31 + "01"
KEY_2 = "0x" + "00" * 31 + "02"
KEY_3 = "0x" + "00" * 31 + "03"

ADDRESS_1 = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"
ADDRESS_2 = "0x2B5AD5c4795c026514f8317c7a215E218DcCD6cF"
ADDRESS_3 = "0x6813Eb9362372EEF6200f3b1dbC3f819671cBA69"

RECIPIENT = "0x000000000000000000000000000000000000dEaD"


class FakeEndpoint(Endpoint):
    """In-memory endpoint that records what the stack sends it."""

    def __init__(self, chain_id: int = 1337, nonce: int = 0) -> None:
        self.chain = chain_id
        self.nonces: Dict[str, int] = {}
        self.default_nonce = nonce
        self.gas_price_value = 10_000_000_000
        self.tip_value = 1_000_000_000
        self.base_fee_value = 20_000_000_000
        self.gas_estimate = 21_000
        self.block = 100
        self.raw_sent: List[bytes] = []
        self.sent: List[Any] = []
        self.receipts: Dict[bytes, Dict[str, Any]] = {}
        self.count_queries: List[tuple] = []
        self.send_error: Optional[EndpointError] = None

    async def chain_id(self) -> int:
        return self.chain

    async def transaction_count(self, address, block=None) -> int:
        self.count_queries.append((address, block))
        # yield so concurrent callers interleave
        await asyncio.sleep(0)
        return self.nonces.get(address, self.default_nonce)

    async def send_raw_transaction(self, raw: bytes) -> bytes:
        if self.send_error is not None:
            raise self.send_error
        self.raw_sent.append(raw)
        return keccak(raw)

    async def send_transaction(self, tx) -> bytes:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(tx)
        return keccak(repr(tx).encode())

    async def estimate_gas(self, tx, block=None) -> int:
        return self.gas_estimate

    async def create_access_list(self, tx, block=None) -> AccessListResult:
        return AccessListResult(access_list=(), gas_used=self.gas_estimate)

    async def call(self, tx, block=None) -> bytes:
        return b"\x01"

    async def gas_price(self) -> int:
        return self.gas_price_value

    async def max_priority_fee(self) -> int:
        return self.tip_value

    async def base_fee(self) -> int:
        return self.base_fee_value

    async def block_number(self) -> int:
        return self.block

    async def transaction_receipt(self, tx_hash: bytes):
        return self.receipts.get(tx_hash)


class RecordingMiddleware(Middleware):
    """Pass-through layer that remembers every call made on it."""

    def __init__(self, inner: Middleware) -> None:
        super().__init__(inner)
        self.calls: List[tuple] = []

    async def fill_transaction(self, tx, block=None):
        self.calls.append(("fill_transaction", tx.copy()))
        return await super().fill_transaction(tx, block)

    async def send_transaction(self, tx, block=None):
        self.calls.append(("send_transaction", tx.copy()))
        return await super().send_transaction(tx, block)

    async def send_raw_transaction(self, raw):
        self.calls.append(("send_raw_transaction", raw))
        return await super().send_raw_transaction(raw)

    async def estimate_gas(self, tx, block=None):
        self.calls.append(("estimate_gas", tx.copy()))
        return await super().estimate_gas(tx, block)

    async def call(self, tx, block=None):
        self.calls.append(("call", tx.copy()))
        return await super().call(tx, block)

    def ops(self) -> List[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def endpoint():
    return FakeEndpoint()


@pytest.fixture
def provider(endpoint):
    return Provider(endpoint)


@pytest.fixture
def wallet():
    return Wallet.from_key(KEY_1, chain_id=1337)
