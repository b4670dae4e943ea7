from __future__ import annotations

from enum import IntEnum
from typing import FrozenSet, Iterable, Optional


class Chain(IntEnum):
    """Known networks by EIP-155 chain id."""

    MAINNET = 1
    GOERLI = 5
    OPTIMISM = 10
    RSK = 30
    BINANCE_SMART_CHAIN = 56
    CRONOS = 25
    OPTIMISM_KOVAN = 69
    BINANCE_SMART_CHAIN_TESTNET = 97
    POLYGON = 137
    FANTOM = 250
    BOBA = 288
    CRONOS_TESTNET = 338
    FANTOM_TESTNET = 4002
    BASE = 8453
    OASIS = 26863
    ANVIL = 31337
    ARBITRUM = 42161
    CELO = 42220
    EMERALD_TESTNET = 42261
    EMERALD = 42262
    CELO_ALFAJORES = 44787
    CELO_BAKLAVA = 62320
    POLYGON_AMOY = 80002
    ARBITRUM_TESTNET = 421611
    SEPOLIA = 11155111

    @property
    def is_legacy(self) -> bool:
        """Networks that reject EIP-1559 fee-market transactions."""
        return self in _LEGACY_CHAINS

    @classmethod
    def from_id(cls, chain_id: int) -> Optional["Chain"]:
        try:
            return cls(int(chain_id))
        except ValueError:
            return None

    @classmethod
    def from_name(cls, name: str) -> "Chain":
        key = (name or "").strip().upper().replace("-", "_")
        if key == "ETHEREUM":
            key = "MAINNET"
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unsupported chain: {name}") from None


_LEGACY_CHAINS: FrozenSet[Chain] = frozenset(
    {
        Chain.OPTIMISM_KOVAN,
        Chain.FANTOM,
        Chain.FANTOM_TESTNET,
        Chain.BINANCE_SMART_CHAIN,
        Chain.BINANCE_SMART_CHAIN_TESTNET,
        Chain.ARBITRUM_TESTNET,
        Chain.RSK,
        Chain.OASIS,
        Chain.EMERALD,
        Chain.EMERALD_TESTNET,
        Chain.CELO,
        Chain.CELO_ALFAJORES,
        Chain.CELO_BAKLAVA,
        Chain.BOBA,
        Chain.CRONOS,
        Chain.CRONOS_TESTNET,
    }
)


def is_legacy_chain(chain_id: Optional[int], extra_legacy_ids: Iterable[int] = ()) -> bool:
    """
    True when ``chain_id`` is known not to support fee-market transactions.

    Unknown chain ids are assumed to support them; deployments add their own
    legacy-only networks through ``extra_legacy_ids``.
    """
    if chain_id is None:
        return False
    if int(chain_id) in set(extra_legacy_ids):
        return True
    chain = Chain.from_id(chain_id)
    return chain is not None and chain.is_legacy
