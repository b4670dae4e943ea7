from .decode import decode_signed_transaction
from .typed import (
    ACCESS_LIST_TX_TYPE,
    FEE_MARKET_TX_TYPE,
    LEGACY_TX_TYPE,
    AccessList,
    AccessListItem,
    AccessListResult,
    AccessListTransaction,
    FeeMarketTransaction,
    LegacyTransaction,
    TypedTransaction,
    transaction_from_dict,
)

__all__ = [
    "ACCESS_LIST_TX_TYPE",
    "FEE_MARKET_TX_TYPE",
    "LEGACY_TX_TYPE",
    "AccessList",
    "AccessListItem",
    "AccessListResult",
    "AccessListTransaction",
    "FeeMarketTransaction",
    "LegacyTransaction",
    "TypedTransaction",
    "decode_signed_transaction",
    "transaction_from_dict",
]
