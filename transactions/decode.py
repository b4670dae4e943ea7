from __future__ import annotations

from typing import Any, List, Tuple

from primitives.signature import Signature

from . import encoding as enc
from .typed import (
    ACCESS_LIST_TX_TYPE,
    FEE_MARKET_TX_TYPE,
    AccessListItem,
    AccessListTransaction,
    FeeMarketTransaction,
    LegacyTransaction,
    TypedTransaction,
)


def _maybe_to(b: bytes):
    return b if b else None


def _access_list(raw: List[Any]) -> Tuple[AccessListItem, ...]:
    return tuple(AccessListItem(address=item[0], storage_keys=tuple(item[1])) for item in raw)


def decode_signed_transaction(raw: bytes) -> Tuple[TypedTransaction, Signature]:
    """
    Decode raw signed bytes back into a transaction and its signature.

    The sender is recovered from the signature and written to ``from_``.
    """
    if not raw:
        raise ValueError("empty transaction bytes")

    if raw[0] >= 0xC0:
        fields = enc.decode_list(raw)
        if len(fields) != 9:
            raise ValueError(f"legacy transaction must have 9 fields, got {len(fields)}")
        nonce, gas_price, gas, to, value, data, v, r, s = fields
        v = enc.decode_int(v)
        chain_id = (v - 35) // 2 if v >= 35 else None
        tx: TypedTransaction = LegacyTransaction(
            to=_maybe_to(to),
            nonce=enc.decode_int(nonce),
            value=enc.decode_int(value),
            data=data,
            gas=enc.decode_int(gas),
            chain_id=chain_id,
            gas_price=enc.decode_int(gas_price),
        )
    elif raw[0] == ACCESS_LIST_TX_TYPE:
        fields = enc.decode_list(raw[1:])
        if len(fields) != 11:
            raise ValueError(f"access list transaction must have 11 fields, got {len(fields)}")
        chain_id, nonce, gas_price, gas, to, value, data, access_list, v, r, s = fields
        v = enc.decode_int(v)
        tx = AccessListTransaction(
            to=_maybe_to(to),
            nonce=enc.decode_int(nonce),
            value=enc.decode_int(value),
            data=data,
            gas=enc.decode_int(gas),
            chain_id=enc.decode_int(chain_id),
            gas_price=enc.decode_int(gas_price),
            access_list=_access_list(access_list),
        )
    elif raw[0] == FEE_MARKET_TX_TYPE:
        fields = enc.decode_list(raw[1:])
        if len(fields) != 12:
            raise ValueError(f"fee market transaction must have 12 fields, got {len(fields)}")
        chain_id, nonce, tip, fee_cap, gas, to, value, data, access_list, v, r, s = fields
        v = enc.decode_int(v)
        tx = FeeMarketTransaction(
            to=_maybe_to(to),
            nonce=enc.decode_int(nonce),
            value=enc.decode_int(value),
            data=data,
            gas=enc.decode_int(gas),
            chain_id=enc.decode_int(chain_id),
            max_priority_fee_per_gas=enc.decode_int(tip),
            max_fee_per_gas=enc.decode_int(fee_cap),
            access_list=_access_list(access_list),
        )
    else:
        raise ValueError(f"Unsupported tx type byte: {raw[0]:#04x}")

    signature = Signature(r=enc.decode_int(r), s=enc.decode_int(s), v=v)
    tx.from_ = signature.recover_hash(tx.sighash())
    return tx, signature
