from __future__ import annotations

import dataclasses
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple

from eth_typing import ChecksumAddress
from eth_utils import keccak

from primitives.address import address_bytes, maybe_address, to_address
from primitives.signature import Signature, normalize_v, recovery_id_from_v, to_eip155_v

from . import encoding as enc

LEGACY_TX_TYPE = 0
ACCESS_LIST_TX_TYPE = 1
FEE_MARKET_TX_TYPE = 2


@dataclass(frozen=True)
class AccessListItem:
    address: ChecksumAddress
    storage_keys: Tuple[bytes, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "address", to_address(self.address))
        keys = tuple(enc.to_bytes(k, name="storageKey") for k in self.storage_keys)
        for k in keys:
            if len(k) != 32:
                raise ValueError("access list storage keys must be 32 bytes")
        object.__setattr__(self, "storage_keys", keys)

    def to_rlp(self) -> List[Any]:
        return [address_bytes(self.address), list(self.storage_keys)]

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, "storageKeys": ["0x" + k.hex() for k in self.storage_keys]}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AccessListItem":
        return cls(address=d["address"], storage_keys=tuple(d.get("storageKeys") or ()))


AccessList = Tuple[AccessListItem, ...]


def _access_list(items: Any) -> AccessList:
    out = []
    for item in items or ():
        out.append(item if isinstance(item, AccessListItem) else AccessListItem.from_dict(item))
    return tuple(out)


@dataclass(frozen=True)
class AccessListResult:
    """Result of eth_createAccessList."""

    access_list: AccessList
    gas_used: int


@dataclass
class TypedTransaction(ABC):
    """
    Fields shared by every transaction variant.

    Optional fields stay ``None`` until a middleware layer fills them.
    """

    TX_TYPE: ClassVar[int]

    from_: Optional[ChecksumAddress] = None
    to: Optional[ChecksumAddress] = None
    nonce: Optional[int] = None
    value: int = 0
    data: bytes = b""
    gas: Optional[int] = None
    chain_id: Optional[int] = None

    def __post_init__(self) -> None:
        self.from_ = maybe_address(self.from_)
        self.to = maybe_address(self.to)
        self.data = enc.to_bytes(self.data, name="data")
        self.value = enc.to_int(self.value if self.value is not None else 0, name="value")

    @property
    def tx_type(self) -> int:
        return self.TX_TYPE

    @property
    @abstractmethod
    def fee_cap(self) -> Optional[int]:
        """gas price for legacy pricing, max fee per gas for fee-market pricing."""

    def copy(self) -> "TypedTransaction":
        return dataclasses.replace(self)

    @abstractmethod
    def signing_payload(self) -> bytes:
        """The bytes whose keccak256 is signed."""

    @abstractmethod
    def rlp_signed(self, signature: Signature) -> bytes:
        """Canonical raw bytes accepted by eth_sendRawTransaction."""

    def sighash(self) -> bytes:
        return keccak(self.signing_payload())

    def hash(self, signature: Signature) -> bytes:
        return keccak(self.rlp_signed(signature))

    def to_dict(self) -> Dict[str, Any]:
        """web3-style transaction params; unset fields are omitted."""
        d: Dict[str, Any] = {
            "from": self.from_,
            "to": self.to,
            "nonce": self.nonce,
            "value": self.value,
            "data": "0x" + self.data.hex(),
            "gas": self.gas,
            "chainId": self.chain_id,
        }
        d.update(self._fee_fields())
        return {k: v for k, v in d.items() if v is not None}

    @abstractmethod
    def _fee_fields(self) -> Dict[str, Any]:
        ...


@dataclass
class LegacyTransaction(TypedTransaction):
    TX_TYPE: ClassVar[int] = LEGACY_TX_TYPE

    gas_price: Optional[int] = None

    @property
    def fee_cap(self) -> Optional[int]:
        return self.gas_price

    def _fields(self) -> List[Any]:
        return [
            enc.rlp_opt(self.nonce),
            enc.rlp_opt(self.gas_price),
            enc.rlp_opt(self.gas),
            address_bytes(self.to),
            enc.rlp_int(self.value),
            self.data,
        ]

    def signing_payload(self) -> bytes:
        if self.chain_id is None:
            # pre-EIP-155: no replay protection
            return enc.encode(self._fields())
        return enc.encode(self._fields() + [enc.rlp_int(self.chain_id), b"", b""])

    def rlp_signed(self, signature: Signature) -> bytes:
        recovery_id = recovery_id_from_v(signature.v)
        if self.chain_id is None:
            v = recovery_id + 27
        else:
            v = to_eip155_v(recovery_id, self.chain_id)
        return enc.encode(self._fields() + [enc.rlp_int(v), enc.rlp_int(signature.r), enc.rlp_int(signature.s)])

    def _fee_fields(self) -> Dict[str, Any]:
        return {"gasPrice": self.gas_price}


@dataclass
class AccessListTransaction(TypedTransaction):
    TX_TYPE: ClassVar[int] = ACCESS_LIST_TX_TYPE

    gas_price: Optional[int] = None
    access_list: AccessList = field(default_factory=tuple)

    def __post_init__(self) -> None:
        super().__post_init__()
        self.access_list = _access_list(self.access_list)

    @property
    def fee_cap(self) -> Optional[int]:
        return self.gas_price

    def _fields(self) -> List[Any]:
        return [
            enc.rlp_opt(self.chain_id),
            enc.rlp_opt(self.nonce),
            enc.rlp_opt(self.gas_price),
            enc.rlp_opt(self.gas),
            address_bytes(self.to),
            enc.rlp_int(self.value),
            self.data,
            [item.to_rlp() for item in self.access_list],
        ]

    def signing_payload(self) -> bytes:
        return enc.encode_typed(self.TX_TYPE, self._fields())

    def rlp_signed(self, signature: Signature) -> bytes:
        y_parity = normalize_v(signature.v, self.chain_id)
        return enc.encode_typed(
            self.TX_TYPE,
            self._fields() + [enc.rlp_int(y_parity), enc.rlp_int(signature.r), enc.rlp_int(signature.s)],
        )

    def _fee_fields(self) -> Dict[str, Any]:
        return {
            "gasPrice": self.gas_price,
            "accessList": [item.to_dict() for item in self.access_list],
            "type": self.TX_TYPE,
        }


@dataclass
class FeeMarketTransaction(TypedTransaction):
    TX_TYPE: ClassVar[int] = FEE_MARKET_TX_TYPE

    max_priority_fee_per_gas: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    access_list: AccessList = field(default_factory=tuple)

    def __post_init__(self) -> None:
        super().__post_init__()
        self.access_list = _access_list(self.access_list)

    @property
    def fee_cap(self) -> Optional[int]:
        return self.max_fee_per_gas

    def _fields(self) -> List[Any]:
        return [
            enc.rlp_opt(self.chain_id),
            enc.rlp_opt(self.nonce),
            enc.rlp_opt(self.max_priority_fee_per_gas),
            enc.rlp_opt(self.max_fee_per_gas),
            enc.rlp_opt(self.gas),
            address_bytes(self.to),
            enc.rlp_int(self.value),
            self.data,
            [item.to_rlp() for item in self.access_list],
        ]

    def signing_payload(self) -> bytes:
        return enc.encode_typed(self.TX_TYPE, self._fields())

    def rlp_signed(self, signature: Signature) -> bytes:
        y_parity = normalize_v(signature.v, self.chain_id)
        return enc.encode_typed(
            self.TX_TYPE,
            self._fields() + [enc.rlp_int(y_parity), enc.rlp_int(signature.r), enc.rlp_int(signature.s)],
        )

    def to_legacy(self) -> LegacyTransaction:
        """
        Downgrade for networks without a fee market.

        The fee cap becomes the gas price; the access list has no legacy encoding and is dropped.
        """
        return LegacyTransaction(
            from_=self.from_,
            to=self.to,
            nonce=self.nonce,
            value=self.value,
            data=self.data,
            gas=self.gas,
            chain_id=self.chain_id,
            gas_price=self.max_fee_per_gas,
        )

    def _fee_fields(self) -> Dict[str, Any]:
        return {
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
            "maxFeePerGas": self.max_fee_per_gas,
            "accessList": [item.to_dict() for item in self.access_list],
            "type": self.TX_TYPE,
        }


def transaction_from_dict(tx: Dict[str, Any]) -> TypedTransaction:
    """
    Build a transaction from a web3-style params dict.

    The variant comes from ``type`` when present, otherwise from which fee fields are set.
    """
    tx_type = tx.get("type")
    if tx_type is not None:
        tx_type = enc.to_int(tx_type, name="type")
    elif "maxFeePerGas" in tx or "maxPriorityFeePerGas" in tx:
        tx_type = FEE_MARKET_TX_TYPE
    elif "accessList" in tx:
        tx_type = ACCESS_LIST_TX_TYPE
    else:
        tx_type = LEGACY_TX_TYPE

    common = dict(
        from_=tx.get("from"),
        to=tx.get("to") or None,
        nonce=enc.maybe_int(tx.get("nonce"), name="nonce"),
        value=enc.to_int(tx.get("value", 0), name="value"),
        data=enc.to_bytes(tx.get("data", tx.get("input")), name="data"),
        gas=enc.maybe_int(tx.get("gas"), name="gas"),
        chain_id=enc.maybe_int(tx.get("chainId"), name="chainId"),
    )
    if tx_type == LEGACY_TX_TYPE:
        return LegacyTransaction(gas_price=enc.maybe_int(tx.get("gasPrice"), name="gasPrice"), **common)
    if tx_type == ACCESS_LIST_TX_TYPE:
        return AccessListTransaction(
            gas_price=enc.maybe_int(tx.get("gasPrice"), name="gasPrice"),
            access_list=_access_list(tx.get("accessList")),
            **common,
        )
    if tx_type == FEE_MARKET_TX_TYPE:
        return FeeMarketTransaction(
            max_priority_fee_per_gas=enc.maybe_int(tx.get("maxPriorityFeePerGas"), name="maxPriorityFeePerGas"),
            max_fee_per_gas=enc.maybe_int(tx.get("maxFeePerGas"), name="maxFeePerGas"),
            access_list=_access_list(tx.get("accessList")),
            **common,
        )
    raise ValueError(f"Unsupported tx type: {tx_type} (supported: 0, 1, 2)")
