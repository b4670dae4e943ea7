from __future__ import annotations

from eth_abi import encode as abi_encode
from eth_abi.exceptions import EncodingError
from eth_typing import ChecksumAddress
from eth_utils import function_signature_to_4byte_selector

from primitives.address import to_address
from transactions.typed import TypedTransaction

from .base import ABI_ENCODING, MISSING_FIELD, Transformer, TransformerError

EXECUTE_SIGNATURE = "execute(address,bytes)"
EXECUTE_SELECTOR = function_signature_to_4byte_selector(EXECUTE_SIGNATURE)


class DsProxy(Transformer):
    """
    Route a call through a DSProxy contract.

    ``to=target, data=d`` becomes ``to=proxy, data=execute(target, d)``; the
    proxy delegatecalls the target, so value, sender context and reverts carry
    over. Contract creation has no target and is rejected.
    """

    def __init__(self, address: str) -> None:
        self._address = to_address(address)

    @property
    def address(self) -> ChecksumAddress:
        return self._address

    def transform(self, tx: TypedTransaction) -> TypedTransaction:
        if tx.to is None:
            raise TransformerError(MISSING_FIELD, "DsProxy needs a target: transaction has no 'to'", {"field": "to"})
        try:
            args = abi_encode(["address", "bytes"], [tx.to, tx.data])
        except EncodingError as e:
            raise TransformerError(ABI_ENCODING, f"could not encode execute() calldata: {e}", {"to": tx.to}) from e
        tx.data = EXECUTE_SELECTOR + args
        tx.to = self._address
        return tx
