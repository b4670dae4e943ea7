from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict

from transactions.typed import TypedTransaction


@dataclass
class TransformerError(Exception):
    """Raised by a Transformer that cannot rewrite the given transaction."""

    code: str
    message: str
    data: Dict[str, Any]

    def __str__(self) -> str:
        return self.message


MISSING_FIELD = "missing_field"
ABI_ENCODING = "abi_encoding"


class Transformer(ABC):
    @abstractmethod
    def transform(self, tx: TypedTransaction) -> TypedTransaction:
        """
        Return the transaction to forward instead of ``tx``.

        Implementations may modify ``tx`` in place and return it; the middleware
        always passes a copy.
        """
        raise NotImplementedError
