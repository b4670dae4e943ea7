from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Protocol, Tuple, Union

from eth_typing import ChecksumAddress

from primitives.signature import Signature
from transactions.typed import TypedTransaction


@dataclass
class WalletError(Exception):
    """Raised when a key holder cannot be loaded or cannot produce a signature."""

    code: str
    message: str
    data: Dict[str, Any]

    def __str__(self) -> str:
        return self.message


class KeyHolder(Protocol):
    """
    Anything that owns a secp256k1 key and can sign a 32-byte digest.

    Local keys, HSM proxies and MPC services all satisfy this without leaking
    their library types into the pipeline.
    """

    @property
    def address(self) -> ChecksumAddress:
        ...

    def sign_prehash(self, msg_hash: bytes) -> Tuple[int, int, int]:
        """Return (r, s, recovery_id) for ``msg_hash``."""
        ...


class Signer(ABC):
    """
    A minimal signing interface for messages and EVM transactions.
    """

    @property
    @abstractmethod
    def address(self) -> ChecksumAddress:
        raise NotImplementedError

    @property
    @abstractmethod
    def chain_id(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def with_chain_id(self, chain_id: int) -> "Signer":
        """Return a copy bound to ``chain_id``; the receiver is left untouched."""
        raise NotImplementedError

    @abstractmethod
    def sign_message(self, message: Union[bytes, str]) -> Signature:
        """Sign the EIP-191 hash of ``message``, never the raw bytes."""
        raise NotImplementedError

    @abstractmethod
    def sign_transaction(self, tx: TypedTransaction) -> Signature:
        """Sign the transaction's signing hash; ``v`` carries EIP-155 replay protection."""
        raise NotImplementedError
