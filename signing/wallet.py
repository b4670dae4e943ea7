from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional, Union

from eth_account import Account
from eth_typing import ChecksumAddress

from primitives.address import to_address
from primitives.hashing import hash_message
from primitives.signature import Signature, to_eip155_v
from transactions.typed import TypedTransaction

from .base import KeyHolder, Signer, WalletError
from .keys import LocalKey


class Wallet(Signer):
    """
    A Signer backed by a secp256k1 key holder.

    The wallet exclusively owns its key holder. Changing the chain id produces a
    new Wallet (``with_chain_id``); nothing mutates a wallet another component
    already holds.

    Example:
        wallet = Wallet.from_key("0x...").with_chain_id(1337)
        signature = wallet.sign_message(b"hello")
        assert signature.recover(b"hello") == wallet.address
    """

    DEFAULT_CHAIN_ID = 1

    def __init__(
        self,
        key: KeyHolder,
        *,
        chain_id: int = DEFAULT_CHAIN_ID,
        address: Optional[str] = None,
    ) -> None:
        if int(chain_id) < 0:
            raise ValueError("chain_id must be non-negative")
        self._key = key
        self._address = to_address(address) if address else key.address
        self._chain_id = int(chain_id)

    @classmethod
    def from_key(cls, private_key: Union[bytes, str], *, chain_id: int = DEFAULT_CHAIN_ID) -> "Wallet":
        return cls(LocalKey(private_key), chain_id=chain_id)

    @classmethod
    def create(cls, *, chain_id: int = DEFAULT_CHAIN_ID) -> "Wallet":
        """A wallet with a freshly generated random key."""
        return cls(LocalKey.generate(), chain_id=chain_id)

    @classmethod
    def from_keystore(
        cls, path: Union[str, Path], password: str, *, chain_id: int = DEFAULT_CHAIN_ID
    ) -> "Wallet":
        """Decrypt an Ethereum keystore JSON (v3) file."""
        path = Path(path).expanduser()
        if not path.exists():
            raise WalletError("keystore_not_found", f"Keystore file not found: {path}", {"path": str(path)})
        keystore = json.loads(path.read_text())
        try:
            pk_bytes = Account.decrypt(keystore, password)
        except ValueError as e:
            raise WalletError("keystore_decrypt_failed", str(e), {"path": str(path)}) from e
        return cls.from_key(bytes(pk_bytes), chain_id=chain_id)

    @classmethod
    def from_env(cls, env_var: str = "PRIVATE_KEY", *, chain_id: int = DEFAULT_CHAIN_ID) -> "Wallet":
        """Development helper: read a raw hex private key from the environment."""
        pk = os.getenv(env_var)
        if not pk:
            raise ValueError(f"{env_var} environment variable not set")
        return cls.from_key(pk, chain_id=chain_id)

    @property
    def address(self) -> ChecksumAddress:
        return self._address

    @property
    def chain_id(self) -> int:
        return self._chain_id

    @property
    def key(self) -> KeyHolder:
        return self._key

    def with_chain_id(self, chain_id: int) -> "Wallet":
        return Wallet(self._key, chain_id=chain_id, address=self._address)

    def sign_hash(self, msg_hash: bytes) -> Signature:
        """Sign a prehashed digest; ``v`` is recovery_id + 27 (no replay protection)."""
        r, s, recovery_id = self._key.sign_prehash(msg_hash)
        return Signature(r=r, s=s, v=recovery_id + 27)

    def sign_message(self, message: Union[bytes, str]) -> Signature:
        return self.sign_hash(hash_message(message))

    def sign_transaction(self, tx: TypedTransaction) -> Signature:
        chain_id = tx.chain_id if tx.chain_id is not None else self._chain_id
        tx = tx.copy()
        tx.chain_id = chain_id
        sig = self.sign_hash(tx.sighash())
        # sign_hash sets v to recovery_id + 27
        return Signature(r=sig.r, s=sig.s, v=to_eip155_v(sig.v - 27, chain_id))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Wallet):
            return NotImplemented
        return self._key == other._key and self._address == other._address and self._chain_id == other._chain_id

    def __hash__(self) -> int:
        return hash((self._address, self._chain_id))

    def __repr__(self) -> str:
        # do not log the key holder
        return f"Wallet(address={self._address}, chain_id={self._chain_id})"
