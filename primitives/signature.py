from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_typing import ChecksumAddress

from .address import same_address
from .hashing import hash_message

SECP256K1_N = int(
    "0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141",
    16,
)
SECP256K1_HALF_N = SECP256K1_N // 2


class SignatureError(Exception):
    """Raised when a signature cannot be decoded or recovered."""


def to_eip155_v(recovery_id: int, chain_id: int) -> int:
    """Applies EIP-155 replay protection: v = recovery_id + 35 + 2 * chain_id."""
    return int(recovery_id) + 35 + 2 * int(chain_id)


def recovery_id_from_v(v: int) -> int:
    if v in (0, 1):
        return v
    if v in (27, 28):
        return v - 27
    if v >= 35:
        return (v - 35) % 2
    raise SignatureError(f"invalid v value: {v}")


def normalize_v(v: int, chain_id: Optional[int] = None) -> int:
    """
    Collapse any v encoding (0/1, 27/28, EIP-155) to the y-parity used by typed transactions.
    """
    if chain_id is not None and v >= 35 and (v - 35) // 2 != int(chain_id):
        raise SignatureError(f"v={v} was produced for a different chain than {chain_id}")
    return recovery_id_from_v(v)


@dataclass(frozen=True)
class Signature:
    """An ECDSA (r, s, v) signature over secp256k1."""

    r: int
    s: int
    v: int

    @property
    def recovery_id(self) -> int:
        return recovery_id_from_v(self.v)

    def to_bytes(self) -> bytes:
        """r || s || v with v in {27, 28}, the 65-byte form used by eth_sign and ecrecover."""
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.recovery_id + 27])

    def to_hex(self) -> str:
        return "0x" + self.to_bytes().hex()

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Signature":
        if len(raw) != 65:
            raise SignatureError(f"expected 65 signature bytes, got {len(raw)}")
        return cls(
            r=int.from_bytes(raw[:32], "big"),
            s=int.from_bytes(raw[32:64], "big"),
            v=raw[64],
        )

    def recover_hash(self, msg_hash: bytes) -> ChecksumAddress:
        if len(msg_hash) != 32:
            raise SignatureError("expected a 32 byte hash")
        try:
            sig = keys.Signature(vrs=(self.recovery_id, self.r, self.s))
            public_key = sig.recover_public_key_from_msg_hash(msg_hash)
        except (BadSignature, ValidationError) as e:
            raise SignatureError(str(e)) from e
        return public_key.to_checksum_address()

    def recover(self, message: Union[bytes, str]) -> ChecksumAddress:
        """Recover the signer of an EIP-191 prefixed message."""
        return self.recover_hash(hash_message(message))

    def verify(self, message: Union[bytes, str], address: str) -> None:
        recovered = self.recover(message)
        if not same_address(recovered, address):
            raise SignatureError(f"signature was produced by {recovered}, expected {address}")
