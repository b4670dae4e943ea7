from __future__ import annotations

from typing import Any, Optional

from eth_keys import keys
from eth_typing import ChecksumAddress
from eth_utils import is_address, keccak, to_canonical_address, to_checksum_address

ZERO_ADDRESS: ChecksumAddress = to_checksum_address("0x" + "00" * 20)


def to_address(value: Any) -> ChecksumAddress:
    """
    Normalize a 20-byte address (hex string of any case, or raw bytes) to EIP-55 checksum form.
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise ValueError(f"address must be 20 bytes, got {len(value)}")
        return to_checksum_address(bytes(value))
    if isinstance(value, str) and is_address(value.strip().lower()):
        return to_checksum_address(value.strip())
    raise ValueError(f"Invalid address: {value!r}")


def maybe_address(value: Any) -> Optional[ChecksumAddress]:
    if value is None or value == "" or value == b"":
        return None
    return to_address(value)


def address_bytes(value: Optional[str]) -> bytes:
    """Canonical 20 bytes, or empty bytes for contract creation."""
    if value is None:
        return b""
    return to_canonical_address(value)


def is_hex_address(s: str) -> bool:
    v = (s or "").strip()
    if not (v.startswith("0x") and len(v) == 42):
        return False
    try:
        int(v[2:], 16)
        return True
    except ValueError:
        return False


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return False
    return a.lower() == b.lower()


def public_key_to_address(public_key: bytes) -> ChecksumAddress:
    """
    Derive an address from an uncompressed secp256k1 public key.

    Accepts the 65-byte SEC1 form (0x04 || X || Y) or the bare 64-byte X || Y.
    The address is the low-order 20 bytes of keccak256(X || Y).
    """
    if len(public_key) == 65:
        if public_key[0] != 0x04:
            raise ValueError("uncompressed public key must start with 0x04")
        public_key = public_key[1:]
    if len(public_key) != 64:
        raise ValueError(f"expected a 64 or 65 byte public key, got {len(public_key)}")
    return to_checksum_address(keccak(public_key)[12:])


def secret_key_to_address(secret_key: bytes) -> ChecksumAddress:
    public_key = keys.PrivateKey(secret_key).public_key
    return public_key_to_address(b"\x04" + public_key.to_bytes())
