from .address import (
    ZERO_ADDRESS,
    address_bytes,
    is_hex_address,
    maybe_address,
    public_key_to_address,
    same_address,
    secret_key_to_address,
    to_address,
)
from .chain import Chain, is_legacy_chain
from .hashing import hash_message, keccak256
from .signature import Signature, SignatureError, normalize_v, recovery_id_from_v, to_eip155_v

__all__ = [
    "Chain",
    "Signature",
    "SignatureError",
    "ZERO_ADDRESS",
    "address_bytes",
    "hash_message",
    "is_hex_address",
    "is_legacy_chain",
    "keccak256",
    "maybe_address",
    "normalize_v",
    "public_key_to_address",
    "recovery_id_from_v",
    "same_address",
    "secret_key_to_address",
    "to_address",
    "to_eip155_v",
]
