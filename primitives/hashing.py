from __future__ import annotations

from typing import Union

from eth_utils import keccak

MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n"


def keccak256(data: bytes) -> bytes:
    return keccak(data)


def hash_message(message: Union[bytes, str]) -> bytes:
    """
    EIP-191 personal message hash.

    keccak256("\\x19Ethereum Signed Message:\\n" + len(message) + message)

    A signature over this digest can never be replayed as a transaction signature,
    because no RLP-encoded transaction starts with the 0x19 byte.
    """
    if isinstance(message, str):
        message = message.encode("utf-8")
    return keccak(MESSAGE_PREFIX + str(len(message)).encode("ascii") + message)
