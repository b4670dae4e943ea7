from __future__ import annotations

from typing import Any, List, Optional, Sequence

import rlp


def rlp_int(i: int) -> bytes:
    if i < 0:
        raise ValueError("RLP integers must be non-negative")
    if i == 0:
        return b""
    return int(i).to_bytes((int(i).bit_length() + 7) // 8, "big")


def rlp_opt(i: Optional[int]) -> bytes:
    """Unset numeric fields encode as the empty string, same as zero."""
    return b"" if i is None else rlp_int(i)


def decode_int(b: bytes) -> int:
    if b[:1] == b"\x00":
        raise ValueError("RLP integers must not have leading zero bytes")
    return int.from_bytes(b, "big")


def to_int(v: Any, *, name: str) -> int:
    if v is None:
        raise ValueError(f"Missing required tx field: {name}")
    if isinstance(v, bool):
        raise ValueError(f"Invalid int field {name}: {v}")
    if isinstance(v, int):
        return v
    if isinstance(v, str):
        s = v.strip().lower()
        if s.startswith("0x"):
            return int(s, 16)
        return int(s, 10)
    raise ValueError(f"Invalid int field {name}: {type(v).__name__}")


def maybe_int(v: Any, *, name: str) -> Optional[int]:
    if v is None:
        return None
    return to_int(v, name=name)


def to_bytes(v: Any, *, name: str) -> bytes:
    if v is None:
        return b""
    if isinstance(v, (bytes, bytearray)):
        return bytes(v)
    if isinstance(v, str):
        s = v.strip()
        if s.startswith("0x"):
            s = s[2:]
        if s == "":
            return b""
        return bytes.fromhex(s)
    raise ValueError(f"Invalid bytes field {name}: {type(v).__name__}")


def encode(items: Sequence[Any]) -> bytes:
    return rlp.encode(list(items))


def encode_typed(tx_type: int, items: Sequence[Any]) -> bytes:
    """EIP-2718 envelope: type byte || rlp(payload)."""
    return bytes([tx_type]) + rlp.encode(list(items))


def decode_list(raw: bytes) -> List[Any]:
    decoded = rlp.decode(raw)
    if not isinstance(decoded, (list, tuple)):
        raise ValueError("expected an RLP list")
    return list(decoded)
