from __future__ import annotations

import hmac
import os
from functools import cached_property
from typing import Optional, Tuple

import requests
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature
from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError
from eth_typing import ChecksumAddress

from primitives.address import secret_key_to_address, to_address
from primitives.signature import SECP256K1_HALF_N, SECP256K1_N

from .base import WalletError


def parse_private_key(value: bytes | str) -> bytes:
    if isinstance(value, str):
        s = value.strip()
        if s[:2] in ("0x", "0X"):
            s = s[2:]
        try:
            raw = bytes.fromhex(s)
        except ValueError:
            raise WalletError("invalid_key_hex", "Private key is not valid hex.", {}) from None
    else:
        raw = bytes(value)
    if len(raw) != 32:
        raise WalletError("invalid_key_length", "Private key must be 32 bytes.", {"length": len(raw)})
    k = int.from_bytes(raw, "big")
    if k <= 0 or k >= SECP256K1_N:
        raise WalletError("invalid_key_range", "Private key is outside the secp256k1 scalar range.", {})
    return raw


class LocalKey:
    """An in-process secp256k1 key. Signing is deterministic (RFC 6979)."""

    def __init__(self, secret: bytes | str) -> None:
        self._key = keys.PrivateKey(parse_private_key(secret))

    @classmethod
    def generate(cls) -> "LocalKey":
        while True:
            try:
                return cls(os.urandom(32))
            except WalletError:
                continue

    @cached_property
    def address(self) -> ChecksumAddress:
        return secret_key_to_address(self._key.to_bytes())

    def to_bytes(self) -> bytes:
        return self._key.to_bytes()

    def sign_prehash(self, msg_hash: bytes) -> Tuple[int, int, int]:
        if len(msg_hash) != 32:
            raise WalletError("invalid_digest", "expected a 32 byte digest", {"length": len(msg_hash)})
        sig = self._key.sign_msg_hash(msg_hash)
        return sig.r, sig.s, sig.v

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LocalKey):
            return NotImplemented
        return hmac.compare_digest(self.to_bytes(), other.to_bytes())

    def __hash__(self) -> int:
        return hash(self.address)

    def __repr__(self) -> str:
        # do not log the key
        return f"LocalKey(address={self.address})"


def _http_timeout() -> float:
    return float((os.getenv("HTTP_TIMEOUT_SEC") or "10").strip())


def _normalize_sig(r: int, s: int) -> Tuple[int, int]:
    if r <= 0 or r >= SECP256K1_N:
        raise WalletError("invalid_signature", "invalid r", {})
    if s <= 0 or s >= SECP256K1_N:
        raise WalletError("invalid_signature", "invalid s", {})
    if s > SECP256K1_HALF_N:
        s = SECP256K1_N - s
    return r, s


def _find_recovery_id(msg_hash: bytes, r: int, s: int, expected_address: str) -> int:
    exp = expected_address.strip().lower()
    for recid in (0, 1):
        try:
            pub = keys.Signature(vrs=(recid, r, s)).recover_public_key_from_msg_hash(msg_hash)
        except (BadSignature, ValidationError):
            continue
        if pub.to_checksum_address().lower() == exp:
            return recid
    raise WalletError(
        "recovery_id_not_found",
        "could not determine recovery id (address mismatch)",
        {"expected_address": expected_address},
    )


class RemoteKey:
    """
    Key held by a remote digest-signing service (HSM proxy, MPC leader, sidecar).

    The service never sees a transaction, only the 32-byte digest. It returns a
    DER-encoded ECDSA signature; low-s normalization and recovery-id discovery
    happen locally.

    Protocol (HTTP JSON):
    GET  {base_url}/address      -> {"address": "0x..."}
    POST {base_url}/sign_digest  body: {"digest_hex": "0x..."}
                                 response: {"ok": true, "signature_der_hex": "0x..."}
    """

    def __init__(self, base_url: Optional[str] = None, *, url_env: str = "SIGNER_REMOTE_URL") -> None:
        url = (base_url or os.getenv(url_env) or "").strip()
        if not url:
            raise ValueError(f"{url_env} environment variable not set")
        self._base_url = url.rstrip("/")
        self._cached_address: Optional[ChecksumAddress] = None

    @property
    def address(self) -> ChecksumAddress:
        if self._cached_address:
            return self._cached_address
        try:
            r = requests.get(f"{self._base_url}/address", timeout=_http_timeout())
            r.raise_for_status()
        except requests.RequestException as e:
            raise WalletError("remote_unreachable", f"Remote signer request failed: {e}", {"path": "/address"}) from e
        addr = str(r.json().get("address") or "").strip()
        if not addr:
            raise WalletError("remote_empty_address", "Remote signer returned empty address", {})
        self._cached_address = to_address(addr)
        return self._cached_address

    def _sign_digest(self, msg_hash: bytes) -> bytes:
        payload = {"digest_hex": "0x" + msg_hash.hex()}
        try:
            r = requests.post(f"{self._base_url}/sign_digest", json=payload, timeout=_http_timeout())
            r.raise_for_status()
        except requests.RequestException as e:
            raise WalletError("remote_unreachable", f"Remote signer request failed: {e}", {"path": "/sign_digest"}) from e
        data = r.json()
        if not data.get("ok"):
            raise WalletError("remote_sign_failed", "Remote signer refused the digest", {"response": data})
        sig_hex = str(data.get("signature_der_hex") or "").strip()
        if sig_hex.startswith("0x"):
            sig_hex = sig_hex[2:]
        sig = bytes.fromhex(sig_hex)
        if not sig:
            raise WalletError("remote_empty_signature", "Remote signer returned empty signature", {})
        return sig

    def sign_prehash(self, msg_hash: bytes) -> Tuple[int, int, int]:
        if len(msg_hash) != 32:
            raise WalletError("invalid_digest", "expected a 32 byte digest", {"length": len(msg_hash)})
        try:
            r, s = decode_dss_signature(self._sign_digest(msg_hash))
        except ValueError as e:
            raise WalletError("invalid_signature", f"Remote signer returned malformed DER: {e}", {}) from e
        r, s = _normalize_sig(int(r), int(s))
        return r, s, _find_recovery_id(msg_hash, r, s, self.address)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RemoteKey):
            return NotImplemented
        return self._base_url == other._base_url and self.address == other.address

    def __hash__(self) -> int:
        return hash((self._base_url, self.address))

    def __repr__(self) -> str:
        return f"RemoteKey(base_url={self._base_url!r})"
