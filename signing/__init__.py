from .base import KeyHolder, Signer, WalletError
from .factory import build_signer, get_signer
from .keys import LocalKey, RemoteKey
from .wallet import Wallet

__all__ = [
    "KeyHolder",
    "LocalKey",
    "RemoteKey",
    "Signer",
    "Wallet",
    "WalletError",
    "build_signer",
    "get_signer",
]
