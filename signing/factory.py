from __future__ import annotations

from functools import lru_cache
from typing import Optional

from core.settings import Settings, SettingsValidationError, SignerType, settings

from .keys import RemoteKey
from .wallet import Wallet


def build_signer(cfg: Optional[Settings] = None) -> Wallet:
    """
    Select the key holder based on SIGNER_TYPE.

    Supported:
    - private_key (default): PRIVATE_KEY
    - keystore: KEYSTORE_PATH + KEYSTORE_PASSWORD
    - remote: SIGNER_REMOTE_URL (digest-signing service)

    The wallet is bound to CHAIN_ID when configured, otherwise to chain 1.
    """
    cfg = cfg or settings
    missing = cfg.signer_config_errors()
    if missing:
        raise SettingsValidationError("SIGNER_TYPE", cfg.SIGNER_TYPE.value, "; ".join(missing))

    chain_id = cfg.CHAIN_ID if cfg.CHAIN_ID is not None else Wallet.DEFAULT_CHAIN_ID
    if cfg.SIGNER_TYPE == SignerType.PRIVATE_KEY:
        return Wallet.from_key(cfg.PRIVATE_KEY, chain_id=chain_id)
    if cfg.SIGNER_TYPE == SignerType.KEYSTORE:
        return Wallet.from_keystore(cfg.KEYSTORE_PATH, cfg.KEYSTORE_PASSWORD, chain_id=chain_id)
    return Wallet(RemoteKey(cfg.SIGNER_REMOTE_URL), chain_id=chain_id)


@lru_cache(maxsize=1)
def get_signer() -> Wallet:
    """Process-wide signer built from the global settings."""
    return build_signer(settings)
