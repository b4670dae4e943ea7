"""
Unified settings for the transaction pipeline.

All environment variables are parsed and validated once, when the module-level
``settings`` instance is created, so a misconfigured deployment fails at startup
instead of on the first broadcast.

Usage:
    from core.settings import settings

    if settings.TRANSFORM_READ_CALLS:
        # rewrite eth_call / eth_estimateGas too
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, FrozenSet, Set, Tuple

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class SignerType(Enum):
    """Key holder backends."""

    PRIVATE_KEY = "private_key"
    KEYSTORE = "keystore"
    REMOTE = "remote"


class SettingsValidationError(Exception):
    """Raised when settings validation fails."""

    def __init__(self, field: str, value: Any, message: str):
        self.field = field
        self.value = value
        super().__init__(f"Invalid configuration for {field}={value!r}: {message}")


DEFAULT_NONCE_CONFLICT_MARKERS: Tuple[str, ...] = (
    "nonce too low",
    "nonce is too low",
    "already known",
    "replacement transaction underpriced",
)


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean from environment variable."""
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _parse_int(value: str | None, default: int | None = None) -> int | None:
    """Parse an integer from environment variable."""
    if value is None or value.strip() == "":
        return default
    try:
        return int(value.strip(), 0)  # Support hex with 0x prefix
    except ValueError:
        return default


def _parse_float(value: str | None, default: float | None = None) -> float | None:
    """Parse a float from environment variable."""
    if value is None or value.strip() == "":
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


def _parse_csv_set(value: str | None) -> FrozenSet[str]:
    """Parse a comma-separated list into a frozen set of lowercase strings."""
    if not value:
        return frozenset()
    return frozenset(v.strip().lower() for v in value.split(",") if v.strip())


def _parse_csv_int_set(value: str | None) -> FrozenSet[int]:
    """Parse a comma-separated list of integers."""
    if not value:
        return frozenset()
    result: Set[int] = set()
    for part in value.split(","):
        s = part.strip()
        if not s:
            continue
        try:
            result.add(int(s, 0))
        except ValueError:
            continue
    return frozenset(result)


def _parse_markers(value: str | None) -> Tuple[str, ...]:
    if not value:
        return DEFAULT_NONCE_CONFLICT_MARKERS
    return tuple(v.strip().lower() for v in value.split(",") if v.strip())


def _parse_signer_type(value: str | None) -> SignerType:
    raw = (value or "private_key").strip().lower()
    if raw in [e.value for e in SignerType]:
        return SignerType(raw)
    return SignerType.PRIVATE_KEY


def _get_version_from_pyproject() -> str:
    """Extract version from pyproject.toml."""
    try:
        pyproject_path = Path(__file__).parent.parent / "pyproject.toml"
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
        version: str = str(data.get("project", {}).get("version", "0.0.0"))
        return version
    except (OSError, tomllib.TOMLDecodeError):
        return "0.0.0"


@dataclass
class Settings:
    """
    Settings class with validation.

    Every field reads its environment variable at instantiation time, so tests
    can build a fresh ``Settings()`` after ``monkeypatch.setenv``.
    """

    PROJECT_NAME: str = "evm-tx-pipeline"
    VERSION: str = field(default_factory=_get_version_from_pyproject)

    # Endpoint
    RPC_URL: str | None = field(default_factory=lambda: os.getenv("RPC_URL"))
    CHAIN_ID: int | None = field(default_factory=lambda: _parse_int(os.getenv("CHAIN_ID")))
    HTTP_TIMEOUT_SEC: float = field(default_factory=lambda: _parse_float(os.getenv("HTTP_TIMEOUT_SEC"), 10.0) or 10.0)
    RECEIPT_POLL_INTERVAL_SEC: float = field(
        default_factory=lambda: _parse_float(os.getenv("RECEIPT_POLL_INTERVAL_SEC"), 2.0) or 2.0
    )

    # Signer settings
    SIGNER_TYPE: SignerType = field(default_factory=lambda: _parse_signer_type(os.getenv("SIGNER_TYPE")))
    PRIVATE_KEY: str | None = field(default_factory=lambda: os.getenv("PRIVATE_KEY"))
    KEYSTORE_PATH: str | None = field(default_factory=lambda: os.getenv("KEYSTORE_PATH"))
    KEYSTORE_PASSWORD: str | None = field(default_factory=lambda: os.getenv("KEYSTORE_PASSWORD"))
    SIGNER_REMOTE_URL: str | None = field(default_factory=lambda: os.getenv("SIGNER_REMOTE_URL"))

    # Middleware behaviour
    LEGACY_CHAIN_IDS: FrozenSet[int] = field(default_factory=lambda: _parse_csv_int_set(os.getenv("LEGACY_CHAIN_IDS")))
    NONCE_CONFLICT_MARKERS: Tuple[str, ...] = field(
        default_factory=lambda: _parse_markers(os.getenv("NONCE_CONFLICT_MARKERS"))
    )
    TRANSFORM_READ_CALLS: bool = field(default_factory=lambda: _parse_bool(os.getenv("TRANSFORM_READ_CALLS"), False))

    # Policy rules (all opt-in)
    POLICY_ALLOWED_CHAIN_IDS: FrozenSet[int] = field(
        default_factory=lambda: _parse_csv_int_set(os.getenv("POLICY_ALLOWED_CHAIN_IDS"))
    )
    POLICY_ALLOWED_TO_ADDRESSES: FrozenSet[str] = field(
        default_factory=lambda: _parse_csv_set(os.getenv("POLICY_ALLOWED_TO_ADDRESSES"))
    )
    POLICY_MAX_VALUE_WEI: int | None = field(default_factory=lambda: _parse_int(os.getenv("POLICY_MAX_VALUE_WEI")))
    POLICY_MAX_GAS: int | None = field(default_factory=lambda: _parse_int(os.getenv("POLICY_MAX_GAS")))
    POLICY_MAX_GAS_PRICE_WEI: int | None = field(
        default_factory=lambda: _parse_int(os.getenv("POLICY_MAX_GAS_PRICE_WEI"))
    )
    POLICY_MAX_DATA_BYTES: int | None = field(default_factory=lambda: _parse_int(os.getenv("POLICY_MAX_DATA_BYTES")))
    POLICY_DISALLOW_CONTRACT_CREATION: bool = field(
        default_factory=lambda: _parse_bool(os.getenv("POLICY_DISALLOW_CONTRACT_CREATION"), False)
    )

    # Observability
    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "info").strip().lower())
    SERVICE_NAME: str = field(default_factory=lambda: os.getenv("SERVICE_NAME", "txpipeline").strip())

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        self._validate()

    def _validate(self) -> None:
        errors: list[str] = []

        if self.CHAIN_ID is not None and self.CHAIN_ID < 0:
            errors.append(f"CHAIN_ID must be non-negative, got {self.CHAIN_ID}")

        if self.HTTP_TIMEOUT_SEC <= 0:
            errors.append(f"HTTP_TIMEOUT_SEC must be positive, got {self.HTTP_TIMEOUT_SEC}")

        if self.RECEIPT_POLL_INTERVAL_SEC <= 0:
            errors.append(f"RECEIPT_POLL_INTERVAL_SEC must be positive, got {self.RECEIPT_POLL_INTERVAL_SEC}")

        if self.LOG_LEVEL not in ("debug", "info", "warning", "error", "critical"):
            errors.append(f"LOG_LEVEL must be a stdlib logging level name, got {self.LOG_LEVEL!r}")

        if not self.NONCE_CONFLICT_MARKERS:
            errors.append("NONCE_CONFLICT_MARKERS must contain at least one marker")

        if errors:
            raise SettingsValidationError("MULTIPLE", None, "; ".join(errors))

    def signer_config_errors(self) -> list[str]:
        """
        Report what is missing for the configured SIGNER_TYPE.

        Not part of startup validation: read-only deployments never build a signer.
        """
        missing: list[str] = []
        if self.SIGNER_TYPE == SignerType.PRIVATE_KEY and not self.PRIVATE_KEY:
            missing.append("PRIVATE_KEY required when SIGNER_TYPE=private_key")
        elif self.SIGNER_TYPE == SignerType.KEYSTORE and (not self.KEYSTORE_PATH or not self.KEYSTORE_PASSWORD):
            missing.append("KEYSTORE_PATH and KEYSTORE_PASSWORD required when SIGNER_TYPE=keystore")
        elif self.SIGNER_TYPE == SignerType.REMOTE and not self.SIGNER_REMOTE_URL:
            missing.append("SIGNER_REMOTE_URL required when SIGNER_TYPE=remote")
        return missing

    def to_dict(self) -> dict[str, Any]:
        """Convert settings to dictionary (redacting secrets)."""
        result: dict[str, Any] = {}
        for key in dir(self):
            if key.startswith("_") or key.isupper() is False:
                continue
            value = getattr(self, key)
            # Redact sensitive values
            if any(s in key.upper() for s in ["SECRET", "PASSWORD", "PRIVATE_KEY", "TOKEN"]):
                result[key] = "***REDACTED***" if value else None
            elif isinstance(value, (frozenset, tuple)):
                result[key] = sorted(value)
            elif isinstance(value, Enum):
                result[key] = value.value
            else:
                result[key] = value
        return result


# Global settings instance
settings = Settings()
