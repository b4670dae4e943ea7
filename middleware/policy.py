from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Optional

from eth_typing import ChecksumAddress

from core.settings import Settings, settings
from observability import Metrics, build_log_context, log_event
from transactions.typed import TypedTransaction

from .base import Middleware, TransactionLike, as_transaction
from .endpoint import BlockRef
from .errors import MiddlewareError
from .pending import PendingTransaction


@dataclass
class PolicyViolation(Exception):
    code: str
    message: str
    data: Dict[str, Any]

    def __str__(self) -> str:
        return self.message


class Policy(ABC):
    """A gate evaluated before a transaction is filled or sent."""

    @abstractmethod
    def ensure_can_send(self, tx: TypedTransaction, sender: Optional[ChecksumAddress]) -> None:
        """Return normally to allow ``tx``; raise PolicyViolation to reject it."""
        raise NotImplementedError


class AllowEverything(Policy):
    def ensure_can_send(self, tx: TypedTransaction, sender: Optional[ChecksumAddress]) -> None:
        return None


class RejectEverything(Policy):
    def ensure_can_send(self, tx: TypedTransaction, sender: Optional[ChecksumAddress]) -> None:
        raise PolicyViolation("rejected", "Transaction rejected by policy.", {"from": sender})


class PredicatePolicy(Policy):
    """Wrap a plain ``(tx, sender) -> bool`` callable."""

    def __init__(
        self,
        predicate: Callable[[TypedTransaction, Optional[ChecksumAddress]], bool],
        *,
        code: str = "predicate_rejected",
    ) -> None:
        self._predicate = predicate
        self._code = code

    def ensure_can_send(self, tx: TypedTransaction, sender: Optional[ChecksumAddress]) -> None:
        if not self._predicate(tx, sender):
            raise PolicyViolation(self._code, "Transaction rejected by policy predicate.", {"from": sender})


@dataclass(frozen=True)
class PolicyConfig:
    allowed_chain_ids: FrozenSet[int] = field(default_factory=frozenset)
    allowed_to_addresses: FrozenSet[str] = field(default_factory=frozenset)
    max_value_wei: Optional[int] = None
    max_gas: Optional[int] = None
    max_gas_price_wei: Optional[int] = None
    max_data_bytes: Optional[int] = None
    disallow_contract_creation: bool = False

    @property
    def has_rules(self) -> bool:
        return bool(
            self.allowed_chain_ids
            or self.allowed_to_addresses
            or self.max_value_wei is not None
            or self.max_gas is not None
            or self.max_gas_price_wei is not None
            or self.max_data_bytes is not None
            or self.disallow_contract_creation
        )


def policy_config_from_env(cfg: Optional[Settings] = None) -> PolicyConfig:
    """
    Rule set from the ``POLICY_*`` settings.

    All rules are opt-in; defaults are permissive unless env vars are set.
    """
    cfg = cfg or settings
    return PolicyConfig(
        allowed_chain_ids=frozenset(cfg.POLICY_ALLOWED_CHAIN_IDS),
        allowed_to_addresses=frozenset(a.lower() for a in cfg.POLICY_ALLOWED_TO_ADDRESSES),
        max_value_wei=cfg.POLICY_MAX_VALUE_WEI,
        max_gas=cfg.POLICY_MAX_GAS,
        max_gas_price_wei=cfg.POLICY_MAX_GAS_PRICE_WEI,
        max_data_bytes=cfg.POLICY_MAX_DATA_BYTES,
        disallow_contract_creation=cfg.POLICY_DISALLOW_CONTRACT_CREATION,
    )


class RulesPolicy(Policy):
    """
    Declarative limits on recipient, chain, value, gas, fee cap and calldata size.

    Rules over fields that are still unset are skipped; put the policy layer
    below the filling layers to check filled values.
    """

    def __init__(self, cfg: PolicyConfig) -> None:
        self._cfg = cfg

    @property
    def config(self) -> PolicyConfig:
        return self._cfg

    def ensure_can_send(self, tx: TypedTransaction, sender: Optional[ChecksumAddress]) -> None:
        cfg = self._cfg
        if cfg.disallow_contract_creation and tx.to is None:
            raise PolicyViolation(
                "contract_creation_not_allowed",
                "Contract creation tx (missing 'to') is disallowed by policy.",
                {},
            )

        if cfg.allowed_chain_ids and tx.chain_id is not None and tx.chain_id not in cfg.allowed_chain_ids:
            raise PolicyViolation(
                "chain_id_not_allowed",
                "Transaction chain_id is not allowlisted by policy.",
                {"chain_id": tx.chain_id, "allowed_chain_ids": sorted(cfg.allowed_chain_ids)},
            )

        if cfg.allowed_to_addresses and tx.to is not None and tx.to.lower() not in cfg.allowed_to_addresses:
            raise PolicyViolation(
                "to_not_allowed",
                "Transaction recipient/contract address is not allowlisted by policy.",
                {"to": tx.to, "allowed_to_addresses": sorted(cfg.allowed_to_addresses)},
            )

        if cfg.max_value_wei is not None and tx.value > cfg.max_value_wei:
            raise PolicyViolation(
                "value_too_large",
                "Transaction value exceeds policy limit.",
                {"value_wei": tx.value, "max_value_wei": cfg.max_value_wei},
            )

        if cfg.max_gas is not None and tx.gas is not None and tx.gas > cfg.max_gas:
            raise PolicyViolation(
                "gas_too_large",
                "Transaction gas exceeds policy limit.",
                {"gas": tx.gas, "max_gas": cfg.max_gas},
            )

        if cfg.max_gas_price_wei is not None and tx.fee_cap is not None and tx.fee_cap > cfg.max_gas_price_wei:
            raise PolicyViolation(
                "gas_price_too_large",
                "Transaction fee cap exceeds policy limit.",
                {"gas_price_wei": tx.fee_cap, "max_gas_price_wei": cfg.max_gas_price_wei},
            )

        if cfg.max_data_bytes is not None and len(tx.data) > cfg.max_data_bytes:
            raise PolicyViolation(
                "data_too_large",
                "Transaction calldata exceeds policy limit.",
                {"data_bytes": len(tx.data), "max_data_bytes": cfg.max_data_bytes},
            )


def policy_from_settings(cfg: Optional[Settings] = None) -> Policy:
    """RulesPolicy when any ``POLICY_*`` rule is set, otherwise AllowEverything."""
    rules = policy_config_from_env(cfg)
    if not rules.has_rules:
        return AllowEverything()
    return RulesPolicy(rules)


class PolicyMiddleware(Middleware):
    """
    Checks ``fill_transaction`` and ``send_transaction`` against a Policy before
    anything reaches the inner layer. Reads pass through unchecked.
    """

    class Error(MiddlewareError):
        """policy middleware failed"""

        CODE = "policy_middleware_error"

    class PolicyError(Error):
        """transaction rejected by policy"""

        CODE = "policy_rejected"

    def __init__(self, inner: Middleware, policy: Policy, *, metrics: Optional[Metrics] = None) -> None:
        super().__init__(inner)
        self._policy = policy
        self._metrics = metrics
        self._log_ctx = build_log_context(component="policy", policy=type(policy).__name__)

    @property
    def policy(self) -> Policy:
        return self._policy

    def _check(self, tx: TypedTransaction) -> None:
        sender = tx.from_ or self._inner.default_sender()
        try:
            self._policy.ensure_can_send(tx, sender)
        except PolicyViolation as e:
            if self._metrics is not None:
                self._metrics.inc("policy_rejected_total")
            log_event(
                "policy_rejected",
                ctx=self._log_ctx,
                data={"code": e.code, "from": sender, "to": tx.to, "nonce": tx.nonce},
                level="warning",
            )
            raise self.PolicyError(e.message, data={"code": e.code, **e.data}) from e

    async def fill_transaction(self, tx: TypedTransaction, block: BlockRef = None) -> TypedTransaction:
        self._check(tx)
        return await self._forward(self._inner.fill_transaction(tx, block))

    async def send_transaction(self, tx: TransactionLike, block: BlockRef = None) -> PendingTransaction:
        tx = as_transaction(tx)
        self._check(tx)
        return await self._forward(self._inner.send_transaction(tx, block))


PolicyMiddlewareError = PolicyMiddleware.Error
