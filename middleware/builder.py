from __future__ import annotations

from typing import Optional

from observability import Metrics
from signing.base import Signer

from .base import Middleware
from .nonce_manager import NonceConflictPredicate, NonceManagerMiddleware
from .policy import Policy, PolicyMiddleware
from .signer import SignerMiddleware
from .transformer import Transformer, TransformerMiddleware


class MiddlewareBuilder:
    """
    Stack layers over a base layer, innermost first.

    Each call wraps the current stack; the last layer added is the one callers
    talk to.

    Example:
        stack = (
            MiddlewareBuilder(Provider(Web3Endpoint()))
            .with_signer(wallet)
            .nonce_manager(wallet.address)
            .with_policy(policy_from_settings())
            .build()
        )
    """

    def __init__(self, base: Middleware, *, metrics: Optional[Metrics] = None) -> None:
        self._stack = base
        self._metrics = metrics

    def wrap_into(self, layer_factory) -> "MiddlewareBuilder":
        """Wrap the stack with any ``factory(inner) -> Middleware``."""
        self._stack = layer_factory(self._stack)
        return self

    def with_signer(self, signer: Signer) -> "MiddlewareBuilder":
        return self.wrap_into(lambda inner: SignerMiddleware(inner, signer, metrics=self._metrics))

    def nonce_manager(
        self,
        address: Optional[str] = None,
        *,
        is_nonce_conflict: Optional[NonceConflictPredicate] = None,
    ) -> "MiddlewareBuilder":
        return self.wrap_into(
            lambda inner: NonceManagerMiddleware(
                inner, address, is_nonce_conflict=is_nonce_conflict, metrics=self._metrics
            )
        )

    def with_policy(self, policy: Policy) -> "MiddlewareBuilder":
        return self.wrap_into(lambda inner: PolicyMiddleware(inner, policy, metrics=self._metrics))

    def transform(self, transformer: Transformer, *, apply_to_reads: Optional[bool] = None) -> "MiddlewareBuilder":
        return self.wrap_into(
            lambda inner: TransformerMiddleware(
                inner, transformer, apply_to_reads=apply_to_reads, metrics=self._metrics
            )
        )

    def build(self) -> Middleware:
        return self._stack
