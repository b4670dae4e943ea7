from __future__ import annotations

from typing import Optional

from core.settings import settings
from observability import Metrics, build_log_context, log_event
from transactions.typed import AccessListResult, TypedTransaction

from ..base import Middleware, TransactionLike, as_transaction
from ..endpoint import BlockRef
from ..errors import MiddlewareError
from ..pending import PendingTransaction
from .base import Transformer, TransformerError


class TransformerMiddleware(Middleware):
    """
    Rewrites outgoing transactions with a Transformer before they continue down
    the stack.

    ``send_transaction`` is always rewritten. ``call``, ``estimate_gas`` and
    ``create_access_list`` are rewritten only with ``apply_to_reads=True``
    (default: ``TRANSFORM_READ_CALLS``).
    """

    class Error(MiddlewareError):
        """transformer middleware failed"""

        CODE = "transformer_middleware_error"

    class TransformFailed(Error):
        """transformer could not rewrite the transaction"""

        CODE = "transform_failed"

    def __init__(
        self,
        inner: Middleware,
        transformer: Transformer,
        *,
        apply_to_reads: Optional[bool] = None,
        metrics: Optional[Metrics] = None,
    ) -> None:
        super().__init__(inner)
        self._transformer = transformer
        self._apply_to_reads = settings.TRANSFORM_READ_CALLS if apply_to_reads is None else bool(apply_to_reads)
        self._metrics = metrics
        self._log_ctx = build_log_context(component="transformer", transformer=type(transformer).__name__)

    @property
    def transformer(self) -> Transformer:
        return self._transformer

    @property
    def apply_to_reads(self) -> bool:
        return self._apply_to_reads

    def _transform(self, tx: TransactionLike, op: str) -> TypedTransaction:
        original = as_transaction(tx)
        try:
            out = self._transformer.transform(original.copy())
        except TransformerError as e:
            raise self.TransformFailed(e.message, data={"code": e.code, **e.data}) from e
        if self._metrics is not None:
            self._metrics.inc("tx_transformed_total")
        log_event("tx_transformed", ctx=self._log_ctx, data={"op": op, "to": original.to, "new_to": out.to}, level="debug")
        return out

    async def send_transaction(self, tx: TransactionLike, block: BlockRef = None) -> PendingTransaction:
        tx = self._transform(tx, "send_transaction")
        return await self._forward(self._inner.send_transaction(tx, block))

    async def estimate_gas(self, tx: TransactionLike, block: BlockRef = None) -> int:
        if self._apply_to_reads:
            tx = self._transform(tx, "estimate_gas")
        return await super().estimate_gas(tx, block)

    async def create_access_list(self, tx: TransactionLike, block: BlockRef = None) -> AccessListResult:
        if self._apply_to_reads:
            tx = self._transform(tx, "create_access_list")
        return await super().create_access_list(tx, block)

    async def call(self, tx: TransactionLike, block: BlockRef = None) -> bytes:
        if self._apply_to_reads:
            tx = self._transform(tx, "call")
        return await super().call(tx, block)


TransformerMiddlewareError = TransformerMiddleware.Error
