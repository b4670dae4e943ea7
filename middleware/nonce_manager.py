from __future__ import annotations

import asyncio
import threading
import weakref
from typing import Callable, Dict, Iterable, Optional

from eth_typing import ChecksumAddress

from core.settings import settings
from observability import Metrics, build_log_context, log_event
from primitives.address import maybe_address, to_address
from transactions.typed import TypedTransaction

from .base import Middleware, TransactionLike, as_transaction
from .endpoint import BlockRef
from .errors import MiddlewareError, iter_error_chain
from .pending import PendingTransaction

NonceConflictPredicate = Callable[[BaseException], bool]


def nonce_conflict_matcher(markers: Optional[Iterable[str]] = None) -> NonceConflictPredicate:
    """
    Build a predicate that recognizes a nonce conflict anywhere in an error chain
    by case-insensitive substring match on each error's message.
    """
    needles = tuple(m.lower() for m in (markers if markers is not None else settings.NONCE_CONFLICT_MARKERS))

    def is_conflict(err: BaseException) -> bool:
        for e in iter_error_chain(err):
            text = str(e).lower()
            if any(n in text for n in needles):
                return True
        return False

    return is_conflict


class NonceManagerMiddleware(Middleware):
    """
    Hands out nonces from a local per-address counter.

    The counter is seeded from the inner layer's transaction count (``pending``
    block unless one is given) the first time an address is seen, then bumped
    locally on every assignment so concurrent sends never share a nonce.

    Read-and-bump happens under a ``threading.Lock``. Seeding an address holds a
    per-address ``asyncio.Lock`` so two first sends do not both hit the network.

    When a send fails and ``is_nonce_conflict`` recognizes the error, the
    address is dropped from the cache and the next fill re-seeds; the failed
    send is not retried. Any other failure hands the nonce back if no later
    assignment has happened since.
    """

    class Error(MiddlewareError):
        """nonce manager failed"""

        CODE = "nonce_manager_error"

    class NoSender(Error):
        """no sender address to manage a nonce for"""

        CODE = "no_sender"

    def __init__(
        self,
        inner: Middleware,
        address: Optional[str] = None,
        *,
        is_nonce_conflict: Optional[NonceConflictPredicate] = None,
        metrics: Optional[Metrics] = None,
    ) -> None:
        super().__init__(inner)
        self._address = maybe_address(address)
        self._is_nonce_conflict = is_nonce_conflict or nonce_conflict_matcher()
        self._metrics = metrics
        self._nonces: Dict[ChecksumAddress, int] = {}
        self._lock = threading.Lock()
        # asyncio locks bind to one event loop, so seed locks are kept per loop
        self._seed_locks: "weakref.WeakKeyDictionary" = weakref.WeakKeyDictionary()
        self._log_ctx = build_log_context(component="nonce_manager")

    @property
    def address(self) -> Optional[ChecksumAddress]:
        return self._address

    def default_sender(self) -> Optional[ChecksumAddress]:
        return self._address or super().default_sender()

    def _resolve_sender(self, tx: TypedTransaction) -> ChecksumAddress:
        sender = tx.from_ or self._address or self._inner.default_sender()
        if sender is None:
            raise self.NoSender()
        return to_address(sender)

    def _seed_lock(self, address: ChecksumAddress) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        with self._lock:
            locks = self._seed_locks.get(loop)
            if locks is None:
                locks = self._seed_locks[loop] = {}
            lock = locks.get(address)
            if lock is None:
                lock = locks[address] = asyncio.Lock()
            return lock

    def _take(self, address: ChecksumAddress) -> Optional[int]:
        with self._lock:
            nonce = self._nonces.get(address)
            if nonce is None:
                return None
            self._nonces[address] = nonce + 1
            return nonce

    def current_nonce(self, address: str) -> Optional[int]:
        """The next nonce this manager would hand out, or None before seeding."""
        with self._lock:
            return self._nonces.get(to_address(address))

    async def initialize_nonce(self, address: Optional[str] = None, block: BlockRef = None) -> int:
        """Seed (or re-seed) the counter for ``address`` from the network."""
        address = to_address(address) if address else self._address
        if address is None:
            raise self.NoSender()
        count = await self._forward(
            self._inner.get_transaction_count(address, "pending" if block is None else block)
        )
        with self._lock:
            self._nonces[address] = count
        log_event("nonce_seeded", ctx=self._log_ctx, data={"address": address, "nonce": count})
        return count

    async def get_transaction_count_with_manager(self, address: str, block: BlockRef = None) -> int:
        """Assign the next nonce for ``address``, seeding from the network on first use."""
        address = to_address(address)
        nonce = self._take(address)
        if nonce is not None:
            return nonce

        async with self._seed_lock(address):
            nonce = self._take(address)
            if nonce is not None:
                return nonce
            count = await self._forward(
                self._inner.get_transaction_count(address, "pending" if block is None else block)
            )
            with self._lock:
                nonce = self._nonces.setdefault(address, count)
                self._nonces[address] = nonce + 1
        log_event("nonce_seeded", ctx=self._log_ctx, data={"address": address, "nonce": count})
        return nonce

    def invalidate(self, address: str) -> None:
        """Forget the cached counter; the next assignment re-seeds from the network."""
        address = to_address(address)
        with self._lock:
            self._nonces.pop(address, None)
        if self._metrics is not None:
            self._metrics.inc("nonce_resync_total")
        log_event("nonce_invalidated", ctx=self._log_ctx, data={"address": address}, level="warning")

    def _release(self, address: ChecksumAddress, nonce: int) -> None:
        with self._lock:
            if self._nonces.get(address) == nonce + 1:
                self._nonces[address] = nonce

    def _recover(self, address: ChecksumAddress, nonce: int, err: MiddlewareError) -> None:
        """Undo an assignment whose transaction never made it out."""
        if self._is_nonce_conflict(err):
            self.invalidate(address)
        else:
            self._release(address, nonce)

    async def fill_transaction(self, tx: TypedTransaction, block: BlockRef = None) -> TypedTransaction:
        if tx.nonce is None:
            sender = self._resolve_sender(tx)
            tx.from_ = sender
            assigned = await self.get_transaction_count_with_manager(sender, block)
            tx.nonce = assigned
            try:
                return await self._forward(self._inner.fill_transaction(tx, block))
            except MiddlewareError as e:
                self._recover(sender, assigned, e)
                raise
        return await self._forward(self._inner.fill_transaction(tx, block))

    async def send_transaction(self, tx: TransactionLike, block: BlockRef = None) -> PendingTransaction:
        tx = as_transaction(tx).copy()
        assigned: Optional[int] = None
        sender: Optional[ChecksumAddress] = None
        if tx.nonce is None:
            sender = self._resolve_sender(tx)
            tx.from_ = sender
            assigned = await self.get_transaction_count_with_manager(sender, block)
            tx.nonce = assigned

        try:
            return await self._forward(self._inner.send_transaction(tx, block))
        except MiddlewareError as e:
            if sender is not None and assigned is not None:
                self._recover(sender, assigned, e)
            raise


NonceManagerError = NonceManagerMiddleware.Error
