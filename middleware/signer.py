from __future__ import annotations

from typing import Iterable, Optional, Union

from eth_typing import ChecksumAddress

from core.settings import settings
from observability import Metrics, build_log_context, log_event
from primitives.address import same_address
from primitives.chain import is_legacy_chain
from primitives.signature import Signature, SignatureError
from signing.base import Signer, WalletError
from transactions.typed import AccessListResult, FeeMarketTransaction, TypedTransaction

from .base import Middleware, TransactionLike, as_transaction
from .endpoint import BlockRef
from .errors import MiddlewareError
from .pending import PendingTransaction


class SignerMiddleware(Middleware):
    """
    Terminal signing layer.

    Fills the sender, chain id and nonce, signs locally and broadcasts the raw
    bytes through the inner layer's ``send_raw_transaction``. Transactions whose
    sender is not this signer are passed to the inner layer untouched.

    Example:
        provider = Provider(Web3Endpoint(settings.RPC_URL))
        stack = await SignerMiddleware.new_with_provider_chain(provider, Wallet.from_env())
        pending = await stack.send_transaction(FeeMarketTransaction(to=..., value=10**15))
        receipt = await pending
    """

    class Error(MiddlewareError):
        """signer middleware failed"""

        CODE = "signer_middleware_error"

    class SignerError(Error):
        """signing failed"""

        CODE = "signer_error"

    class NonceMissing(Error):
        """no nonce was specified"""

        CODE = "nonce_missing"

    class GasPriceMissing(Error):
        """no gas price was specified"""

        CODE = "gas_price_missing"

    class GasMissing(Error):
        """no gas was specified"""

        CODE = "gas_missing"

    class WrongSigner(Error):
        """specified sender is not the signer"""

        CODE = "wrong_signer"

    class DifferentChainID(Error):
        """transaction chain id does not match the signer's chain id"""

        CODE = "different_chain_id"

    def __init__(
        self,
        inner: Middleware,
        signer: Signer,
        *,
        legacy_chain_ids: Optional[Iterable[int]] = None,
        metrics: Optional[Metrics] = None,
    ) -> None:
        super().__init__(inner)
        self._signer = signer
        self._address = signer.address
        self._legacy_chain_ids = frozenset(
            legacy_chain_ids if legacy_chain_ids is not None else settings.LEGACY_CHAIN_IDS
        )
        self._metrics = metrics
        self._log_ctx = build_log_context(component="signer", address=self._address)

    @classmethod
    async def new_with_provider_chain(
        cls,
        inner: Middleware,
        signer: Signer,
        **kwargs,
    ) -> "SignerMiddleware":
        """Bind ``signer`` to the chain id reported by ``inner`` before wrapping it."""
        try:
            chain_id = await inner.get_chainid()
        except MiddlewareError as e:
            raise cls.Error.from_err(e) from e
        return cls(inner, signer.with_chain_id(chain_id), **kwargs)

    def with_signer(self, signer: Signer) -> "SignerMiddleware":
        """A new layer over the same inner layer; this one keeps its signer."""
        return SignerMiddleware(
            self._inner,
            signer,
            legacy_chain_ids=self._legacy_chain_ids,
            metrics=self._metrics,
        )

    @property
    def signer(self) -> Signer:
        return self._signer

    @property
    def address(self) -> ChecksumAddress:
        return self._address

    def default_sender(self) -> Optional[ChecksumAddress]:
        return self._address

    def is_signer(self) -> bool:
        return True

    def _check_chain_id(self, tx: TypedTransaction) -> None:
        chain_id = self._signer.chain_id
        if tx.chain_id is None:
            tx.chain_id = chain_id
        elif tx.chain_id != chain_id:
            raise self.DifferentChainID(data={"tx_chain_id": tx.chain_id, "signer_chain_id": chain_id})

    def _check_filled(self, tx: TypedTransaction) -> None:
        if tx.nonce is None:
            raise self.NonceMissing()
        if tx.gas is None:
            raise self.GasMissing()
        if tx.fee_cap is None:
            raise self.GasPriceMissing()
        if isinstance(tx, FeeMarketTransaction) and tx.max_priority_fee_per_gas is None:
            raise self.GasPriceMissing()

    def _sign(self, tx: TypedTransaction) -> Signature:
        try:
            return self._signer.sign_transaction(tx)
        except (WalletError, SignatureError, ValueError) as e:
            raise self.SignerError(str(e), data={"cause": type(e).__name__}) from e

    async def fill_transaction(self, tx: TypedTransaction, block: BlockRef = None) -> TypedTransaction:
        if tx.from_ is None or same_address(tx.from_, self._address):
            tx.from_ = self._address

        self._check_chain_id(tx)

        if isinstance(tx, FeeMarketTransaction) and is_legacy_chain(tx.chain_id, self._legacy_chain_ids):
            tx = tx.to_legacy()

        if tx.nonce is None:
            tx.nonce = await self.get_transaction_count(tx.from_, block)

        tx = await self._forward(self._inner.fill_transaction(tx, block))
        log_event(
            "tx_filled",
            ctx=self._log_ctx,
            data={"from": tx.from_, "nonce": tx.nonce, "chain_id": tx.chain_id, "type": tx.tx_type},
            level="debug",
        )
        return tx

    async def sign_transaction(self, tx: TypedTransaction, address: ChecksumAddress) -> Signature:
        if not same_address(address, self._address):
            raise self.WrongSigner(data={"requested": address, "signer": self._address})
        tx = tx.copy()
        self._check_chain_id(tx)
        self._check_filled(tx)
        return self._sign(tx)

    def _sign_and_encode(self, tx: TypedTransaction) -> bytes:
        self._check_chain_id(tx)
        self._check_filled(tx)
        signature = self._sign(tx)
        return tx.rlp_signed(signature)

    async def send_transaction(self, tx: TransactionLike, block: BlockRef = None) -> PendingTransaction:
        tx = await self.fill_transaction(as_transaction(tx).copy(), block)

        if not same_address(tx.from_, self._address):
            log_event("tx_passthrough", ctx=self._log_ctx, data={"from": tx.from_, "nonce": tx.nonce})
            return await self._forward(self._inner.send_transaction(tx, block))

        raw = self._sign_and_encode(tx)
        pending = await self._forward(self._inner.send_raw_transaction(raw))
        if self._metrics is not None:
            self._metrics.inc("tx_broadcast_total")
        log_event(
            "tx_broadcast",
            ctx=self._log_ctx,
            data={"tx_hash": pending.tx_hash_hex, "nonce": tx.nonce, "chain_id": tx.chain_id, "type": tx.tx_type},
        )
        return pending

    async def sign(self, data: Union[bytes, str], address: ChecksumAddress) -> Signature:
        if not same_address(address, self._address):
            raise self.WrongSigner(data={"requested": address, "signer": self._address})
        try:
            return self._signer.sign_message(data)
        except (WalletError, SignatureError, ValueError) as e:
            raise self.SignerError(str(e), data={"cause": type(e).__name__}) from e

    def _with_default_sender(self, tx: TransactionLike) -> TypedTransaction:
        tx = as_transaction(tx).copy()
        if tx.from_ is None:
            tx.from_ = self._address
        return tx

    async def estimate_gas(self, tx: TransactionLike, block: BlockRef = None) -> int:
        return await self._forward(self._inner.estimate_gas(self._with_default_sender(tx), block))

    async def create_access_list(self, tx: TransactionLike, block: BlockRef = None) -> AccessListResult:
        return await self._forward(self._inner.create_access_list(self._with_default_sender(tx), block))

    async def call(self, tx: TransactionLike, block: BlockRef = None) -> bytes:
        return await self._forward(self._inner.call(self._with_default_sender(tx), block))


SignerMiddlewareError = SignerMiddleware.Error
