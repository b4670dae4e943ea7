from .base import Middleware, TransactionLike, as_transaction
from .builder import MiddlewareBuilder
from .endpoint import BlockRef, Endpoint, EndpointError
from .errors import INNER_ERROR, MiddlewareError, find_error, iter_error_chain
from .nonce_manager import NonceManagerError, NonceManagerMiddleware, nonce_conflict_matcher
from .pending import PendingTransaction
from .policy import (
    AllowEverything,
    Policy,
    PolicyConfig,
    PolicyMiddleware,
    PolicyMiddlewareError,
    PolicyViolation,
    PredicatePolicy,
    RejectEverything,
    RulesPolicy,
    policy_config_from_env,
    policy_from_settings,
)
from .provider import Provider, ProviderError
from .signer import SignerMiddleware, SignerMiddlewareError
from .transformer import DsProxy, Transformer, TransformerError, TransformerMiddleware, TransformerMiddlewareError
from .web3_endpoint import Web3Endpoint

__all__ = [
    "AllowEverything",
    "BlockRef",
    "DsProxy",
    "Endpoint",
    "EndpointError",
    "INNER_ERROR",
    "Middleware",
    "MiddlewareBuilder",
    "MiddlewareError",
    "NonceManagerError",
    "NonceManagerMiddleware",
    "PendingTransaction",
    "Policy",
    "PolicyConfig",
    "PolicyMiddleware",
    "PolicyMiddlewareError",
    "PolicyViolation",
    "PredicatePolicy",
    "Provider",
    "ProviderError",
    "RejectEverything",
    "RulesPolicy",
    "SignerMiddleware",
    "SignerMiddlewareError",
    "TransactionLike",
    "Transformer",
    "TransformerError",
    "TransformerMiddleware",
    "TransformerMiddlewareError",
    "Web3Endpoint",
    "as_transaction",
    "find_error",
    "iter_error_chain",
    "nonce_conflict_matcher",
    "policy_config_from_env",
    "policy_from_settings",
]
