from .base import ABI_ENCODING, MISSING_FIELD, Transformer, TransformerError
from .ds_proxy import DsProxy
from .middleware import TransformerMiddleware, TransformerMiddlewareError

__all__ = [
    "ABI_ENCODING",
    "DsProxy",
    "MISSING_FIELD",
    "Transformer",
    "TransformerError",
    "TransformerMiddleware",
    "TransformerMiddlewareError",
]
