from .logging import build_log_context, log_event
from .metrics import Metrics

__all__ = ["Metrics", "build_log_context", "log_event"]
