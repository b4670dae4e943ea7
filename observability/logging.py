from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, Optional

from core.settings import settings

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def _get_logger() -> logging.Logger:
    logger = logging.getLogger(settings.SERVICE_NAME)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.setLevel(_LEVELS.get(settings.LOG_LEVEL, logging.INFO))
        logger.propagate = True
    return logger


def build_log_context(**fields: Any) -> Dict[str, Any]:
    """
    Build a reusable context dict attached to every event a component emits.

    A ``request_id`` is generated unless the caller supplies one.
    """
    ctx: Dict[str, Any] = {"service": settings.SERVICE_NAME}
    ctx.update({k: v for k, v in fields.items() if v is not None})
    ctx.setdefault("request_id", uuid.uuid4().hex)
    return ctx


def log_event(
    event: str,
    *,
    ctx: Optional[Dict[str, Any]] = None,
    data: Optional[Dict[str, Any]] = None,
    level: str = "info",
) -> None:
    """
    Emit a single JSON log line.

    Never pass key material or raw signatures in ``data``.
    """
    payload: Dict[str, Any] = {"event": event}
    if ctx:
        payload.update(ctx)
    if data:
        payload["data"] = data
    _get_logger().log(_LEVELS.get(level, logging.INFO), json.dumps(payload, sort_keys=True, default=str))
