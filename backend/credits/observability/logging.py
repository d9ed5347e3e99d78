"""Structured logging helper for credit events."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger("credits")


def log_credit_event(*, message: str, author_id: Optional[Any] = None, request_id: Optional[str] = None,
                     order_id: Optional[Any] = None, extra: Optional[Dict[str, Any]] = None,
                     level: int = logging.INFO) -> None:
    payload: Dict[str, Any] = {"message": message}
    if author_id is not None:
        payload["author_id"] = str(author_id)
    if request_id:
        payload["request_id"] = request_id
    if order_id is not None:
        payload["order_id"] = str(order_id)
    if extra:
        payload.update(extra)
    logger.log(level, payload)
