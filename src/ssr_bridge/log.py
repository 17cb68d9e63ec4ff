from __future__ import annotations

import json
import logging
from typing import Any

_LOGGER = logging.getLogger("ssr_bridge")


def configure_logging() -> None:
    if _LOGGER.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _LOGGER.addHandler(handler)
    _LOGGER.setLevel(logging.INFO)


def log_json(level: int, message: str, **fields: Any) -> None:
    if not _LOGGER.isEnabledFor(level):
        return
    payload = {"message": message, **fields}
    _LOGGER.log(level, json.dumps(payload, ensure_ascii=True, default=str))
