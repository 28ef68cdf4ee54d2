from __future__ import annotations

import json
import logging
import os
import sys
import time
from typing import Any, Dict

from utils.request_context import _request_id_var, _user_id_var


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "severity": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "time_unix": time.time(),
            "service": os.getenv("K_SERVICE") or "firework-factory",
            "revision": os.getenv("K_REVISION") or "",
        }
        rid = _request_id_var.get()
        if rid:
            payload["request_id"] = rid
        uid = _user_id_var.get()
        if uid:
            payload["user_id"] = uid
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    # Firestore/gRPC and google-auth are chatty at INFO; token fetch URLs included.
    for noisy in ("google.auth", "google.api_core", "urllib3", "grpc"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    root.handlers[:] = [handler]
