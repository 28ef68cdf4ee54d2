from __future__ import annotations

import os
import time
from typing import Any, Dict

from fastapi import APIRouter, Depends

from app.container import Services
from app.deps import get_services
from config.settings import settings
from ops.metrics import Timer

router = APIRouter()

PROBE_COLLECTION = "system"
PROBE_DOC = "healthz"


def _firestore_probe(services: Services, timeout_s: float = 0.20) -> Dict[str, Any]:
    """Single bounded read of system/healthz. Never writes."""
    t = Timer()
    try:
        services.docs.db.collection(PROBE_COLLECTION).document(PROBE_DOC).get(timeout=timeout_s)
    except Exception as e:
        return {"ok": False, "error_type": type(e).__name__, "message": str(e)}
    return {"ok": True, "latency_ms": t.ms()}


@router.get("/health")
def health(services: Services = Depends(get_services)):
    fs = _firestore_probe(services)
    # Reads fall back to the local cache, so a failed probe means degraded, not down.
    return {
        "ok": True,
        "service": "firework-factory-api",
        "revision": os.getenv("K_REVISION") or "",
        "environment": settings.ENVIRONMENT,
        "firestore_ok": fs["ok"],
        "offline_mode": not fs["ok"],
        "firestore": fs,
        "cache_ttl_seconds": settings.CACHE_TTL_SECONDS,
        "time_unix": time.time(),
    }
