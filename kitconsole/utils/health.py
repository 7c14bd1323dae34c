"""Health check endpoints."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel

from kitconsole import __version__
from kitconsole.config import settings
from kitconsole.plugins.restart import has_kit_restarted

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthStatus(BaseModel):
    status: str
    timestamp: str
    version: str = __version__
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthStatus, tags=["system"])
def health_check() -> HealthStatus:
    """
    Console liveness, plus what a status poll would currently see:
    - whether package.json is present
    - whether a kit restart has been observed
    """
    manifest_found = settings.manifest_path.exists()
    return HealthStatus(
        status="healthy" if manifest_found else "degraded",
        timestamp=datetime.now(timezone.utc).isoformat(),
        checks={
            "manifest": {"path": str(settings.manifest_path), "found": manifest_found},
            "kit_restarted": has_kit_restarted(),
        },
    )


@router.get("/health/live", tags=["system"])
def liveness_probe() -> Dict[str, str]:
    return {"status": "alive"}
