"""
StreamPulse - System Health Routes
"""
from typing import Dict
from fastapi import APIRouter, Depends

from streampulse.api.deps import get_polling_controller
from streampulse.schemas.system import SystemHealth
from streampulse.services.polling_controller import PollingController
from streampulse.services.severity import DEFAULT_THRESHOLDS
from streampulse.services.system_monitor import build_health

router = APIRouter(prefix="/system", tags=["System"])


@router.get("/health", response_model=SystemHealth)
async def get_system_health(
    controller: PollingController = Depends(get_polling_controller)
):
    """Get system health status from the latest snapshot"""
    return build_health(
        controller.last_snapshot,
        controller.thresholds,
        controller.last_update
    )


@router.get("/thresholds")
async def get_thresholds(
    controller: PollingController = Depends(get_polling_controller)
) -> Dict[str, Dict[str, float]]:
    """Active severity thresholds per domain"""
    table = controller.thresholds or DEFAULT_THRESHOLDS
    return {
        domain: {"warning": pair.warning, "critical": pair.critical}
        for domain, pair in table.items()
    }
