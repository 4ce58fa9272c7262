"""
StreamPulse - Live Metrics Routes
"""
from typing import Optional
from fastapi import APIRouter, Depends

from streampulse.api.deps import get_polling_controller
from streampulse.schemas.system import MonitorState, MetricsHistoryResponse, ObsProcessMetrics
from streampulse.services.polling_controller import PollingController

router = APIRouter(prefix="/metrics", tags=["Metrics"])


@router.get("/current", response_model=MonitorState)
async def get_current_metrics(
    controller: PollingController = Depends(get_polling_controller)
):
    """Latest snapshot with severity tiers and polling status"""
    return controller.state()


@router.post("/refresh", response_model=MonitorState)
async def refresh_metrics(
    controller: PollingController = Depends(get_polling_controller)
):
    """Fetch system metrics immediately"""
    await controller.refresh()
    return controller.state()


@router.get("/history", response_model=MetricsHistoryResponse)
async def get_metrics_history(
    controller: PollingController = Depends(get_polling_controller)
):
    """Recent time series for every channel"""
    return MetricsHistoryResponse(
        capacity=controller.history.capacity,
        channels=controller.history.snapshot()
    )


@router.delete("/history")
async def clear_metrics_history(
    controller: PollingController = Depends(get_polling_controller)
):
    """Clear all history channels"""
    controller.clear_history()
    return {"message": "History cleared"}


@router.get("/process", response_model=Optional[ObsProcessMetrics])
async def get_process_metrics(
    controller: PollingController = Depends(get_polling_controller)
):
    """Capture software process metrics, null when it is not running"""
    return controller.process_metrics
