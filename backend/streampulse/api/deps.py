"""
StreamPulse - API Dependencies
"""
from fastapi import HTTPException, Request, status

from streampulse.services.polling_controller import PollingController
from streampulse.services.session_history import SessionHistoryStore
from streampulse.services.history_service import SessionHistoryService


def _component(request: Request, name: str):
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name} is not initialized"
        )
    return component


def get_polling_controller(request: Request) -> PollingController:
    """The controller owned by the application lifespan"""
    return _component(request, "polling_controller")


def get_history_store(request: Request) -> SessionHistoryStore:
    return _component(request, "history_store")


def get_history_service(request: Request) -> SessionHistoryService:
    return _component(request, "history_service")
