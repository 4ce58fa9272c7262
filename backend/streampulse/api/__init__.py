"""
StreamPulse - API Routes Module
"""
from fastapi import APIRouter
from streampulse.api.routes import metrics, sessions, system

api_router = APIRouter(prefix="/api/v1")

# Include all route modules
api_router.include_router(metrics.router)
api_router.include_router(sessions.router)
api_router.include_router(system.router)
