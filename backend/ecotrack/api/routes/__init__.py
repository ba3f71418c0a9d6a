# backend/ecotrack/api/routes/__init__.py

from .base import router as base_router
from .challenges import router as challenges_router
from .events import router as events_router
from .health import router as health_router

routers = [
    base_router,
    health_router,
    challenges_router,
    events_router,
]
