"""
app/api/routers package marker.
"""

from app.api.routers.analytics_router import router as analytics_router
from app.api.routers.auth_router import router as auth_router
from app.api.routers.export_router import router as export_router
from app.api.routers.records_router import router as records_router

__all__ = [
    "analytics_router",
    "auth_router",
    "export_router",
    "records_router",
]
