"""API routers."""

from clicklog.api.geo import router as geo_router
from clicklog.api.reports import router as reports_router
from clicklog.api.track import router as track_router

__all__ = ["geo_router", "reports_router", "track_router"]
