"""API routers."""

from event_intel.api.health import router as health_router
from event_intel.api.tools import router as tools_router

__all__ = ["health_router", "tools_router"]
