"""
API routers package.
"""

from workbench.api.routers.chat import router as chat_router
from workbench.api.routers.presets import router as presets_router
from workbench.api.routers.state import router as state_router
from workbench.api.routers.threads import router as threads_router

__all__ = ["chat_router", "presets_router", "state_router", "threads_router"]
