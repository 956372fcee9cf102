"""
Application state API routes.
"""

import logging

from fastapi import APIRouter, Depends

from workbench.api.models import ResetResponse
from workbench.api.dependencies import get_workbench
from workbench.entities.session import Workbench

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["state"])


@router.post("/reset", response_model=ResetResponse)
async def reset_everything(workbench: Workbench = Depends(get_workbench)):
    """
    Wipe all stored threads and presets and return the factory defaults.
    """
    workbench.reset_everything()
    return ResetResponse(
        threads=workbench.threads,
        active_thread_id=workbench.active_thread_id,
        presets=workbench.presets,
        active_preset_id=workbench.active_preset_id,
    )
