"""
FastAPI dependencies for shared resources.
"""

import logging

from fastapi import Depends, HTTPException, Request

from workbench.api.util.completion_client import CompletionClient
from workbench.entities.models import ChatThread, Preset
from workbench.entities.session import Workbench

logger = logging.getLogger(__name__)


def get_workbench(request: Request) -> Workbench:
    """
    Get the workbench session from app state.

    Raises HTTPException 503 if not initialized.
    """
    workbench = getattr(request.app.state, "workbench", None)
    if workbench is None:
        raise HTTPException(status_code=503, detail="Workbench not initialized")
    return workbench


def get_completion_client(request: Request) -> CompletionClient:
    """
    Get the completion client from app state.

    Raises HTTPException 503 if not initialized.
    """
    client = getattr(request.app.state, "completion_client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="Completion client not initialized")
    return client


def get_existing_thread(
    thread_id: str,
    workbench: Workbench = Depends(get_workbench),
) -> ChatThread:
    """
    Look up the thread named in the path.

    Raises HTTPException 404 if it does not exist.
    """
    thread = workbench.thread_registry.get_thread(thread_id)
    if thread is None:
        raise HTTPException(status_code=404, detail=f"Thread {thread_id} not found")
    return thread


def get_existing_preset(
    preset_id: str,
    workbench: Workbench = Depends(get_workbench),
) -> Preset:
    """
    Look up the preset named in the path.

    Raises HTTPException 404 if it does not exist.
    """
    preset = workbench.preset_registry.get(preset_id)
    if preset is None:
        raise HTTPException(status_code=404, detail=f"Preset {preset_id} not found")
    return preset
