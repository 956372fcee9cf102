"""
Thread management API routes.
"""

import asyncio
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse

from workbench.api.dependencies import get_existing_thread, get_workbench
from workbench.api.models import (
    CloneThreadRequest,
    CreateThreadResponse,
    DeleteThreadResponse,
    EditMessageRequest,
    MessageResponse,
    ThreadListResponse,
    UpdateThreadRequest,
)
from workbench.entities.models import ChatThread, Preset
from workbench.entities.session import Workbench

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/threads", tags=["threads"])

DISCONNECT_POLL_SECONDS = 1.0


def thread_snapshot(workbench: Workbench) -> ThreadListResponse:
    return ThreadListResponse(
        threads=workbench.threads,
        active_thread_id=workbench.active_thread_id,
        pending_message_id=workbench.pending_message_id,
        is_busy=workbench.is_busy,
    )


async def thread_snapshot_events(
    workbench: Workbench,
    request: Request | None = None,
    poll_interval: float = DISCONNECT_POLL_SECONDS,
) -> AsyncGenerator[str, None]:
    """
    Stream the thread snapshot as server-sent events.

    The current snapshot is sent immediately, then again after every change.
    Bursts of changes are coalesced into a single event. While waiting for a
    change the client connection is checked every ``poll_interval`` seconds.
    """
    changes: asyncio.Queue[None] = asyncio.Queue()
    unsubscribe = workbench.thread_registry.subscribe(lambda: changes.put_nowait(None))
    try:
        while True:
            yield f"data: {thread_snapshot(workbench).model_dump_json(by_alias=True)}\n\n"
            while True:
                if request is not None and await request.is_disconnected():
                    logger.info("Snapshot stream client disconnected")
                    return
                try:
                    await asyncio.wait_for(changes.get(), timeout=poll_interval)
                except asyncio.TimeoutError:
                    continue
                break
            while not changes.empty():
                changes.get_nowait()
    finally:
        unsubscribe()


@router.get("", response_model=ThreadListResponse)
async def list_threads(workbench: Workbench = Depends(get_workbench)):
    """
    List all threads (most recently created first) and the active thread id.
    """
    return thread_snapshot(workbench)


@router.post("", response_model=CreateThreadResponse, status_code=201)
async def create_thread(workbench: Workbench = Depends(get_workbench)):
    """Create an empty thread and make it active."""
    return CreateThreadResponse(thread_id=workbench.create_thread())


@router.get("/events")
async def thread_events(request: Request, workbench: Workbench = Depends(get_workbench)):
    """SSE stream of thread snapshots."""
    return StreamingResponse(
        thread_snapshot_events(workbench, request),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/{thread_id}", response_model=ChatThread)
async def get_thread(thread: ChatThread = Depends(get_existing_thread)):
    """
    Get a specific thread by ID.
    """
    return thread


@router.get("/{thread_id}/preset", response_model=Preset)
async def get_thread_preset(
    thread: ChatThread = Depends(get_existing_thread),
    workbench: Workbench = Depends(get_workbench),
):
    """
    The preset a thread would use: its last preset if that still exists,
    otherwise the active preset.
    """
    preset = workbench.preset_for_thread(thread.id)
    if preset is None:
        raise HTTPException(status_code=404, detail=f"No preset available for thread {thread.id}")
    return preset


@router.patch("/{thread_id}", response_model=ChatThread)
async def rename_thread(
    body: UpdateThreadRequest,
    thread: ChatThread = Depends(get_existing_thread),
    workbench: Workbench = Depends(get_workbench),
):
    """
    Rename a thread.
    """
    workbench.rename_thread(thread.id, body.title)
    return workbench.thread_registry.get_thread(thread.id)


@router.delete("/{thread_id}", response_model=DeleteThreadResponse)
async def delete_thread(
    thread: ChatThread = Depends(get_existing_thread),
    workbench: Workbench = Depends(get_workbench),
):
    """
    Delete a thread.

    Returns the active thread id after deletion so the client can follow it.
    """
    return DeleteThreadResponse(active_thread_id=workbench.delete_thread(thread.id))


@router.post("/{thread_id}/select", response_model=ThreadListResponse)
async def select_thread(
    thread: ChatThread = Depends(get_existing_thread),
    workbench: Workbench = Depends(get_workbench),
):
    """Make a thread active, adopting its last preset when it still exists."""
    workbench.select_thread(thread.id)
    return thread_snapshot(workbench)


@router.post("/{thread_id}/clone", response_model=CreateThreadResponse, status_code=201)
async def clone_thread(
    body: CloneThreadRequest,
    thread: ChatThread = Depends(get_existing_thread),
    workbench: Workbench = Depends(get_workbench),
):
    """
    Branch a thread up to and including a message into a new active thread.
    """
    new_thread_id = workbench.clone_from(thread.id, body.message_id)
    if new_thread_id is None:
        raise HTTPException(status_code=404, detail=f"Thread {thread.id} not found")
    return CreateThreadResponse(thread_id=new_thread_id)


@router.patch("/{thread_id}/messages/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: str,
    body: EditMessageRequest,
    thread: ChatThread = Depends(get_existing_thread),
    workbench: Workbench = Depends(get_workbench),
):
    """
    Replace the content of a message; the message becomes complete.
    """
    message = workbench.edit_message(thread.id, message_id, body.content)
    if message is None:
        raise HTTPException(status_code=404, detail=f"Message {message_id} not found")
    return MessageResponse(message=message)


@router.delete("/{thread_id}/messages/{message_id}", status_code=204)
async def delete_message(
    message_id: str,
    thread: ChatThread = Depends(get_existing_thread),
    workbench: Workbench = Depends(get_workbench),
):
    """
    Delete a single message from a thread.
    """
    workbench.delete_message(thread.id, message_id)
