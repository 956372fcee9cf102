"""
Chat API routes.

Sending and regenerating wait for the completion request to finish and return
the assistant message in its terminal state (complete, error or cancelled).
Only one request may be outstanding at a time; a second one gets 409 while
the first is running. A request can be cancelled from another connection via
the cancel endpoint.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from workbench.api.dependencies import get_completion_client, get_workbench
from workbench.api.models import CancelResponse, ChatRequest, MessageResponse
from workbench.api.util.completion_client import FALLBACK_MODELS, CompletionClient, ModelInfo
from workbench.entities.errors import CompletionError, ConfigurationError, RequestInFlightError
from workbench.entities.session import Workbench

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("", response_model=MessageResponse)
async def chat(body: ChatRequest, workbench: Workbench = Depends(get_workbench)):
    """
    Send a user message and return the assistant reply.

    Without thread_id the active thread is used; a thread is created when
    there is none.
    """
    logger.info("Chat request for thread %s: %s", body.thread_id, body.message[:100])
    try:
        message = await workbench.send(body.message, body.thread_id)
    except RequestInFlightError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return MessageResponse(message=message)


@router.post("/regenerate/{message_id}", response_model=MessageResponse)
async def regenerate(
    message_id: str,
    thread_id: str | None = None,
    workbench: Workbench = Depends(get_workbench),
):
    """
    Regenerate an assistant message from the nearest preceding user turn.

    Responds 404 when the message is not an assistant reply to a user turn.
    """
    try:
        message = await workbench.regenerate(message_id, thread_id)
    except RequestInFlightError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if message is None:
        raise HTTPException(status_code=404, detail=f"No assistant reply {message_id} to regenerate")
    return MessageResponse(message=message)


@router.post("/cancel/{message_id}", response_model=CancelResponse)
async def cancel(message_id: str, workbench: Workbench = Depends(get_workbench)):
    """
    Cancel the outstanding request for a message.

    Cancelling a message that is not in flight is a no-op.
    """
    return CancelResponse(cancelled=workbench.cancel(message_id))


@router.get("/models", response_model=list[ModelInfo])
async def list_models(client: CompletionClient = Depends(get_completion_client)):
    """
    List models offered by OpenRouter, falling back to a built-in list.
    """
    try:
        models = await client.list_models()
    except CompletionError as e:
        logger.warning("Could not fetch models, using fallback list: %s", e)
        return FALLBACK_MODELS
    return models or FALLBACK_MODELS
