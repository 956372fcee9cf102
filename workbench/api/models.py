"""
Pydantic models for API request/response schemas.

Like the entity records, every schema reads and writes camelCase JSON keys
and also accepts snake_case names on input.
"""

from typing import Any

from workbench.entities.models import CamelModel, ChatMessage, ChatThread, Preset, RequestParameter


class ChatRequest(CamelModel):
    """Request body for sending a message."""
    message: str
    thread_id: str | None = None


class CancelResponse(CamelModel):
    cancelled: bool


class ThreadListResponse(CamelModel):
    """Response for listing threads."""
    threads: list[ChatThread]
    active_thread_id: str | None = None
    pending_message_id: str | None = None
    is_busy: bool = False


class CreateThreadResponse(CamelModel):
    thread_id: str


class UpdateThreadRequest(CamelModel):
    """Request body for renaming a thread."""
    title: str


class DeleteThreadResponse(CamelModel):
    active_thread_id: str | None = None


class CloneThreadRequest(CamelModel):
    """Clone up to and including message_id; omit it to clone the whole thread."""
    message_id: str | None = None


class EditMessageRequest(CamelModel):
    content: str


class ParameterValueRequest(CamelModel):
    """A request parameter value typed as JSON text, e.g. ``0.7`` or ``"stop"``."""
    value: str


class MessageResponse(CamelModel):
    message: ChatMessage | None = None


class PresetListResponse(CamelModel):
    """Response for listing presets."""
    presets: list[Preset]
    active_preset_id: str | None = None


class UpdatePresetRequest(CamelModel):
    """Request body for updating a preset; omitted fields are left unchanged."""
    name: str | None = None
    model: str | None = None
    instructions: str | None = None
    api_key: str | None = None
    api_endpoint: str | None = None
    request_parameters: list[RequestParameter] | None = None

    def patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class ResetResponse(CamelModel):
    threads: list[ChatThread]
    active_thread_id: str | None = None
    presets: list[Preset]
    active_preset_id: str | None = None
