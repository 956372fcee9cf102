"""
Shared models for entities.

These models are persisted by the registries and passed between the
orchestrator, the session facade and the API layer. Records are frozen:
mutations produce new values with ``model_copy(update=...)``. Their JSON form
uses camelCase keys (``createdAt``, ``lastPresetId``); snake_case names are
accepted on input as well.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

MessageRole = Literal["user", "assistant"]
MessageStatus = Literal["pending", "complete", "error", "cancelled"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"complete", "error", "cancelled"})

DEFAULT_API_ENDPOINT = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_THREAD_TITLE = "Untitled chat"
BRANCH_SUFFIX = " (branch)"


class CamelModel(BaseModel):
    """Base for models serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatMessage(CamelModel):
    """A single turn in a conversation thread."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: MessageRole
    content: str
    created_at: int = Field(description="Epoch milliseconds")
    status: MessageStatus = "complete"


class ChatThread(CamelModel):
    """
    An ordered conversation between the user and the assistant.

    ``last_preset_id`` is a weak reference: it is only ever looked up and may
    point at a preset that no longer exists.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    updated_at: int = Field(description="Epoch milliseconds")
    messages: list[ChatMessage] = Field(default_factory=list)
    last_preset_id: str | None = None


class RequestParameter(CamelModel):
    """Extra request body field sent with every completion request."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: Any = Field(description="Any JSON value, including null")


class Preset(CamelModel):
    """
    Reusable bundle of model, endpoint, credentials, system instructions
    and extra request parameters.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    model: str
    instructions: str
    api_key: str
    api_endpoint: str
    request_parameters: list[RequestParameter] = Field(default_factory=list)


class PresetInput(CamelModel):
    """Fields accepted when creating a preset."""

    name: str
    model: str
    instructions: str = ""
    api_key: str = ""
    api_endpoint: str = DEFAULT_API_ENDPOINT
    request_parameters: list[RequestParameter] = Field(default_factory=list)


# Structural validators for persisted values. Parsing is strict so that a
# value stored with the wrong types is rejected rather than coerced.
ThreadListAdapter = TypeAdapter(list[ChatThread])
PresetListAdapter = TypeAdapter(list[Preset])
OptionalIdAdapter = TypeAdapter(str | None)
