"""
Reusable client for OpenRouter-compatible chat completion endpoints.

This module maps a conversation onto the chat completions wire format,
issues the request with httpx and normalizes the heterogeneous content
shapes returned by different providers into plain text.
"""

import logging
from typing import Any, Iterable

import httpx
from pydantic import BaseModel

from workbench.entities.errors import (
    CompletionHTTPError,
    CompletionResponseError,
    CompletionTransportError,
)
from workbench.entities.models import DEFAULT_API_ENDPOINT, RequestParameter

logger = logging.getLogger(__name__)

DEFAULT_MODELS_URL = "https://openrouter.ai/api/v1/models"
DEFAULT_CLIENT_TITLE = "OpenRouter Web UI"
DEFAULT_CLIENT_REFERER = "http://localhost"


class ModelInfo(BaseModel):
    """A model offered by the endpoint."""
    id: str
    name: str
    description: str | None = None
    context_length: int | None = None


FALLBACK_MODELS = [
    ModelInfo(id="openrouter/turbo", name="OpenRouter Turbo"),
    ModelInfo(id="meta/llama3-70b-instruct", name="Meta Llama 3 70B Instruct"),
    ModelInfo(id="anthropic/claude-3-opus", name="Anthropic Claude 3 Opus"),
]


def normalize_content(content: Any) -> str:
    """
    Flatten a response content field into text.

    Content is either a plain string or a list of parts; only plain strings
    and parts tagged ``{"type": "text"}`` contribute.
    """
    if isinstance(content, str):
        return content

    if isinstance(content, list):
        pieces = []
        for part in content:
            if isinstance(part, str):
                pieces.append(part)
            elif isinstance(part, dict) and part.get("type") == "text" and isinstance(part.get("text"), str):
                pieces.append(part["text"])
        return "".join(pieces).strip()

    return ""


def build_request_messages(
    instructions: str | None,
    history: Iterable[dict[str, str]],
    user_message: dict[str, str],
) -> list[dict[str, str]]:
    """Assemble system instructions, prior history and the new user turn."""
    messages: list[dict[str, str]] = []

    if instructions and instructions.strip():
        messages.append({"role": "system", "content": instructions.strip()})

    messages.extend(history)
    messages.append(user_message)
    return messages


def build_extras(parameters: Iterable[RequestParameter]) -> dict[str, Any]:
    """
    Fold request parameters into a mapping.

    The last parameter with a given name wins; unnamed parameters are skipped.
    """
    extras: dict[str, Any] = {}
    for parameter in parameters:
        if parameter.name:
            extras[parameter.name] = parameter.value
    return extras


def build_request_body(
    model: str,
    messages: Iterable[dict[str, Any]],
    extras: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build the JSON body for a completion request.

    Only role and content leave the process. Extras are merged last with no
    protected keys, so an extra named ``model`` replaces the preset model.
    A ``None`` value is sent as JSON null.
    """
    body: dict[str, Any] = {
        "model": model,
        "messages": [{"role": message["role"], "content": message["content"]} for message in messages],
    }
    body.update(extras or {})
    return body


def _error_detail(response: httpx.Response) -> str:
    """Prefer the structured error message from the body over the status line."""
    detail = f"{response.status_code} {response.reason_phrase}".strip()
    try:
        payload = response.json()
    except ValueError:
        return detail
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str) and error["message"]:
            return error["message"]
    return detail


class CompletionClient:
    """
    Async context manager for chat completion requests.

    Owns a single httpx.AsyncClient. Cancelling the task awaiting
    ``complete`` aborts the in-flight HTTP request.

    Usage:
        async with CompletionClient() as client:
            text = await client.complete(
                endpoint=preset.api_endpoint,
                api_key=preset.api_key,
                model=preset.model,
                messages=[{"role": "user", "content": "Hello"}],
            )
    """

    def __init__(
        self,
        title: str = DEFAULT_CLIENT_TITLE,
        referer: str = DEFAULT_CLIENT_REFERER,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the completion client.

        Args:
            title: Sent as X-Title to identify the client
            referer: Sent as HTTP-Referer to identify the client
            timeout: Request timeout in seconds; None waits indefinitely
            transport: Optional httpx transport (used by tests)
        """
        self.title = title
        self.referer = referer
        self.timeout = timeout
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "CompletionClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._http

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def build_headers(self, api_key: str | None = None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "HTTP-Referer": self.referer,
            "X-Title": self.title,
        }
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    async def complete(
        self,
        endpoint: str,
        api_key: str,
        model: str,
        messages: list[dict[str, Any]],
        extra_parameters: dict[str, Any] | None = None,
    ) -> str:
        """
        Request a completion and return its normalized text.

        Raises:
            CompletionHTTPError: Non-success status
            CompletionTransportError: The request could not be delivered
            CompletionResponseError: Missing choice/message or no textual content
        """
        body = build_request_body(model, messages, extra_parameters)
        url = endpoint or DEFAULT_API_ENDPOINT
        logger.info(
            "Requesting completion from %s (model=%s, %d messages)",
            url, body.get("model"), len(body["messages"]),
        )

        try:
            response = await self._ensure_client().post(url, headers=self.build_headers(api_key), json=body)
        except httpx.HTTPError as e:
            logger.error("Completion transport error: %s", e)
            raise CompletionTransportError(f"OpenRouter request failed: {e}") from e

        if not response.is_success:
            detail = _error_detail(response)
            logger.warning("Completion request failed with %s: %s", response.status_code, detail)
            raise CompletionHTTPError(f"OpenRouter request failed: {detail}", response.status_code)

        try:
            payload = response.json()
        except ValueError as e:
            raise CompletionResponseError("OpenRouter response was not valid JSON.") from e

        choices = payload.get("choices") if isinstance(payload, dict) else None
        choice = choices[0] if isinstance(choices, list) and choices else None
        message = choice.get("message") if isinstance(choice, dict) else None
        if not isinstance(message, dict):
            raise CompletionResponseError("OpenRouter response did not include a message choice.")

        content = normalize_content(message.get("content"))
        if not content.strip():
            raise CompletionResponseError("OpenRouter response did not include textual content.")

        return content

    async def list_models(self, url: str = DEFAULT_MODELS_URL) -> list[ModelInfo]:
        """
        Fetch the models offered by the endpoint.

        Raises:
            CompletionHTTPError: Non-success status
            CompletionTransportError: The request could not be delivered
        """
        try:
            response = await self._ensure_client().get(url, headers=self.build_headers())
        except httpx.HTTPError as e:
            raise CompletionTransportError(f"Failed to fetch models: {e}") from e

        if not response.is_success:
            raise CompletionHTTPError(
                f"Failed to fetch models: {response.status_code} {response.reason_phrase}",
                response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise CompletionResponseError("Model listing was not valid JSON.") from e

        models = []
        for entry in (payload.get("data") or []) if isinstance(payload, dict) else []:
            if not isinstance(entry, dict) or not isinstance(entry.get("id"), str):
                continue
            models.append(ModelInfo(
                id=entry["id"],
                name=entry.get("name") or entry["id"],
                description=entry.get("description"),
                context_length=entry.get("context_length"),
            ))
        return models
