"""
Request orchestrator - drives one completion request per send/regenerate.

Message lifecycle while a request is outstanding:

    pending -> complete | error | cancelled

All three outcomes are terminal. At most one request may be outstanding per
orchestrator; a second send or regenerate is rejected, never queued. The
single-flight slot records the task doing the network call and the id of the
message it will patch, and is released in ``finally`` only if it still
belongs to that message.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from workbench.api.util.completion_client import build_extras, build_request_messages

from .errors import (
    CompletionError,
    ConfigurationError,
    MissingApiKeyError,
    PresetNotSelectedError,
    RequestInFlightError,
)
from .ids import create_id, now_ms
from .models import DEFAULT_API_ENDPOINT, DEFAULT_THREAD_TITLE, ChatMessage, ChatThread, Preset
from .presets import PresetRegistry
from .threads import ThreadRegistry

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Request cancelled."
DEFAULT_ERROR_MESSAGE = (
    "Unable to contact OpenRouter. Please confirm the preset has a valid API key and try again."
)

TITLE_MAX_LENGTH = 42
TITLE_TRUNCATE_AT = 39


class CompletionBackend(Protocol):
    async def complete(
        self,
        endpoint: str,
        api_key: str,
        model: str,
        messages: list[dict[str, Any]],
        extra_parameters: dict[str, Any] | None = None,
    ) -> str: ...


@dataclass
class InFlightRequest:
    """The single-flight slot: the outstanding task and the message it will patch."""
    message_id: str
    task: asyncio.Task


def derive_title(text: str) -> str:
    """Title a thread after its first message."""
    if len(text) > TITLE_MAX_LENGTH:
        return text[:TITLE_TRUNCATE_AT] + "..."
    return text


def to_wire_messages(messages: list[ChatMessage]) -> list[dict[str, str]]:
    """Strip ids, timestamps and status; only role and content are sent."""
    return [{"role": message.role, "content": message.content} for message in messages]


def resolve_preset_for_request(preset: Preset | None) -> Preset:
    """
    Check that a preset can be used for a request.

    Raises:
        PresetNotSelectedError: No preset is selected
        MissingApiKeyError: The preset has no API key
    """
    if preset is None:
        raise PresetNotSelectedError()
    if not preset.api_key:
        raise MissingApiKeyError()
    if not preset.api_endpoint:
        return preset.model_copy(update={"api_endpoint": DEFAULT_API_ENDPOINT})
    return preset


class RequestOrchestrator:
    """
    Issues completion requests and reconciles their outcome into threads.

    Args:
        threads: Thread registry holding the conversation state
        presets: Preset registry providing the active preset
        client: Anything with a CompletionClient-compatible ``complete``
        clock: Returns the current time in epoch milliseconds
    """

    def __init__(
        self,
        threads: ThreadRegistry,
        presets: PresetRegistry,
        client: CompletionBackend,
        clock: Callable[[], int] = now_ms,
    ):
        self.threads = threads
        self.presets = presets
        self.client = client
        self._clock = clock
        self._in_flight: InFlightRequest | None = None

    @property
    def pending_message_id(self) -> str | None:
        return self._in_flight.message_id if self._in_flight else None

    @property
    def is_busy(self) -> bool:
        return self._in_flight is not None

    def _ensure_idle(self) -> None:
        if self._in_flight is not None:
            raise RequestInFlightError(self._in_flight.message_id)

    async def send(self, text: str, thread_id: str | None = None) -> ChatMessage | None:
        """
        Send a new user message and wait for the assistant reply.

        Everything up to the network call happens synchronously, so an
        observer sees the user message and the pending placeholder before
        the request starts.

        Returns:
            The assistant message in its terminal state

        Raises:
            RequestInFlightError: Another request is outstanding
            ConfigurationError: The active preset cannot be used; the user
                message is kept and the placeholder is closed as an error
        """
        self._ensure_idle()

        thread = self.threads.get_thread(thread_id or self.threads.active_thread_id)
        if thread is None:
            thread = self.threads.get_thread(self.threads.create_thread())
        history = to_wire_messages(thread.messages)

        self.threads.append_message(thread.id, ChatMessage(
            id=create_id("msg"),
            role="user",
            content=text,
            created_at=self._clock(),
        ))
        if not thread.title.strip() or thread.title == DEFAULT_THREAD_TITLE:
            self.threads.rename_thread(thread.id, derive_title(text))

        placeholder_id = create_id("msg")
        self.threads.append_message(thread.id, ChatMessage(
            id=placeholder_id,
            role="assistant",
            content="",
            created_at=self._clock(),
            status="pending",
        ))

        preset = self._resolve_preset(thread.id, placeholder_id)
        messages = build_request_messages(preset.instructions, history, {"role": "user", "content": text})
        return await self._run(thread.id, placeholder_id, preset, messages)

    async def regenerate(self, message_id: str, thread_id: str | None = None) -> ChatMessage | None:
        """
        Replay the conversation up to the nearest preceding user turn.

        The target assistant message is reset to pending in place; its id and
        position are kept.

        Returns:
            The regenerated message, or None when the target is not an
            assistant message with a preceding user message

        Raises:
            RequestInFlightError: Another request is outstanding
            ConfigurationError: The active preset cannot be used; the target
                is closed as an error
        """
        self._ensure_idle()

        thread = self.threads.get_thread(thread_id or self.threads.active_thread_id)
        if thread is None:
            return None
        plan = self._plan_regeneration(thread, message_id)
        if plan is None:
            return None
        history, user_message = plan

        self.threads.patch_message(thread.id, message_id, content="", status="pending", created_at=self._clock())
        preset = self._resolve_preset(thread.id, message_id)

        messages = build_request_messages(
            preset.instructions,
            to_wire_messages(history),
            {"role": "user", "content": user_message.content},
        )
        return await self._run(thread.id, message_id, preset, messages)

    def _resolve_preset(self, thread_id: str, message_id: str) -> Preset:
        """
        Resolve the active preset for a request targeting ``message_id``.

        On failure the pending message is closed as an error carrying the
        configuration message, then the error is re-raised to the caller.
        """
        try:
            return resolve_preset_for_request(self.presets.active_preset)
        except ConfigurationError as e:
            logger.warning("Cannot issue request for message %s: %s", message_id, e)
            self.threads.patch_message(
                thread_id, message_id,
                content=str(e), status="error", created_at=self._clock(),
            )
            raise

    @staticmethod
    def _plan_regeneration(
        thread: ChatThread, message_id: str
    ) -> tuple[list[ChatMessage], ChatMessage] | None:
        """Find the history and the user turn to replay for an assistant message."""
        index = next((i for i, message in enumerate(thread.messages) if message.id == message_id), -1)
        if index == -1 or thread.messages[index].role != "assistant":
            return None

        previous = thread.messages[:index]
        for user_index in range(len(previous) - 1, -1, -1):
            if previous[user_index].role == "user":
                return previous[:user_index], previous[user_index]
        return None

    def cancel(self, message_id: str) -> bool:
        """
        Cancel the outstanding request if it targets ``message_id``.

        A stale cancel (the slot is empty or belongs to another message) is
        a no-op.

        Returns:
            True if a cancellation was signalled
        """
        in_flight = self._in_flight
        if in_flight is None or in_flight.message_id != message_id:
            logger.debug("Ignoring cancel for %s: not the in-flight message", message_id)
            return False
        logger.info("Cancelling request for message %s", message_id)
        in_flight.task.cancel()
        return True

    async def _run(
        self,
        thread_id: str,
        message_id: str,
        preset: Preset,
        messages: list[dict[str, str]],
    ) -> ChatMessage | None:
        """Issue the request for ``message_id`` and patch it with the outcome."""
        self.threads.set_thread_preset(thread_id, preset.id)

        task = asyncio.ensure_future(self.client.complete(
            endpoint=preset.api_endpoint,
            api_key=preset.api_key,
            model=preset.model,
            messages=messages,
            extra_parameters=build_extras(preset.request_parameters),
        ))
        self._in_flight = InFlightRequest(message_id=message_id, task=task)
        logger.info("Request started for message %s in thread %s", message_id, thread_id)

        try:
            content = await task
        except asyncio.CancelledError:
            self.threads.patch_message(
                thread_id, message_id,
                content=CANCELLED_MESSAGE, status="cancelled", created_at=self._clock(),
            )
            logger.info("Request for message %s was cancelled", message_id)
            if not task.cancelled():
                # The caller itself was cancelled, not just the request
                task.cancel()
                raise
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        except CompletionError as e:
            logger.warning("Request for message %s failed: %s", message_id, e)
            self.threads.patch_message(
                thread_id, message_id,
                content=str(e) or DEFAULT_ERROR_MESSAGE, status="error", created_at=self._clock(),
            )
        except Exception as e:  # pylint: disable=broad-except
            logger.error("Unexpected error for message %s: %s", message_id, e, exc_info=True)
            self.threads.patch_message(
                thread_id, message_id,
                content=str(e) or DEFAULT_ERROR_MESSAGE, status="error", created_at=self._clock(),
            )
        else:
            self.threads.patch_message(
                thread_id, message_id,
                content=content, status="complete", created_at=self._clock(),
            )
            logger.info("Request for message %s completed", message_id)
        finally:
            if self._in_flight is not None and self._in_flight.message_id == message_id:
                self._in_flight = None

        return self.threads.get_message(thread_id, message_id)
