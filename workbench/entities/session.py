"""
Workbench session - the functional contract consumed by the presentation layer.

The session wires the storage backends, both registries, the orchestrator
and the completion client together. Every mutator is synchronous except
``send`` and ``regenerate``, which resolve after the terminal status of the
assistant message has been applied.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable

from .ids import now_ms
from .models import ChatMessage, ChatThread, Preset, PresetInput, RequestParameter
from .orchestrator import CompletionBackend, RequestOrchestrator
from .presets import PresetRegistry, parse_parameter_value
from .storage import JsonFileStorage, MemoryStorage, clear_application_state, configure_storage
from .threads import ThreadRegistry

if TYPE_CHECKING:
    from workbench.settings import Settings

logger = logging.getLogger(__name__)


class Workbench:
    """Facade over the thread and preset registries and the orchestrator."""

    def __init__(
        self,
        threads: ThreadRegistry,
        presets: PresetRegistry,
        orchestrator: RequestOrchestrator,
        clock: Callable[[], int] = now_ms,
    ):
        self.thread_registry = threads
        self.preset_registry = presets
        self.orchestrator = orchestrator
        self._clock = clock

    @classmethod
    def create(cls, client: CompletionBackend, clock: Callable[[], int] = now_ms) -> "Workbench":
        """Build a session over whatever storage is currently configured."""
        threads = ThreadRegistry(clock=clock)
        presets = PresetRegistry()
        orchestrator = RequestOrchestrator(threads, presets, client, clock=clock)
        return cls(threads, presets, orchestrator, clock=clock)

    @classmethod
    def from_settings(cls, settings: "Settings", client: CompletionBackend) -> "Workbench":
        """Configure file-backed local storage and in-memory session storage, then build a session."""
        configure_storage(local=JsonFileStorage(settings.storage_path), session=MemoryStorage())
        logger.info("Using storage file %s", settings.storage_path)
        return cls.create(client)

    @property
    def threads(self) -> list[ChatThread]:
        return self.thread_registry.threads

    @property
    def active_thread_id(self) -> str | None:
        return self.thread_registry.active_thread_id

    @property
    def active_thread(self) -> ChatThread | None:
        return self.thread_registry.active_thread

    @property
    def presets(self) -> list[Preset]:
        return self.preset_registry.presets

    @property
    def active_preset_id(self) -> str | None:
        return self.preset_registry.active_preset_id

    @property
    def pending_message_id(self) -> str | None:
        return self.orchestrator.pending_message_id

    @property
    def is_busy(self) -> bool:
        return self.orchestrator.is_busy

    async def send(self, text: str, thread_id: str | None = None) -> ChatMessage | None:
        return await self.orchestrator.send(text, thread_id)

    async def regenerate(self, message_id: str, thread_id: str | None = None) -> ChatMessage | None:
        return await self.orchestrator.regenerate(message_id, thread_id)

    def cancel(self, message_id: str) -> bool:
        return self.orchestrator.cancel(message_id)

    def create_thread(self) -> str:
        return self.thread_registry.create_thread()

    def delete_thread(self, thread_id: str) -> str | None:
        return self.thread_registry.remove_thread(thread_id)

    def rename_thread(self, thread_id: str, title: str) -> None:
        self.thread_registry.rename_thread(thread_id, title)

    def select_thread(self, thread_id: str) -> None:
        """Activate a thread and adopt its last preset if that preset still exists."""
        self.thread_registry.select_thread(thread_id)
        thread = self.thread_registry.active_thread
        if thread is None or not thread.last_preset_id:
            return
        if thread.last_preset_id == self.preset_registry.active_preset_id:
            return
        if self.preset_registry.get(thread.last_preset_id) is not None:
            self.preset_registry.select(thread.last_preset_id)

    def edit_message(self, thread_id: str, message_id: str, content: str) -> ChatMessage | None:
        return self.thread_registry.patch_message(
            thread_id, message_id, content=content, status="complete", created_at=self._clock()
        )

    def delete_message(self, thread_id: str, message_id: str) -> None:
        self.thread_registry.remove_message(thread_id, message_id)

    def clone_from(self, thread_id: str, message_id: str | None) -> str | None:
        return self.thread_registry.clone_up_to(thread_id, message_id)

    def preset_for_thread(self, thread_id: str | None) -> Preset | None:
        """The thread's last preset if it still exists, else the active preset."""
        thread = self.thread_registry.get_thread(thread_id)
        if thread is not None and thread.last_preset_id:
            preset = self.preset_registry.get(thread.last_preset_id)
            if preset is not None:
                return preset
        return self.preset_registry.active_preset

    def select_preset(self, preset_id: str) -> None:
        """Activate a preset and record it on the active thread."""
        self.preset_registry.select(preset_id)
        if self.active_thread_id:
            self.thread_registry.set_thread_preset(self.active_thread_id, preset_id)

    def create_preset(self, data: PresetInput) -> Preset:
        return self.preset_registry.create(data)

    def update_preset(self, preset_id: str, **patch: Any) -> Preset | None:
        return self.preset_registry.update(preset_id, **patch)

    def remove_preset(self, preset_id: str) -> str | None:
        return self.preset_registry.remove(preset_id)

    def duplicate_preset(self, preset_id: str) -> Preset | None:
        return self.preset_registry.duplicate(preset_id)

    def set_preset_parameter(self, preset_id: str, name: str, text: str) -> Preset | None:
        """
        Set a request parameter from the JSON text typed for its value.

        An existing parameter with the same name is replaced in place,
        otherwise the parameter is appended.

        Raises:
            InvalidParameterValue: If the text is blank or not valid JSON
        """
        value = parse_parameter_value(text)
        preset = self.preset_registry.get(preset_id)
        if preset is None:
            return None
        parameter = RequestParameter(name=name, value=value)
        parameters = list(preset.request_parameters)
        index = next((i for i, p in enumerate(parameters) if p.name == name), None)
        if index is None:
            parameters.append(parameter)
        else:
            parameters[index] = parameter
        return self.preset_registry.update(preset_id, request_parameters=parameters)

    def remove_preset_parameter(self, preset_id: str, name: str) -> Preset | None:
        preset = self.preset_registry.get(preset_id)
        if preset is None:
            return None
        parameters = [p for p in preset.request_parameters if p.name != name]
        return self.preset_registry.update(preset_id, request_parameters=parameters)

    def reset_everything(self) -> None:
        """Wipe every key this application owns and reload factory defaults."""
        clear_application_state()
        self.thread_registry.clear_all()
        self.preset_registry.clear_all()
        logger.info("Application state reset")
