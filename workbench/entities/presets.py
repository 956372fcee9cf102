"""
Preset registry - CRUD over named request configurations.
"""

import json
import logging
from typing import Any, Callable

from .errors import InvalidParameterValue
from .ids import create_id
from .models import (
    DEFAULT_API_ENDPOINT,
    OptionalIdAdapter,
    Preset,
    PresetInput,
    PresetListAdapter,
)
from .observable import Observable
from .storage import STORAGE_KEYS, create_local_store

logger = logging.getLogger(__name__)

DEFAULT_PRESET_NAME = "Default (openrouter)"
DEFAULT_PRESET_MODEL = "meta-llama/llama-3.3-70b-instruct"
DEFAULT_PRESET_INSTRUCTIONS = (
    "You are a helpful assistant. Be concise and accurate, ask clarifying questions "
    "when useful, and format code with fenced Markdown."
)

# Patchable preset fields; anything else in a patch is ignored
PRESET_FIELDS = ("name", "model", "instructions", "api_key", "api_endpoint", "request_parameters")


def create_default_presets() -> list[Preset]:
    return [
        Preset(
            id=create_id("preset"),
            name=DEFAULT_PRESET_NAME,
            model=DEFAULT_PRESET_MODEL,
            instructions=DEFAULT_PRESET_INSTRUCTIONS,
            api_key="",
            api_endpoint=DEFAULT_API_ENDPOINT,
            request_parameters=[],
        )
    ]


def parse_parameter_value(text: str) -> Any:
    """
    Parse the JSON literal typed for a request parameter value.

    Raises:
        InvalidParameterValue: If the text is blank or not valid JSON
    """
    if not text.strip():
        raise InvalidParameterValue("Enter a JSON value.")
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidParameterValue(f"Invalid JSON: {e.msg}") from e


class PresetRegistry(Observable):
    """
    Holds the preset collection and the active preset selection.

    Every mutation replaces the collection with a new list, persists it and
    notifies subscribers.
    """

    def __init__(self, id_factory: Callable[[str], str] = create_id):
        super().__init__()
        self._create_id = id_factory
        defaults = create_default_presets()
        self._presets_store = create_local_store(STORAGE_KEYS["presets"], defaults, PresetListAdapter)
        self._active_store = create_local_store(
            STORAGE_KEYS["active_preset_id"],
            defaults[0].id if defaults else None,
            OptionalIdAdapter,
        )
        self._presets: list[Preset] = self._presets_store.read()
        self._active_preset_id: str | None = self._active_store.read()
        self._heal_active()

    @property
    def presets(self) -> list[Preset]:
        return self._presets

    @property
    def active_preset_id(self) -> str | None:
        self._heal_active()
        return self._active_preset_id

    @property
    def active_preset(self) -> Preset | None:
        return self.get(self.active_preset_id) if self.active_preset_id else None

    def get(self, preset_id: str | None) -> Preset | None:
        if preset_id is None:
            return None
        return next((preset for preset in self._presets if preset.id == preset_id), None)

    def create(self, data: PresetInput) -> Preset:
        """Create a preset, prepend it and make it active."""
        preset = Preset(id=self._create_id("preset"), **data.model_dump())
        self._set_presets([preset, *self._presets])
        self._set_active(preset.id)
        logger.info("Created preset %s (%s)", preset.id, preset.name)
        return preset

    def update(self, preset_id: str, **patch: Any) -> Preset | None:
        """
        Merge ``patch`` into a preset.

        ``request_parameters`` is replaced as a whole list. Unknown preset ids
        are a no-op and return None.
        """
        current = self.get(preset_id)
        if current is None:
            return None

        update = {key: value for key, value in patch.items() if key in PRESET_FIELDS}
        if update.get("request_parameters") is None:
            update.pop("request_parameters", None)
        updated = Preset.model_validate({**current.model_dump(), **update})

        self._set_presets([updated if preset.id == preset_id else preset for preset in self._presets])
        return updated

    def remove(self, preset_id: str) -> str | None:
        """Delete a preset; returns the resolved active preset id."""
        remaining = [preset for preset in self._presets if preset.id != preset_id]
        if len(remaining) == len(self._presets):
            return self.active_preset_id

        # The active selection heals to the new first preset if it was removed
        self._set_presets(remaining)
        logger.info("Removed preset %s", preset_id)
        return self._active_preset_id

    def select(self, preset_id: str | None) -> None:
        self._set_active(preset_id)

    def duplicate(self, preset_id: str) -> Preset | None:
        """Copy a preset under a new id; the copy becomes active."""
        source = self.get(preset_id)
        if source is None:
            return None
        name = f"{source.name} (copy)" if source.name else "Preset copy"
        data = PresetInput(**source.model_dump(exclude={"id", "name"}), name=name)
        return self.create(data)

    def clear_all(self) -> tuple[list[Preset], str | None]:
        """
        Reset both stores to factory defaults.

        Returns the freshly re-read values, which also replace the in-memory
        view so no stale preset can be resurrected.
        """
        self._presets_store.clear()
        self._active_store.clear()
        self._presets = self._presets_store.read()
        self._active_preset_id = self._active_store.read()
        self._heal_active()
        self._notify()
        return self._presets, self._active_preset_id

    def _set_presets(self, presets: list[Preset]) -> None:
        self._presets = presets
        self._presets_store.write(presets)
        self._heal_active()
        self._notify()

    def _set_active(self, preset_id: str | None) -> None:
        self._active_preset_id = preset_id
        self._heal_active()
        self._active_store.write(self._active_preset_id)
        self._notify()

    def _heal_active(self) -> None:
        if self._active_preset_id is None or self.get(self._active_preset_id) is not None:
            return
        healed = self._presets[0].id if self._presets else None
        logger.info("Active preset %s no longer exists, falling back to %s", self._active_preset_id, healed)
        self._active_preset_id = healed
        self._active_store.write(healed)
