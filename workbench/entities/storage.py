"""
Namespaced key/value persistence with validation and safe fallback.

Two storage scopes are supported:
- ``local``: durable, backed by a JSON file on disk
- ``session``: lives for the lifetime of the process

Every key created through this module is remembered so that
``clear_application_state()`` can wipe exactly the keys this application
owns. Storage problems never raise: an unconfigured scope or an I/O error
degrades to "reads return the default, writes are no-ops".
"""

import json
import logging
import os
import tempfile
from enum import Enum
from pathlib import Path
from typing import Any, Generic, Protocol, TypeVar

from pydantic import TypeAdapter, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORAGE_PREFIX = "orw-"

# Keys of the four persisted entries
STORAGE_KEYS = {
    "chats": "orw-chats",
    "presets": "orw-presets",
    "active_chat_id": "orw-active-chat",
    "active_preset_id": "orw-active-preset",
}


class StorageScope(str, Enum):
    LOCAL = "local"
    SESSION = "session"


class StorageBackend(Protocol):
    """Minimal string key/value interface, modelled on web storage."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """In-process storage used for the session scope and in tests."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileStorage:
    """
    Durable storage kept in a single JSON object file.

    The file maps keys to serialized strings. It is re-read on every access
    so that several processes pointed at the same directory see each other's
    writes, and written through a temporary file so a crash never leaves a
    half-written document behind.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError both land here
            logger.warning("Storage file %s is not valid JSON, ignoring it: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Storage file %s does not hold an object, ignoring it", self.path)
            return {}
        return {key: value for key, value in data.items() if isinstance(value, str)}

    def _save(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(items, handle, indent=2)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = value
        self._save(items)

    def remove_item(self, key: str) -> None:
        items = self._load()
        if items.pop(key, None) is not None:
            self._save(items)


_backends: dict[StorageScope, StorageBackend | None] = {
    StorageScope.LOCAL: None,
    StorageScope.SESSION: None,
}

_registered_keys: list[tuple[StorageScope, str]] = []


def configure_storage(
    local: StorageBackend | None = None,
    session: StorageBackend | None = None,
) -> None:
    """Bind backends to the storage scopes. ``None`` leaves a scope unavailable."""
    _backends[StorageScope.LOCAL] = local
    _backends[StorageScope.SESSION] = session
    logger.info(
        "Storage configured: local=%s, session=%s",
        type(local).__name__ if local else "unavailable",
        type(session).__name__ if session else "unavailable",
    )


def get_backend(scope: StorageScope) -> StorageBackend | None:
    return _backends.get(scope)


def normalize_key(key: str) -> str:
    return key if key.startswith(STORAGE_PREFIX) else STORAGE_PREFIX + key


def _register_key(scope: StorageScope, key: str) -> None:
    if (scope, key) not in _registered_keys:
        _registered_keys.append((scope, key))


def registered_keys() -> list[tuple[StorageScope, str]]:
    """Every (scope, key) pair created through this module so far."""
    return list(_registered_keys)


class PersistentStore(Generic[T]):
    """
    A single validated entry in one storage scope.

    Args:
        scope: Storage scope holding the entry
        key: Entry key; namespaced under ``orw-`` if not already
        default: Value returned when the entry is absent, invalid or unreadable
        validator: Optional pydantic adapter used to parse the stored JSON
    """

    def __init__(
        self,
        scope: StorageScope,
        key: str,
        default: T,
        validator: TypeAdapter | None = None,
    ):
        self.scope = scope
        self.key = normalize_key(key)
        self.default = default
        self.validator = validator
        _register_key(scope, self.key)

    def read(self) -> T:
        backend = get_backend(self.scope)
        if backend is None:
            return self.default

        try:
            raw = backend.get_item(self.key)
        except OSError as e:
            logger.warning("Could not read %s from %s storage: %s", self.key, self.scope.value, e)
            return self.default

        if raw is None:
            return self.default

        try:
            return self._parse(raw)
        except (ValidationError, json.JSONDecodeError) as e:
            logger.warning(
                "Stored value for %s failed validation. Resetting to default. (%s)",
                self.key,
                e.__class__.__name__,
            )
            self._remove(backend)
            return self.default

    def write(self, value: T) -> None:
        backend = get_backend(self.scope)
        if backend is None:
            return
        try:
            backend.set_item(self.key, self._serialize(value))
        except OSError as e:
            logger.warning("Could not write %s to %s storage: %s", self.key, self.scope.value, e)

    def clear(self) -> None:
        backend = get_backend(self.scope)
        if backend is None:
            return
        self._remove(backend)

    def _parse(self, raw: str) -> Any:
        if self.validator is None:
            return json.loads(raw)
        return self.validator.validate_json(raw, strict=True)

    def _serialize(self, value: T) -> str:
        if self.validator is None:
            return json.dumps(value)
        return self.validator.dump_json(value, by_alias=True).decode("utf-8")

    def _remove(self, backend: StorageBackend) -> None:
        try:
            backend.remove_item(self.key)
        except OSError as e:
            logger.warning("Could not remove %s from %s storage: %s", self.key, self.scope.value, e)


def create_local_store(key: str, default: T, validator: TypeAdapter | None = None) -> PersistentStore[T]:
    return PersistentStore(StorageScope.LOCAL, key, default, validator)


def create_session_store(key: str, default: T, validator: TypeAdapter | None = None) -> PersistentStore[T]:
    return PersistentStore(StorageScope.SESSION, key, default, validator)


def clear_application_state() -> None:
    """Remove every key this application has registered, in every scope."""
    for scope, key in _registered_keys:
        backend = get_backend(scope)
        if backend is None:
            continue
        try:
            backend.remove_item(key)
        except OSError as e:
            logger.warning("Could not remove %s from %s storage: %s", key, scope.value, e)
