"""
Thread registry - CRUD over conversation threads and their messages.

Every operation produces a new collection instead of editing in place, so a
consumer holding the previous snapshot never sees it change underneath it.
"""

import logging
from typing import Any, Callable

from .ids import create_id, now_ms
from .models import (
    BRANCH_SUFFIX,
    DEFAULT_THREAD_TITLE,
    ChatMessage,
    ChatThread,
    OptionalIdAdapter,
    ThreadListAdapter,
)
from .observable import Observable
from .storage import STORAGE_KEYS, create_local_store, create_session_store

logger = logging.getLogger(__name__)

WELCOME_THREAD_TITLE = "Welcome"


def create_default_threads(clock: Callable[[], int] = now_ms) -> list[ChatThread]:
    return [ChatThread(id=create_id("chat"), title=WELCOME_THREAD_TITLE, updated_at=clock(), messages=[])]


def branch_title(title: str) -> str:
    """Add the branch suffix once; cloning a clone does not stack suffixes."""
    base = title or DEFAULT_THREAD_TITLE
    return base if base.endswith(BRANCH_SUFFIX) else base + BRANCH_SUFFIX


class ThreadRegistry(Observable):
    """
    Holds the thread collection and the active thread selection.

    Args:
        clock: Returns the current time in epoch milliseconds
        id_factory: Creates prefixed identifiers
    """

    def __init__(
        self,
        clock: Callable[[], int] = now_ms,
        id_factory: Callable[[str], str] = create_id,
    ):
        super().__init__()
        self._clock = clock
        self._create_id = id_factory
        defaults = create_default_threads(clock)
        self._threads_store = create_local_store(STORAGE_KEYS["chats"], defaults, ThreadListAdapter)
        self._active_store = create_session_store(
            STORAGE_KEYS["active_chat_id"],
            defaults[0].id if defaults else None,
            OptionalIdAdapter,
        )
        self._threads: list[ChatThread] = self._threads_store.read()
        self._active_thread_id: str | None = self._active_store.read()
        self._heal_active()

    @property
    def threads(self) -> list[ChatThread]:
        return self._threads

    @property
    def active_thread_id(self) -> str | None:
        self._heal_active()
        return self._active_thread_id

    @property
    def active_thread(self) -> ChatThread | None:
        return self.get_thread(self.active_thread_id)

    def get_thread(self, thread_id: str | None) -> ChatThread | None:
        if thread_id is None:
            return None
        return next((thread for thread in self._threads if thread.id == thread_id), None)

    def get_message(self, thread_id: str, message_id: str) -> ChatMessage | None:
        thread = self.get_thread(thread_id)
        if thread is None:
            return None
        return next((message for message in thread.messages if message.id == message_id), None)

    def create_thread(self) -> str:
        """Create an empty thread, prepend it and make it active."""
        thread = ChatThread(
            id=self._create_id("chat"),
            title=DEFAULT_THREAD_TITLE,
            updated_at=self._clock(),
            messages=[],
            last_preset_id=None,
        )
        self._set_threads([thread, *self._threads])
        self.select_thread(thread.id)
        logger.info("Created thread %s", thread.id)
        return thread.id

    def select_thread(self, thread_id: str | None) -> None:
        self._active_thread_id = thread_id
        self._heal_active()
        self._active_store.write(self._active_thread_id)
        self._notify()

    def rename_thread(self, thread_id: str, title: str) -> None:
        self._update_thread(thread_id, lambda thread: {"title": title, "updated_at": self._clock()})

    def set_thread_preset(self, thread_id: str, preset_id: str | None) -> None:
        self._update_thread(thread_id, lambda thread: {"last_preset_id": preset_id, "updated_at": self._clock()})

    def remove_thread(self, thread_id: str) -> str | None:
        """
        Delete a thread.

        Returns:
            The resolved active thread id, which moves to the new first thread
            (or None) when the deleted thread was active
        """
        remaining = [thread for thread in self._threads if thread.id != thread_id]
        if len(remaining) != len(self._threads):
            self._set_threads(remaining)
            logger.info("Removed thread %s", thread_id)
        return self.active_thread_id

    def clone_up_to(self, thread_id: str, message_id: str | None) -> str | None:
        """
        Branch a thread into a new one.

        Copies messages from the start up to and including ``message_id``
        (the whole thread when it is None or not found) under fresh ids.

        Returns:
            The new thread id, or None if the source thread does not exist
        """
        source = self.get_thread(thread_id)
        if source is None:
            return None

        target_index = len(source.messages) - 1
        if message_id:
            target_index = next(
                (index for index, message in enumerate(source.messages) if message.id == message_id),
                -1,
            )
        slice_count = target_index + 1 if target_index >= 0 else len(source.messages)

        messages = [
            message.model_copy(update={"id": self._create_id("msg")})
            for message in source.messages[:slice_count]
        ]
        clone = ChatThread(
            id=self._create_id("chat"),
            title=branch_title(source.title),
            updated_at=messages[-1].created_at if messages else self._clock(),
            messages=messages,
            last_preset_id=source.last_preset_id,
        )
        self._set_threads([clone, *self._threads])
        self.select_thread(clone.id)
        logger.info("Cloned thread %s into %s (%d messages)", thread_id, clone.id, len(messages))
        return clone.id

    def clear_all(self) -> tuple[list[ChatThread], str | None]:
        """
        Reset both stores to factory defaults.

        Returns the freshly re-read values, which also replace the in-memory
        view so no stale thread can be resurrected.
        """
        self._threads_store.clear()
        self._active_store.clear()
        self._threads = self._threads_store.read()
        self._active_thread_id = self._active_store.read()
        self._heal_active()
        self._notify()
        return self._threads, self._active_thread_id

    def append_message(self, thread_id: str, message: ChatMessage) -> None:
        self._update_thread(
            thread_id,
            lambda thread: {"messages": [*thread.messages, message], "updated_at": message.created_at},
        )

    def patch_message(self, thread_id: str, message_id: str, **fields: Any) -> ChatMessage | None:
        """
        Merge ``fields`` into a message.

        A missing message is a no-op: the thread object stays the same and
        ``updated_at`` is not bumped. Otherwise ``updated_at`` becomes the
        patched ``created_at`` when supplied, else now.

        Returns:
            The patched message, or None if it was not found
        """
        fields.pop("id", None)
        patched: ChatMessage | None = None

        def apply(thread: ChatThread) -> dict[str, Any] | None:
            nonlocal patched
            messages = []
            for message in thread.messages:
                if message.id == message_id:
                    patched = ChatMessage.model_validate({**message.model_dump(), **fields})
                    messages.append(patched)
                else:
                    messages.append(message)
            if patched is None:
                return None
            updated_at = fields["created_at"] if "created_at" in fields else self._clock()
            return {"messages": messages, "updated_at": updated_at}

        self._update_thread(thread_id, apply)
        return patched

    def remove_message(self, thread_id: str, message_id: str) -> None:
        def apply(thread: ChatThread) -> dict[str, Any] | None:
            messages = [message for message in thread.messages if message.id != message_id]
            if len(messages) == len(thread.messages):
                return None
            updated_at = messages[-1].created_at if messages else self._clock()
            return {"messages": messages, "updated_at": updated_at}

        self._update_thread(thread_id, apply)

    def _update_thread(
        self,
        thread_id: str,
        build_update: Callable[[ChatThread], dict[str, Any] | None],
    ) -> None:
        """Replace one thread using the update returned by ``build_update``; None means no change."""
        changed = False
        threads = []
        for thread in self._threads:
            if thread.id == thread_id:
                update = build_update(thread)
                if update is not None:
                    thread = thread.model_copy(update=update)
                    changed = True
            threads.append(thread)
        if changed:
            self._set_threads(threads)

    def _set_threads(self, threads: list[ChatThread]) -> None:
        self._threads = threads
        self._threads_store.write(threads)
        self._heal_active()
        self._notify()

    def _heal_active(self) -> None:
        if self._active_thread_id is None or self.get_thread(self._active_thread_id) is not None:
            return
        healed = self._threads[0].id if self._threads else None
        logger.info("Active thread %s no longer exists, falling back to %s", self._active_thread_id, healed)
        self._active_thread_id = healed
        self._active_store.write(healed)
