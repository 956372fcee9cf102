"""
Change notification for the registries.

Consumers subscribe a callback and re-read the full snapshot when notified.
"""

import logging
from typing import Callable

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class Observable:
    """Mixin holding a list of change listeners."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called after every mutation.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception as e:  # pylint: disable=broad-except
                logger.error("Change listener %r failed: %s", listener, e, exc_info=True)
