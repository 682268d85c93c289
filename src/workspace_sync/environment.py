"""
Host environment signals consumed by the live listener.

A host (desktop shell, web bridge, test) tells the listener whether anyone is
looking at the workspace and when the network came back. Each registration
returns a function that removes it.
"""

from typing import Callable, Protocol

Unsubscribe = Callable[[], None]


class EnvironmentSignal(Protocol):
    def is_visible(self) -> bool: ...

    def on_visible(self, callback: Callable[[], None]) -> Unsubscribe: ...

    def on_reconnect(self, callback: Callable[[], None]) -> Unsubscribe: ...


def _noop() -> None:
    pass


class HeadlessEnvironment:
    """Always visible, never reconnects. Default for scripts and the CLI."""

    def is_visible(self) -> bool:
        return True

    def on_visible(self, callback: Callable[[], None]) -> Unsubscribe:
        return _noop

    def on_reconnect(self, callback: Callable[[], None]) -> Unsubscribe:
        return _noop


class ManualEnvironment:
    """Environment driven by explicit calls from the host."""

    def __init__(self, visible: bool = True):
        self._visible = visible
        self._visible_handlers: list[Callable[[], None]] = []
        self._reconnect_handlers: list[Callable[[], None]] = []

    @staticmethod
    def _add(handlers: list[Callable[[], None]], callback: Callable[[], None]) -> Unsubscribe:
        handlers.append(callback)

        def remove() -> None:
            try:
                handlers.remove(callback)
            except ValueError:
                pass
        return remove

    def is_visible(self) -> bool:
        return self._visible

    def on_visible(self, callback: Callable[[], None]) -> Unsubscribe:
        return self._add(self._visible_handlers, callback)

    def on_reconnect(self, callback: Callable[[], None]) -> Unsubscribe:
        return self._add(self._reconnect_handlers, callback)

    @property
    def handler_count(self) -> int:
        return len(self._visible_handlers) + len(self._reconnect_handlers)

    def set_visible(self, visible: bool) -> None:
        """Update visibility. Only a hidden -> visible transition notifies."""
        was_visible = self._visible
        self._visible = visible
        if visible and not was_visible:
            for handler in list(self._visible_handlers):
                handler()

    def reconnect(self) -> None:
        for handler in list(self._reconnect_handlers):
            handler()
