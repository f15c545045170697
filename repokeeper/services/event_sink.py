"""
Event sinks: where clone notifications go.

The service only knows the emit(name, payload) method. The CLI renders
events as a progress bar; an embedding application can pass any callable.
"""

from typing import Any, Callable, Dict, Protocol


class EventSink(Protocol):
    """Anything that accepts named notifications."""

    def emit(self, name: str, payload: Dict[str, Any]) -> None:
        ...


class NullSink:
    """Discards every event."""

    def emit(self, name: str, payload: Dict[str, Any]) -> None:
        pass


class CallbackSink:
    """Forwards events to a callable taking (name, payload)."""

    def __init__(self, callback: Callable[[str, Dict[str, Any]], None]):
        self.callback = callback

    def emit(self, name: str, payload: Dict[str, Any]) -> None:
        self.callback(name, payload)
