"""Selection/hover events and per-frame throttling for view handlers."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from traceviz.trace.span_model import Span

T = TypeVar("T")


@dataclass(frozen=True)
class SpanSelected:
    span: Span


@dataclass(frozen=True)
class SpanHovered:
    """Hover change; ``span`` is None when the pointer leaves every span."""

    span: Optional[Span]
    x: float = 0.0
    y: float = 0.0


class EventChannel(Generic[T]):
    """Listener list for one event type."""

    def __init__(self) -> None:
        self._listeners: list[Callable[[T], Any]] = []

    def subscribe(self, listener: Callable[[T], Any]) -> Callable[[], None]:
        """Register a listener; the returned callable removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: T) -> None:
        for listener in list(self._listeners):
            listener(event)

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)


class FrameThrottle:
    """Coalesce calls so the handler runs at most once per frame.

    ``request`` records the latest arguments; ``tick`` (driven by the host's
    frame clock) runs the handler once with them, if anything is pending.
    """

    def __init__(self, handler: Callable[..., Any]) -> None:
        self._handler = handler
        self._pending: Optional[tuple[tuple[Any, ...], dict[str, Any]]] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def request(self, *args: Any, **kwargs: Any) -> None:
        self._pending = (args, kwargs)

    def tick(self) -> bool:
        """Run the pending call. Returns True if the handler ran."""
        if self._pending is None:
            return False
        args, kwargs = self._pending
        self._pending = None
        self._handler(*args, **kwargs)
        return True

    def cancel(self) -> None:
        self._pending = None
