"""Events fired by the container itself, and the before/after phase wrappers."""

from dataclasses import dataclass, field
from typing import Any, Generic, Mapping, TypeVar

__all__ = [
    "ComponentAdded",
    "ObserverAdded",
    "ObserverRemoved",
    "ObserverFailed",
    "ContainerLoaded",
    "ContainerClosed",
    "BeforeEvent",
    "AfterEvent",
    "BOOKKEEPING_EVENTS",
    "original_event",
]

E = TypeVar("E")


@dataclass(frozen=True)
class ComponentAdded:
    type: type
    component: Any


@dataclass(frozen=True)
class ObserverAdded:
    observer: Any


@dataclass(frozen=True)
class ObserverRemoved:
    observer: Any


@dataclass(frozen=True)
class ObserverFailed:
    """A handler raised while processing ``event``.

    Attributes:
        observer: The object whose handler failed.
        method: The failing handler.
        event: The event being dispatched, unwrapped from any phase wrapper.
        error: What the handler raised.
    """

    observer: Any
    method: Any
    event: Any
    error: BaseException


@dataclass(frozen=True)
class ContainerLoaded:
    properties: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ContainerClosed:
    pass


@dataclass(frozen=True)
class BeforeEvent(Generic[E]):
    """Delivered to ``BeforeEvent[E]`` handlers ahead of the plain ``E`` handlers."""

    event: E


@dataclass(frozen=True)
class AfterEvent(Generic[E]):
    """Delivered to ``AfterEvent[E]`` handlers once the plain ``E`` handlers ran."""

    event: E


BOOKKEEPING_EVENTS = (
    ComponentAdded,
    ObserverAdded,
    ObserverRemoved,
    ObserverFailed,
    ContainerLoaded,
    ContainerClosed,
    BeforeEvent,
    AfterEvent,
)


def original_event(event: Any) -> Any:
    """Strip a before/after wrapper, if any."""
    if isinstance(event, (BeforeEvent, AfterEvent)):
        return event.event
    return event
