"""Markers that tell the container what role each build parameter plays."""

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, TypeVar

__all__ = [
    "Param",
    "Default",
    "Component",
    "Nullable",
    "Name",
    "Event",
    "Observes",
    "factory",
    "tagged",
    "set_metadata",
    "get_metadata",
    "tags_of",
    "is_factory",
    "has_marker",
    "find_marker",
]

T = TypeVar("T")


@dataclass(frozen=True)
class Param:
    """Binds a parameter to a configuration key.

    Used bare (``Annotated[int, Param]``) the parameter's own name is the key.
    """

    name: Optional[str] = None


@dataclass(frozen=True)
class Default:
    """Raw default used when configuration supplies no value."""

    value: Any


class Component:
    """Turns a :class:`Param` into a reference to another component."""


class Nullable:
    """Allows the slot to stay unset, in which case ``None`` is injected."""


class Name:
    """Injects the name the component was declared under."""


@dataclass(frozen=True)
class Event:
    """Injects a consumer handle that fires events of ``event_type``.

    The event type may be omitted when the parameter is annotated as
    ``Callable[[EventType], None]``.
    """

    event_type: Optional[type] = None


class Observes:
    """Marks the single event parameter of an observer method."""


def has_marker(metadata: Iterable[Any], marker: type) -> bool:
    """True if ``marker`` appears in ``metadata`` either bare or instantiated."""
    return any(m is marker or isinstance(m, marker) for m in metadata)


def find_marker(metadata: Iterable[Any], marker: type[T]) -> Optional[T]:
    return next((m for m in metadata if isinstance(m, marker)), None)


def set_metadata(target: T, **kwargs) -> T:
    metadata = dict(get_metadata(target))
    metadata.update(kwargs)
    target.__component_metadata__ = metadata
    return target


def get_metadata(target: Any) -> dict[str, Any]:
    return getattr(target, "__component_metadata__", {})


def tagged(*tags: Any) -> Callable[[T], T]:
    """Attach capability tags to a component type.

    Tagged components can be fetched in bulk with
    :meth:`~assemblage.container.Container.get_tagged`. Subclasses inherit the
    tags of their bases and may add more.

    Example:
        >>> @tagged("color")
        ... class Red:
        ...     pass
    """

    def decorator(target: T) -> T:
        return set_metadata(target, tags=tags_of(target) | frozenset(tags))

    return decorator


def tags_of(target: Any) -> frozenset:
    return get_metadata(target).get("tags", frozenset())


def factory(method: T) -> T:
    """Use a static or class method instead of ``__init__`` to build the component."""
    func = method.__func__ if isinstance(method, (staticmethod, classmethod)) else method
    func.__component_factory__ = True
    return method


def is_factory(member: Any) -> bool:
    func = member.__func__ if isinstance(member, (staticmethod, classmethod)) else member
    return getattr(func, "__component_factory__", False) is True
