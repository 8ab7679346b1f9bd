"""Component descriptors: the slots a component's build function expects."""

import collections
import collections.abc
import inspect
import threading
import types
import weakref
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Annotated,
    Any,
    Callable,
    Optional,
    Union,
    get_args,
    get_origin,
    get_type_hints,
)

from assemblage.errors import InvalidConstructorError, InvalidEventParameterError
from assemblage.markers import (
    Component,
    Default,
    Event,
    Name,
    Nullable,
    Param,
    find_marker,
    has_marker,
    is_factory,
    tags_of,
)

__all__ = [
    "CollectionKind",
    "ValueSlotSpec",
    "ReferenceSlotSpec",
    "NameSlotSpec",
    "EventSlotSpec",
    "SlotSpec",
    "ComponentDescriptor",
    "describe",
]


class CollectionKind(Enum):
    NONE = "none"
    LIST = "list"
    SET = "set"
    QUEUE = "queue"

    def new(self, items=()):
        """Create a collection of this kind holding ``items``."""
        if self is CollectionKind.SET:
            return set(items)
        if self is CollectionKind.QUEUE:
            return collections.deque(items)
        return list(items)


_COLLECTION_ORIGINS = {
    list: CollectionKind.LIST,
    collections.abc.Sequence: CollectionKind.LIST,
    collections.abc.MutableSequence: CollectionKind.LIST,
    collections.abc.Collection: CollectionKind.LIST,
    collections.abc.Iterable: CollectionKind.LIST,
    set: CollectionKind.SET,
    frozenset: CollectionKind.SET,
    collections.abc.Set: CollectionKind.SET,
    collections.abc.MutableSet: CollectionKind.SET,
    collections.deque: CollectionKind.QUEUE,
}


@dataclass(frozen=True)
class ValueSlotSpec:
    """A simple typed configuration value.

    Attributes:
        name: Configuration key, matched case-insensitively.
        annotation: Declared type used to convert the raw value.
        default: Raw default used when configuration supplies nothing.
        nullable: Whether the slot may stay unset.
        parameter: Keyword the value is passed under; defaults to ``name``.
    """

    name: str
    annotation: Any = None
    default: Any = None
    nullable: bool = False
    parameter: Optional[str] = None

    def __post_init__(self):
        if self.parameter is None:
            object.__setattr__(self, "parameter", self.name)


@dataclass(frozen=True)
class ReferenceSlotSpec:
    """A dependency on another component, scalar or collection.

    Attributes:
        name: Configuration key, matched case-insensitively.
        target_type: Type every referenced component must be an instance of.
        collection_kind: Whether a single component or a collection is injected.
        default: Optional name hint (``"home"`` or ``"@home"``) used when
            configuration supplies none.
        nullable: If True and nothing matches by type, ``None`` is injected
            instead of creating a component.
        parameter: Keyword the value is passed under; defaults to ``name``.
    """

    name: str
    target_type: type
    collection_kind: CollectionKind = CollectionKind.NONE
    default: Optional[str] = None
    nullable: bool = False
    parameter: Optional[str] = None

    def __post_init__(self):
        if self.parameter is None:
            object.__setattr__(self, "parameter", self.name)


@dataclass(frozen=True)
class NameSlotSpec:
    """Receives the name the component was declared under."""

    parameter: str


@dataclass(frozen=True)
class EventSlotSpec:
    """Receives a consumer handle bound to ``event_type``."""

    parameter: str
    event_type: type


SlotSpec = Union[ValueSlotSpec, ReferenceSlotSpec, NameSlotSpec, EventSlotSpec]


@dataclass(frozen=True)
class ComponentDescriptor:
    """Everything needed to declare and build one kind of component.

    Attributes:
        type: The type of the object ``build`` produces.
        build: Callable invoked with one keyword argument per slot.
        slots: Slots in the order the component declared them.
        tags: Capability tags carried by the component type.
    """

    type: type
    build: Callable[..., Any]
    slots: tuple = ()
    tags: frozenset = field(default_factory=frozenset)

    @property
    def value_slots(self) -> list[ValueSlotSpec]:
        return [slot for slot in self.slots if isinstance(slot, ValueSlotSpec)]

    @property
    def reference_slots(self) -> list[ReferenceSlotSpec]:
        return [slot for slot in self.slots if isinstance(slot, ReferenceSlotSpec)]


_descriptors: "weakref.WeakKeyDictionary[Any, ComponentDescriptor]" = weakref.WeakKeyDictionary()
_descriptors_lock = threading.Lock()


def describe(target: Any) -> ComponentDescriptor:
    """Build a :class:`ComponentDescriptor` from a class or factory function.

    For a class, a static or class method decorated with
    :func:`~assemblage.markers.factory` is preferred over the constructor. A
    plain function must annotate its return type, which becomes the
    component type.

    Args:
        target: The class or function to analyse.

    Returns:
        The descriptor, cached per target.

    Raises:
        InvalidConstructorError: If a parameter carries no role marker or a
            function has no return annotation.
        InvalidEventParameterError: If an event parameter names no event class.
    """
    with _descriptors_lock:
        cached = _descriptors.get(target)
    if cached is not None:
        return cached

    descriptor = _describe(target)
    with _descriptors_lock:
        _descriptors[target] = descriptor
    return descriptor


def _describe(target: Any) -> ComponentDescriptor:
    if inspect.isclass(target):
        factory_method = _find_factory_method(target)
        if factory_method is not None:
            return_type = get_type_hints(factory_method).get("return")
            component_type = return_type if inspect.isclass(return_type) else target
            return ComponentDescriptor(
                component_type,
                factory_method,
                _get_slots(target, factory_method),
                tags_of(component_type),
            )
        return ComponentDescriptor(
            target, target, _get_slots(target, target), tags_of(target)
        )

    if callable(target):
        return_type = get_type_hints(target).get("return")
        if not inspect.isclass(return_type):
            raise InvalidConstructorError(
                target, "return", "must be annotated with the component type"
            )
        return ComponentDescriptor(
            return_type, target, _get_slots(target, target), tags_of(return_type)
        )

    raise InvalidConstructorError(target, "-", "is not a class or function")


def _find_factory_method(cls: type) -> Optional[Callable]:
    names = sorted(
        name
        for name in dir(cls)
        if not name.startswith("__")
        and isinstance(inspect.getattr_static(cls, name, None), (staticmethod, classmethod))
        and is_factory(inspect.getattr_static(cls, name))
    )
    return getattr(cls, names[0]) if names else None


def _get_slots(owner: Any, func: Callable) -> tuple:
    """Turn each parameter of ``func`` into a slot spec.

    Example:
        >>> def make(name: Annotated[str, Name],
        ...          db: Annotated[Database, Param("db"), Component]) -> Service:
        ...     pass
        >>> _get_slots(make, make)
        (NameSlotSpec('name'), ReferenceSlotSpec('db', Database, ...))
    """
    signature = inspect.signature(func)
    hints_source = func.__init__ if inspect.isclass(func) else func
    hints = get_type_hints(hints_source, include_extras=True)
    return tuple(
        _make_slot(owner, parameter, hints.get(name))
        for name, parameter in signature.parameters.items()
    )


def _make_slot(owner: Any, parameter: inspect.Parameter, annotation: Any) -> SlotSpec:
    if parameter.kind in (parameter.VAR_POSITIONAL, parameter.VAR_KEYWORD):
        raise InvalidConstructorError(owner, parameter.name, "must not be variadic")

    # Python 3.10 wraps hints of None-defaulted parameters in Optional
    if get_origin(_strip_optional(annotation)) is Annotated:
        annotation = _strip_optional(annotation)
    if annotation is None or get_origin(annotation) is not Annotated:
        raise InvalidConstructorError(owner, parameter.name)

    base_type, *metadata = get_args(annotation)

    if has_marker(metadata, Name):
        return NameSlotSpec(parameter.name)

    if has_marker(metadata, Event):
        return EventSlotSpec(
            parameter.name,
            _event_type(owner, parameter.name, base_type, find_marker(metadata, Event)),
        )

    is_reference = has_marker(metadata, Component)
    if not (is_reference or has_marker(metadata, Param)):
        raise InvalidConstructorError(owner, parameter.name)

    param = find_marker(metadata, Param)
    slot_name = param.name if param is not None and param.name else parameter.name
    default_marker = find_marker(metadata, Default)
    if default_marker is not None:
        default = default_marker.value
    elif parameter.default is not inspect.Parameter.empty:
        default = parameter.default
    else:
        default = None
    nullable = has_marker(metadata, Nullable) or parameter.default is None
    declared_type = _strip_optional(base_type)

    if is_reference:
        target_type, kind = _reference_target(owner, parameter.name, declared_type)
        return ReferenceSlotSpec(
            slot_name, target_type, kind, default, nullable, parameter.name
        )

    return ValueSlotSpec(slot_name, declared_type, default, nullable, parameter.name)


def _strip_optional(annotation: Any) -> Any:
    if get_origin(annotation) in (Union, types.UnionType):
        remaining = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(remaining) == 1:
            return remaining[0]
    return annotation


def _reference_target(owner: Any, parameter: str, annotation: Any) -> tuple[type, CollectionKind]:
    kind = _COLLECTION_ORIGINS.get(get_origin(annotation), CollectionKind.NONE)
    target = annotation
    if kind is not CollectionKind.NONE:
        args = get_args(annotation)
        target = args[0] if args else object

    if target is Any:
        target = object
    if not inspect.isclass(target):
        raise InvalidConstructorError(
            owner, parameter, f"must reference a class, not {target!r}"
        )
    return target, kind


def _event_type(owner: Any, parameter: str, annotation: Any, marker: Optional[Event]) -> type:
    if marker is not None and marker.event_type is not None:
        event_type = marker.event_type
    elif get_origin(annotation) is collections.abc.Callable:
        arguments, _ = get_args(annotation)
        if not isinstance(arguments, list) or len(arguments) != 1:
            raise InvalidEventParameterError(
                owner, parameter, "consumer must accept exactly one event"
            )
        event_type = arguments[0]
    else:
        raise InvalidEventParameterError(
            owner, parameter, "annotate as Callable[[EventType], None] or use Event(EventType)"
        )

    if not inspect.isclass(event_type):
        raise InvalidEventParameterError(
            owner, parameter, f"event type must be a class, not {event_type!r}"
        )
    return event_type
