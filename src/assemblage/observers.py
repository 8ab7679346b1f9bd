"""Observer registration and synchronous event dispatch.

Any object can observe events by declaring public methods whose single
parameter is marked with :class:`~assemblage.markers.Observes`::

    class Audit:
        def on_added(self, event: Annotated[ComponentAdded, Observes]):
            ...

        def before_added(self, event: Annotated[BeforeEvent[ComponentAdded], Observes]):
            ...

For each event type the manager composes one invocation chain: every
observer's before handlers, then every plain handler, then every after
handler, each tier in registration order. An observer with no handler for the
exact event type is matched through the event's base classes. Chains are
cached per event type and discarded whenever an observer is added or removed.

A failing handler does not stop the chain. It is logged and reported through
an :class:`~assemblage.events.ObserverFailed` event, at most once per handler
for each dispatch on a given thread.
"""

import enum
import inspect
import logging
import threading
import weakref
from typing import Annotated, Any, Callable, Generic, Optional, TypeVar, get_args, get_origin, get_type_hints

from assemblage.errors import InvalidObserverError, type_name
from assemblage.events import (
    BOOKKEEPING_EVENTS,
    AfterEvent,
    BeforeEvent,
    ObserverAdded,
    ObserverFailed,
    ObserverRemoved,
    original_event,
)
from assemblage.markers import Observes, has_marker

__all__ = [
    "ObserverManager",
    "Observer",
    "EventConsumer",
    "Invocation",
    "InvocationList",
    "MethodInvocation",
    "Phase",
]

logger = logging.getLogger(__name__)

E = TypeVar("E")


class Phase(enum.Enum):
    BEFORE = "before"
    INVOKE = "invoke"
    AFTER = "after"


class Invocation:
    """Something that can be invoked with an event."""

    def invoke(self, event: Any):
        raise NotImplementedError

    def and_then(self, after: "Invocation") -> "Invocation":
        if after is IGNORE:
            return self
        invocations = InvocationList()
        invocations.add(self)
        invocations.add(after)
        return invocations


class _Ignore(Invocation):
    def invoke(self, event: Any):
        if not isinstance(event, BOOKKEEPING_EVENTS):
            logger.info("No observers for event %s", type_name(type(event)))

    def and_then(self, after: Invocation) -> Invocation:
        return after

    def __repr__(self):
        return "IGNORED"


IGNORE = _Ignore()


class InvocationList(Invocation):
    """Invocations run one after another."""

    def __init__(self):
        self.invocations: list[Invocation] = []

    def and_then(self, after: Invocation) -> Invocation:
        self.add(after)
        return self

    def add(self, invocation: Invocation):
        if invocation is IGNORE:
            return
        if isinstance(invocation, InvocationList):
            self.invocations.extend(invocation.invocations)
        else:
            self.invocations.append(invocation)

    def invoke(self, event: Any):
        for invocation in self.invocations:
            invocation.invoke(event)

    def __repr__(self):
        return f"InvocationList(invocations={len(self.invocations)}) {self.invocations!r}"


class MethodInvocation(Invocation):
    """Calls one handler method of one observer."""

    def __init__(self, manager: "ObserverManager", observer: Any, method: Callable):
        self._manager = manager
        self.observer = observer
        self.method = method

    def invoke(self, event: Any):
        try:
            self.method(event)
        except Exception as e:
            self._manager._report_failure(self, event, e)

    def __repr__(self):
        return f"{type(self.observer).__qualname__}.{self.method.__name__}"


class BeforeInvocation(MethodInvocation):
    def invoke(self, event: Any):
        super().invoke(BeforeEvent(event))


class AfterInvocation(MethodInvocation):
    def invoke(self, event: Any):
        super().invoke(AfterEvent(event))


_PHASE_INVOCATIONS = {
    Phase.BEFORE: BeforeInvocation,
    Phase.INVOKE: MethodInvocation,
    Phase.AFTER: AfterInvocation,
}


class Observer:
    """An observed object and its handlers, keyed by phase and event type.

    Raises:
        InvalidObserverError: If a method marked as a handler is malformed.
    """

    def __init__(self, manager: "ObserverManager", target: Any):
        if target is None:
            raise ValueError("observer cannot be None")
        self.target = target
        self._handlers: dict[Phase, dict[type, Invocation]] = {phase: {} for phase in Phase}

        for name, func in _candidate_methods(type(target)):
            found = _handler_signature(type(target), name, func)
            if found is None:
                continue
            phase, event_type = found
            self._handlers[phase][event_type] = _PHASE_INVOCATIONS[phase](
                manager, target, getattr(target, name)
            )

    @property
    def has_handlers(self) -> bool:
        return any(self._handlers.values())

    def get(self, phase: Phase, event_type: type) -> Invocation:
        """The handler for ``event_type`` or its nearest base class, else IGNORE."""
        handlers = self._handlers[phase]
        for candidate in event_type.__mro__:
            invocation = handlers.get(candidate)
            if invocation is not None:
                return invocation
        return IGNORE

    def __repr__(self):
        return f"Observer({self.target!r})"


def _candidate_methods(cls: type):
    for name in dir(cls):
        if name.startswith("__"):
            continue
        attribute = inspect.getattr_static(cls, name, None)
        if isinstance(attribute, (staticmethod, classmethod)):
            if _observes_parameters(attribute.__func__):
                raise InvalidObserverError(cls, name, "must not be static")
            continue
        if inspect.isfunction(attribute):
            yield name, attribute


def _observes_parameters(func: Callable) -> list[tuple[str, Any]]:
    try:
        hints = get_type_hints(func, include_extras=True)
    except (NameError, TypeError):
        logger.debug("Skipping %s: annotations cannot be evaluated", func.__qualname__)
        return []
    return [
        (name, hint)
        for name, hint in hints.items()
        if name != "return"
        and get_origin(hint) is Annotated
        and has_marker(get_args(hint)[1:], Observes)
    ]


def _handler_signature(cls: type, name: str, func: Callable) -> Optional[tuple[Phase, type]]:
    observed = _observes_parameters(func)
    if not observed:
        return None

    if name.startswith("_"):
        raise InvalidObserverError(cls, name, "must be public")

    parameters = list(inspect.signature(func).parameters.values())[1:]
    if len(parameters) != 1:
        raise InvalidObserverError(cls, name, "must have only 1 parameter")

    event_type = get_args(observed[0][1])[0]
    origin = get_origin(event_type)
    if event_type in (BeforeEvent, AfterEvent):
        raise InvalidObserverError(
            cls, name, f"{event_type.__name__} is missing its event type"
        )
    if origin in (BeforeEvent, AfterEvent):
        phase = Phase.BEFORE if origin is BeforeEvent else Phase.AFTER
        event_type = get_args(event_type)[0]
    else:
        phase = Phase.INVOKE

    if event_type is Any:
        event_type = object
    if not inspect.isclass(event_type):
        raise InvalidObserverError(
            cls, name, f"event type must be a class, not {event_type!r}"
        )
    return phase, event_type


class EventConsumer(Generic[E]):
    """Long-lived callable that fires events of one type.

    The invocation chain is looked up on first use and looked up again after
    any change to the observers, so the handle may be taken before the
    observers that will receive its events are registered.
    """

    def __init__(self, manager: "ObserverManager", event_type: type[E]):
        if event_type is None:
            raise ValueError("event_type cannot be None")
        self._manager = manager
        self.event_type = event_type
        self._invocation: Optional[Invocation] = None

    def __call__(self, event: E):
        self._manager._enter()
        try:
            self._resolve().invoke(event)
        finally:
            self._manager._exit()

    def clear(self):
        self._invocation = None

    def _resolve(self) -> Invocation:
        invocation = self._invocation
        if invocation is None:
            manager = self._manager
            generation = manager._generation
            invocation = manager._invocation_for(self.event_type)
            with manager._lock:
                if generation == manager._generation:
                    self._invocation = invocation
        return invocation

    def __repr__(self):
        return f"EventConsumer(event_type={type_name(self.event_type)}) {self._resolve()!r}"


class ObserverManager:
    """Registry of observers and dispatcher of events to them."""

    def __init__(self):
        self._observers: tuple[Observer, ...] = ()
        self._lock = threading.RLock()
        self._invocations: dict[type, Invocation] = {}
        self._generation = 0
        self._consumers: "weakref.WeakSet[EventConsumer]" = weakref.WeakSet()
        self._local = threading.local()

    @property
    def observers(self) -> list[Any]:
        return [observer.target for observer in self._observers]

    def add_observer(self, observer: Any) -> bool:
        """Register ``observer`` if it has handlers and is not registered yet.

        Returns:
            True if the observer was added.

        Raises:
            InvalidObserverError: If one of its handlers is malformed.
        """
        wrapper = Observer(self, observer)
        if not wrapper.has_handlers:
            return False

        with self._lock:
            if any(o.target is observer for o in self._observers):
                return False
            self._observers = self._observers + (wrapper,)
            self._invalidate()

        logger.debug("Added observer %r", observer)
        self.fire_event(ObserverAdded(observer))
        return True

    def remove_observer(self, observer: Any) -> bool:
        if observer is None:
            raise ValueError("observer cannot be None")

        with self._lock:
            remaining = tuple(o for o in self._observers if o.target is not observer)
            if len(remaining) == len(self._observers):
                return False
            self._observers = remaining
            self._invalidate()

        logger.debug("Removed observer %r", observer)
        self.fire_event(ObserverRemoved(observer))
        return True

    def destroy(self):
        """Remove every observer."""
        for observer in self._observers:
            self.remove_observer(observer.target)

    def fire_event(self, event: E) -> E:
        """Dispatch ``event`` to the handlers for its type, synchronously.

        Returns:
            The event itself.
        """
        if event is None:
            raise ValueError("event cannot be None")

        self._enter()
        try:
            self._invocation_for(type(event)).invoke(event)
        finally:
            self._exit()
        return event

    def consumers_of(self, event_type: type[E]) -> EventConsumer[E]:
        consumer = EventConsumer(self, event_type)
        self._consumers.add(consumer)
        return consumer

    def _invalidate(self):
        self._generation += 1
        self._invocations.clear()
        for consumer in list(self._consumers):
            consumer.clear()
        logger.debug("Cleared cached invocation chains")

    def _invocation_for(self, event_type: type) -> Invocation:
        invocation = self._invocations.get(event_type)
        if invocation is not None:
            return invocation

        generation = self._generation
        invocation = self._build_invocation(event_type)
        with self._lock:
            # drop chains built from an observer set that has since changed
            if generation == self._generation:
                self._invocations[event_type] = invocation
        return invocation

    def _build_invocation(self, event_type: type) -> Invocation:
        observers = self._observers
        invocation: Invocation = IGNORE
        for phase in (Phase.BEFORE, Phase.INVOKE, Phase.AFTER):
            for observer in observers:
                invocation = invocation.and_then(observer.get(phase, event_type))
        return invocation

    def _enter(self):
        self._local.depth = getattr(self._local, "depth", 0) + 1

    def _exit(self):
        self._local.depth -= 1
        if self._local.depth == 0:
            self._local.seen = set()

    def _seen(self) -> set:
        seen = getattr(self._local, "seen", None)
        if seen is None:
            seen = self._local.seen = set()
        return seen

    def _report_failure(self, invocation: MethodInvocation, event: Any, error: Exception):
        seen = self._seen()
        if invocation in seen:
            return
        seen.add(invocation)

        logger.exception("Error invoking %r on %r", invocation, invocation.observer)
        source = original_event(event)
        if not isinstance(source, ObserverFailed):
            self.fire_event(
                ObserverFailed(invocation.observer, invocation.method, source, error)
            )
