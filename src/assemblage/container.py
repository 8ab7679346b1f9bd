"""The container: loads configuration, builds components and dispatches events.

Configuration is a flat mapping. A key whose value starts with ``new://``
declares a component of the named type under that key; ``<name>.<slot>``
keys configure it::

    container = Container({
        "home": "new://myapp.model.Address",
        "home.street": "823 Elm Street",
        "jane": "new://myapp.model.Person",
        "jane.age": "37",
        "jane.address": "@home",
    })
    jane = container.get(Person)

Loading resolves every reference, orders the declarations so that each is
built after what it references and builds them. If a build fails the load
stops; components built before the failure stay registered.
"""

import logging
from typing import Any, Hashable, Mapping, Optional, TypeVar

from assemblage.declaration import Declaration, create_declaration
from assemblage.dependency_graph import sort_declarations
from assemblage.errors import (
    ConstructionFailedError,
    InvalidConstructorError,
    InvalidEventParameterError,
    NamedComponentNotFoundError,
    UnusedPropertiesError,
    type_name,
)
from assemblage.events import ComponentAdded, ContainerClosed, ContainerLoaded
from assemblage.instances import Instance, InstanceRegistry
from assemblage.observers import EventConsumer, ObserverManager
from assemblage.registry import ComponentTypeRegistry
from assemblage.resolver import ReferenceResolver
from assemblage.settings import ContainerSettings
from assemblage.values import ValueStore, new_components

__all__ = ["Container"]

logger = logging.getLogger(__name__)

T = TypeVar("T")
E = TypeVar("E")


class Container:
    """A graph of named components built from configuration.

    The container registers itself as the component ``"system"``, so
    components can reference it.

    Args:
        properties: Configuration to load straight away.
        settings: How strictly to treat configuration; strict by default.
        types: Named component types for ``new://`` declarations. Types that
            are not registered are imported by qualified name.
    """

    def __init__(
        self,
        properties: Optional[Mapping[str, Any]] = None,
        settings: Optional[ContainerSettings] = None,
        types: Optional[ComponentTypeRegistry] = None,
    ):
        self.settings = settings or ContainerSettings()
        self.types = types or ComponentTypeRegistry()
        self._values = ValueStore()
        self._instances = InstanceRegistry()
        self._observers = ObserverManager()
        self._resolver = ReferenceResolver(self._instances, self._declare_type)
        self._closed = False

        self.add("system", self)

        if properties:
            self.load(properties)

    def load(self, properties: Mapping[str, Any]):
        """Merge ``properties`` into the configuration and build what they declare.

        Raises:
            ConstructionFailedError: If a declared component cannot be built.
            MissingComponentTypeError: If a ``new://`` type cannot be found.
            UnusedPropertiesError: If configured to fail on unused keys.
        """
        self._values.load(properties)

        declarations = []
        for name, type_string in new_components(properties):
            self._values.mark_used(name)
            declarations.append(self._declare(name, type_string))

        self._build(declarations)
        self._check_unused()

        self.fire_event(ContainerLoaded(dict(properties)))

    def get(self, component_type: type[T], name: Optional[str] = None, create: bool = True) -> Optional[T]:
        """Fetch a component by type, optionally narrowed by name.

        Without a name the first assignable component is returned, or one is
        built if ``create`` is set. With a name the match must be exact.

        Raises:
            NamedComponentNotFoundError: If ``name`` is given and no component
                of that name and type exists.
            ConstructionFailedError: If a component had to be built and failed.
        """
        if name is not None:
            instance = self._instances.named(component_type, name)
            if instance is None:
                raise NamedComponentNotFoundError(name, component_type)
            return instance.object

        assignable = self._instances.assignable_to(component_type)
        if assignable:
            return assignable[0].object

        return self._create(component_type) if create else None

    def get_all(self, component_type: type[T]) -> list[T]:
        return [i.object for i in self._instances.assignable_to(component_type)]

    def get_tagged(self, tag: Hashable) -> list[Any]:
        return [i.object for i in self._instances.tagged(tag)]

    def add(self, name: str, value: Any):
        """Register an already built object under ``name``."""
        self._add_instance(Instance(name, value))

    def fire_event(self, event: E) -> E:
        return self._observers.fire_event(event)

    def consumers_of(self, event_type: type[E]) -> EventConsumer[E]:
        return self._observers.consumers_of(event_type)

    def add_observer(self, observer: Any) -> bool:
        return self._observers.add_observer(observer)

    def remove_observer(self, observer: Any) -> bool:
        return self._observers.remove_observer(observer)

    def close(self):
        if self._closed:
            return
        self._closed = True
        self.fire_event(ContainerClosed())

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _declare(self, name: Optional[str], type_string: str) -> Declaration:
        try:
            descriptor = self.types.lookup(type_string)
        except (InvalidConstructorError, InvalidEventParameterError) as e:
            raise ConstructionFailedError(e.component, e) from e
        return create_declaration(descriptor, name, self._values, self.settings)

    def _declare_type(self, component_type: type) -> Declaration:
        descriptor = self.types.descriptor_for(component_type)
        return create_declaration(descriptor, None, self._values, self.settings)

    def _create(self, component_type: type[T]) -> T:
        try:
            declaration = self._declare_type(component_type)
            self._build([declaration])
            return declaration.instance
        except ConstructionFailedError:
            raise
        except Exception as e:
            raise ConstructionFailedError(component_type, e) from e

    def _build(self, declarations: list[Declaration]):
        if not declarations:
            return

        self._resolver.resolve_all(declarations)

        for declaration in sort_declarations(declarations):
            self._add_instance(declaration.build(self.consumers_of))

    def _add_instance(self, instance: Instance):
        self._instances.add(instance)
        logger.debug(
            "Added component '%s' of type %s",
            instance.name,
            type_name(type(instance.object)),
        )

        self.fire_event(ComponentAdded(type(instance.object), instance.object))
        self.add_observer(instance.object)

    def _check_unused(self):
        unused = self._values.unused()
        if not unused:
            return

        policy = self.settings.unused_policy
        if policy == "error":
            raise UnusedPropertiesError(unused)
        if policy == "warn":
            for key in unused:
                logger.warning("Unused property '%s'", key)
