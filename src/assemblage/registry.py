import importlib
import inspect
import logging
import threading
from typing import Any, Callable, Optional

from assemblage.descriptor import ComponentDescriptor, describe
from assemblage.errors import MissingComponentTypeError, type_name

__all__ = ["ComponentTypeRegistry", "load_type", "inferred_name"]

logger = logging.getLogger(__name__)


def inferred_name(target: Any) -> str:
    """Derive a registration name from a class or function name.

    A ``make_`` prefix is removed from function names.

    Example:
        >>> inferred_name(Database)       # Returns "Database"
        >>> inferred_name(make_database)  # Returns "database"
    """
    if inspect.isclass(target):
        return target.__name__

    if target.__name__.startswith("make_"):
        return target.__name__[5:]
    else:
        return target.__name__


class ComponentTypeRegistry:
    """Registry of component types known by name."""

    def __init__(self):
        self._by_name: dict[str, ComponentDescriptor] = {}
        self._by_type: dict[type, ComponentDescriptor] = {}
        self._lock = threading.Lock()

    def register(self, descriptor: ComponentDescriptor, name: Optional[str] = None):
        """Register a descriptor explicitly.

        The descriptor becomes reachable under ``name`` (if given), its type's
        simple name and its fully qualified name, all case-insensitively.

        Args:
            descriptor: The descriptor to register.
            name: Optional extra name to register it under.
        """
        names = {descriptor.type.__name__, type_name(descriptor.type)}
        if name:
            names.add(name)

        with self._lock:
            for key in names:
                self._by_name[key.lower()] = descriptor
            self._by_type[descriptor.type] = descriptor

        logger.debug("Registered component type %s as %s", type_name(descriptor.type), sorted(names))

    def provides(self, name: Optional[str] = None) -> Callable:
        """Decorator registering a class or factory function as a component type.

        Args:
            name: Optional name to declare the type under in configuration;
                defaults to the class name, or the function name with any
                ``make_`` prefix removed.

        Example:
            @registry.provides()
            class Address:
                def __init__(self, street: Annotated[str, Param("street")]):
                    ...
        """

        def decorator(obj):
            self.register(describe(obj), name or inferred_name(obj))
            return obj

        return decorator

    def registered(self) -> list[ComponentDescriptor]:
        with self._lock:
            return list(self._by_type.values())

    def descriptor_for(self, component_type: type) -> ComponentDescriptor:
        """Return the registered descriptor for a type, describing it if unregistered."""
        with self._lock:
            descriptor = self._by_type.get(component_type)
        return descriptor if descriptor is not None else describe(component_type)

    def lookup(self, type_string: str) -> ComponentDescriptor:
        """Resolve a ``new://`` type string to a descriptor.

        Registered names win; anything else is imported by qualified name.

        Raises:
            MissingComponentTypeError: If the type cannot be located.
        """
        with self._lock:
            descriptor = self._by_name.get(type_string.strip().lower())
        if descriptor is not None:
            return descriptor
        return self.descriptor_for(load_type(type_string))


def load_type(type_string: str) -> type:
    """Import ``module.Qualname`` and return the named type.

    The longest importable module prefix is used, so nested classes
    (``package.module.Outer.Inner``) resolve too.

    Raises:
        MissingComponentTypeError: If no prefix imports or the remaining
            attribute path does not name a class.
    """
    parts = type_string.strip().split(".")
    cause: Optional[BaseException] = None

    for split in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:split])
        try:
            target: Any = importlib.import_module(module_name)
        except ImportError as e:
            cause = e
            continue

        try:
            for attribute in parts[split:]:
                target = getattr(target, attribute)
        except AttributeError as e:
            raise MissingComponentTypeError(type_string) from e

        if inspect.isclass(target):
            return target
        break

    error = MissingComponentTypeError(type_string)
    if cause is not None:
        raise error from cause
    raise error
