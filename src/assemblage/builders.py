import enum
import itertools
from typing import Any, Generic, Optional, TypeVar

from assemblage.container import Container
from assemblage.errors import MissingComponentDeclarationError, type_name
from assemblage.registry import ComponentTypeRegistry
from assemblage.settings import ContainerSettings
from assemblage.values import NEW_COMPONENT_PREFIX, REFERENCE_PREFIX

__all__ = ["ContainerBuilder", "DefinitionBuilder", "InstanceBuilder"]

T = TypeVar("T")


class ContainerBuilder:
    """Collects component definitions and ready-made objects for a new container.

    Args:
        types: Registry shared with the built container; a new one by default.
    """

    def __init__(self, types: Optional[ComponentTypeRegistry] = None):
        self.types = types or ComponentTypeRegistry()
        self._refs = itertools.count(101)
        self._properties: dict[str, Any] = {}
        self._objects: dict[str, Any] = {}
        self._definitions: list["DefinitionBuilder"] = []
        self._strict = True

    def definition(self, component_type: type, name: Optional[str] = None) -> "DefinitionBuilder":
        """Declare a component of ``component_type``, named ``name`` or a generated name."""
        self._validate()
        definition = DefinitionBuilder(self, component_type, name or f"instance{self._next_ref()}")
        self._definitions.append(definition)
        return definition

    def warn_on_unused_properties(self) -> "ContainerBuilder":
        """Log configuration nothing uses instead of failing."""
        self._strict = False
        return self

    def add(self, value: Any) -> "ContainerBuilder":
        """Offer an object that components may use, found by type only."""
        if value is None:
            raise ValueError("value must not be None")
        return self.add_named(f"unnamed${type(value).__name__}{self._next_ref()}", value)

    def add_named(self, name: str, value: Any) -> "ContainerBuilder":
        if name is None or value is None:
            raise ValueError("name and value must not be None")
        self._objects[name] = value
        return self

    def build(self) -> Container:
        self._validate()
        container = Container(settings=ContainerSettings(strict=self._strict), types=self.types)
        for name, value in self._objects.items():
            container.add(name, value)
        container.load(self._properties)
        return container

    def _next_ref(self) -> int:
        return next(self._refs)

    def _validate(self):
        # objects given to comp() become named instances only once validated
        for definition in self._definitions:
            definition._validate()


class DefinitionBuilder:
    """Configures one component declared through :meth:`ContainerBuilder.definition`."""

    def __init__(self, builder: ContainerBuilder, component_type: type, name: str):
        if component_type is None or name is None:
            raise ValueError("component_type and name must not be None")

        self._builder = builder
        self.descriptor = builder.types.descriptor_for(component_type)
        builder.types.register(self.descriptor, type_name(component_type))
        self.name = name
        self._required: dict[str, Any] = {}
        builder._properties[name] = NEW_COMPONENT_PREFIX + type_name(component_type)

    @property
    def type(self) -> type:
        return self.descriptor.type

    def param(self, name: str, value: Any) -> "DefinitionBuilder":
        """Set a declared value slot."""
        if name is None or value is None:
            raise ValueError("name and value must not be None")
        self._builder._properties[f"{self.name}.{name}"] = (
            value.name if isinstance(value, enum.Enum) else value
        )
        return self

    def comp(self, name: str, value: Any) -> "DefinitionBuilder":
        """Set a declared reference slot.

        Args:
            name: The reference slot.
            value: Either the name of another component, or the object to
                inject. Objects must be accepted by one of the component's
                reference slots unless unused properties only warn.
        """
        if name is None or value is None:
            raise ValueError("name and value must not be None")

        if isinstance(value, str):
            ref_name = value[1:] if value.startswith(REFERENCE_PREFIX) else value
        else:
            ref_name = f"unnamed${name}{self._builder._next_ref()}"
            self._required[ref_name] = value

        self._builder._properties[f"{self.name}.{name}"] = REFERENCE_PREFIX + ref_name
        return self

    def optional(self, name: str, value: Any) -> "DefinitionBuilder":
        """Set ``name`` if the component declares it; ignored otherwise."""
        lowered = name.lower()
        if any(slot.name.lower() == lowered for slot in self.descriptor.value_slots):
            return self.param(name, value)
        if any(slot.name.lower() == lowered for slot in self.descriptor.reference_slots):
            return self.comp(name, value)
        return self

    def definition(self, component_type: type, name: Optional[str] = None) -> "DefinitionBuilder":
        return self._builder.definition(component_type, name)

    def build(self) -> Container:
        return self._builder.build()

    def _validate(self):
        for ref_name, value in self._required.items():
            accepted = any(
                isinstance(value, slot.target_type)
                for slot in self.descriptor.reference_slots
            )
            if self._builder._strict and not accepted:
                raise MissingComponentDeclarationError(self.type, type(value))
            self._builder.add_named(ref_name, value)
        self._required.clear()


class InstanceBuilder(Generic[T]):
    """Builds a single component, with its own private container.

    Example:
        >>> person = (
        ...     InstanceBuilder(Person)
        ...     .param("age", 37)
        ...     .comp("address", address)
        ...     .build()
        ... )
    """

    def __init__(
        self,
        component_type: type[T],
        name: str = "instance",
        types: Optional[ComponentTypeRegistry] = None,
    ):
        self._builder = ContainerBuilder(types)
        self._definition = self._builder.definition(component_type, name)

    def warn_on_unused_properties(self) -> "InstanceBuilder[T]":
        self._builder.warn_on_unused_properties()
        return self

    def param(self, name: str, value: Any) -> "InstanceBuilder[T]":
        self._definition.param(name, value)
        return self

    def comp(self, name: str, value: Any) -> "InstanceBuilder[T]":
        self._definition.comp(name, value)
        return self

    def optional(self, name: str, value: Any) -> "InstanceBuilder[T]":
        self._definition.optional(name, value)
        return self

    def add(self, value: Any) -> "InstanceBuilder[T]":
        self._builder.add(value)
        return self

    def add_named(self, name: str, value: Any) -> "InstanceBuilder[T]":
        self._builder.add_named(name, value)
        return self

    def build(self) -> T:
        container = self._definition.build()
        return container.get(self._definition.type, self._definition.name)
