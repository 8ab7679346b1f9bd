"""Declared components that are not yet built, with their values and references."""

import itertools
import logging
from typing import Any, Callable, Optional, Union

from assemblage.conversion import convert, zero_value
from assemblage.descriptor import (
    CollectionKind,
    ComponentDescriptor,
    EventSlotSpec,
    NameSlotSpec,
    ReferenceSlotSpec,
    ValueSlotSpec,
)
from assemblage.errors import (
    ComponentReferenceSyntaxError,
    ConstructionFailedError,
    DependencyError,
    InvalidNullableWithDefaultError,
    MissingRequiredParamError,
    MultipleComponentIssuesError,
    UnknownPropertyError,
    type_name,
)
from assemblage.instances import Instance
from assemblage.settings import ContainerSettings
from assemblage.values import NEW_COMPONENT_PREFIX, REFERENCE_PREFIX, ValueStore

__all__ = ["Declaration", "ParamValue", "Reference", "Target", "create_declaration"]

logger = logging.getLogger(__name__)

_anonymous_ids = itertools.count(1)

# None (unresolved), a name hint, or a terminal target
Target = Union[None, str, Instance, "Declaration", list]


class ParamValue:
    """Current raw value of a value slot."""

    def __init__(self, slot: ValueSlotSpec):
        self.slot = slot
        self.value: Any = slot.default

    @property
    def name(self) -> str:
        return self.slot.name

    @property
    def nullable(self) -> bool:
        return self.slot.nullable

    @property
    def is_missing(self) -> bool:
        return (
            self.value is None
            and not self.slot.nullable
            and zero_value(self.slot.annotation) is None
        )

    def __repr__(self):
        return f"ParamValue(name={self.name!r}, value={self.value!r})"


class Reference:
    """A reference slot of one declaration and what it currently points at.

    ``target`` is ``None`` while unresolved, a name hint (``str``) when
    configuration named the target, and afterwards an
    :class:`~assemblage.instances.Instance`, a :class:`Declaration` or, for
    collection slots, a list of those.
    """

    def __init__(self, owner: "Declaration", slot: ReferenceSlotSpec):
        self.owner = owner
        self.slot = slot
        self.target: Target = None
        # Set once resolution has decided, including deciding on None
        self.settled = False
        if isinstance(slot.default, str) and slot.default:
            self.set_hint(slot.default)

    @property
    def name(self) -> str:
        return self.slot.name

    @property
    def type(self) -> type:
        return self.slot.target_type

    @property
    def nullable(self) -> bool:
        return self.slot.nullable

    @property
    def is_collection(self) -> bool:
        return self.slot.collection_kind is not CollectionKind.NONE

    @property
    def is_unresolved(self) -> bool:
        return not self.settled and (self.target is None or isinstance(self.target, str))

    def set_hint(self, name: str):
        name = name.strip()
        if name.startswith(REFERENCE_PREFIX):
            name = name[len(REFERENCE_PREFIX):]
        self.target = name
        self.settled = False

    def resolve_to(self, target: Target):
        self.target = target
        self.settled = True

    def value(self) -> Any:
        """The object to inject, available once every target has been built."""
        target = self.target
        if target is None and self.settled and self.nullable:
            return None
        if isinstance(target, list):
            return self.slot.collection_kind.new(_built_object(item) for item in target)
        if isinstance(target, (Instance, Declaration)):
            return _built_object(target)
        raise DependencyError(
            f"Reference '{self.name}' of {type_name(self.owner.type)} is unresolved",
            self.owner.type,
        )

    def __repr__(self):
        return f"Reference(name={self.name!r}, type={type_name(self.type)}, target={self.target!r})"


def _built_object(target: Union[Instance, "Declaration"]) -> Any:
    if isinstance(target, Instance):
        return target.object
    if not target.is_built:
        raise DependencyError(
            f"Component {target.sorting_id} has not been built", target.type
        )
    return target.instance


class Declaration:
    """A component to be built, with its configured values and references.

    Args:
        descriptor: Describes the component type and how to build it.
        name: Name the component was declared under, or ``None`` when it is
            created implicitly to satisfy a reference.
    """

    def __init__(self, descriptor: ComponentDescriptor, name: Optional[str] = None):
        self.descriptor = descriptor
        self.name = name
        self.sorting_id = name if name else f"{descriptor.type.__name__}{next(_anonymous_ids)}"
        self.params: dict[str, ParamValue] = {
            slot.name.lower(): ParamValue(slot) for slot in descriptor.value_slots
        }
        self.references: dict[str, Reference] = {
            slot.name.lower(): Reference(self, slot) for slot in descriptor.reference_slots
        }
        self.instance: Any = None
        self.is_built = False

    @property
    def type(self) -> type:
        return self.descriptor.type

    def is_assignable_to(self, component_type: type) -> bool:
        return issubclass(self.type, component_type)

    def param(self, name: str) -> Optional[ParamValue]:
        return self.params.get(name.lower())

    def reference(self, name: str) -> Optional[Reference]:
        return self.references.get(name.lower())

    def unresolved_references(self) -> list[Reference]:
        return [r for r in self.references.values() if r.is_unresolved]

    def dependency_ids(self) -> set[str]:
        """Sorting ids of the unbuilt declarations this one references."""
        ids = set()
        for reference in self.references.values():
            targets = reference.target if isinstance(reference.target, list) else [reference.target]
            ids.update(
                target.sorting_id
                for target in targets
                if isinstance(target, Declaration) and not target.is_built
            )
        return ids

    def build(self, consumers_of: Callable[[type], Any]) -> Instance:
        """Build the component and wrap it as an instance named by the sorting id.

        Args:
            consumers_of: Supplies the consumer handle for event slots.

        Raises:
            ConstructionFailedError: If an argument cannot be produced or the
                build function itself raises.
        """
        try:
            arguments = {
                slot.parameter: self._argument(slot, consumers_of)
                for slot in self.descriptor.slots
            }
            self.instance = self.descriptor.build(**arguments)
        except Exception as e:
            raise ConstructionFailedError(self.type, e) from e

        self.is_built = True
        logger.debug("Built component %s as %s", type_name(self.type), self.sorting_id)
        return Instance(self.sorting_id, self.instance)

    def _argument(self, slot, consumers_of: Callable[[type], Any]) -> Any:
        if isinstance(slot, NameSlotSpec):
            return self.name
        if isinstance(slot, EventSlotSpec):
            return consumers_of(slot.event_type)
        if isinstance(slot, ReferenceSlotSpec):
            return self.reference(slot.name).value()

        param = self.param(slot.name)
        if param.value is None:
            if slot.nullable:
                return None
            zero = zero_value(slot.annotation)
            if zero is None:
                raise MissingRequiredParamError(self.type, slot.name)
            return zero
        return convert(self.type, slot.name, param.value, slot.annotation)

    def __repr__(self):
        refs = ", ".join(r.name for r in self.references.values())
        return f"Declaration(name={self.name!r}, type={type_name(self.type)}, refs=[{refs}])"


def create_declaration(
    descriptor: ComponentDescriptor,
    name: Optional[str],
    values: ValueStore,
    settings: ContainerSettings,
) -> Declaration:
    """Create a declaration and apply the configuration that concerns it.

    Every problem found is collected before anything is raised: a single
    problem is wrapped directly, several are reported together.

    Raises:
        ConstructionFailedError: Wrapping the single issue found, or a
            :class:`~assemblage.errors.MultipleComponentIssuesError`.
    """
    component_type = descriptor.type
    issues: list[Exception] = []

    try:
        declaration = Declaration(descriptor, name)
        issues.extend(_check_nullable_with_default(declaration))
        _apply_implicit_overrides(declaration, values)
        issues.extend(_apply_explicit_overrides(declaration, values, settings))
        issues.extend(_check_missing_params(declaration))
    except ConstructionFailedError:
        raise
    except Exception as e:
        issues.append(e)

    if not issues:
        logger.debug("Declared %s as %s", type_name(component_type), declaration.sorting_id)
        return declaration

    if len(issues) == 1:
        raise ConstructionFailedError(component_type, issues[0]) from issues[0]

    multiple = MultipleComponentIssuesError(component_type, issues)
    raise ConstructionFailedError(component_type, multiple) from multiple


def _check_nullable_with_default(declaration: Declaration) -> list[Exception]:
    return [
        InvalidNullableWithDefaultError(declaration.type, param.name, param.value)
        for param in declaration.params.values()
        if param.nullable and param.value is not None
    ]


def _check_missing_params(declaration: Declaration) -> list[Exception]:
    return [
        MissingRequiredParamError(declaration.type, param.name)
        for param in declaration.params.values()
        if param.is_missing
    ]


def _override(declaration: Declaration, key: str, value: Any) -> bool:
    param = declaration.param(key)
    if param is not None:
        param.value = value
        return True

    reference = declaration.reference(key)
    if reference is not None and _is_reference(value):
        reference.set_hint(value)
        return True

    return False


def _is_reference(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(REFERENCE_PREFIX)


def _apply_implicit_overrides(declaration: Declaration, values: ValueStore):
    # Bare keys apply to every declaration with a matching slot
    for key, value in values.items():
        if "." in key or (isinstance(value, str) and value.startswith(NEW_COMPONENT_PREFIX)):
            continue
        if _override(declaration, key, value):
            values.mark_used(key)


def _apply_explicit_overrides(
    declaration: Declaration, values: ValueStore, settings: ContainerSettings
) -> list[Exception]:
    if declaration.name is None:
        return []

    overrides = values.with_prefix(declaration.name.lower() + ".")
    issues: list[Exception] = []

    for key, value in overrides.items():
        if declaration.param(key) is None and declaration.reference(key) is None:
            if settings.strict:
                issues.append(UnknownPropertyError(declaration.type, key, value))
            else:
                logger.warning(
                    "Unused property '%s' in %s", key, type_name(declaration.type)
                )

    issues.extend(
        ComponentReferenceSyntaxError(declaration.type, key, value)
        for key, value in overrides.items()
        if declaration.reference(key) is not None and not _is_reference(value)
    )

    for key, value in overrides.items():
        _override(declaration, key, value)

    return issues
