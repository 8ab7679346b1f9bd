"""Resolution of declaration references to instances and other declarations."""

import logging
import re
from typing import Callable, Union

from assemblage.declaration import Declaration, Reference
from assemblage.errors import (
    ConstructionFailedError,
    DependencyError,
    NamedComponentNotFoundError,
    type_name,
)
from assemblage.instances import Instance, InstanceRegistry

__all__ = ["ReferenceResolver"]

logger = logging.getLogger(__name__)

_NAME_SEPARATOR = re.compile(r"\s*@\s*")


class ReferenceResolver:
    """Resolves the references of pending declarations.

    Args:
        instances: Already built instances, preferred over declarations.
        declare: Creates a declaration for a type that nothing provides.
    """

    def __init__(
        self,
        instances: InstanceRegistry,
        declare: Callable[[type], Declaration],
    ):
        self._instances = instances
        self._declare = declare

    def resolve_all(self, declarations: list[Declaration]):
        """Resolve every declaration; auto-created declarations are appended to the list."""
        for declaration in list(declarations):
            self.resolve(declaration, declarations)

    def resolve(self, declaration: Declaration, declarations: list[Declaration]):
        """Resolve the unresolved references of one declaration.

        Raises:
            ConstructionFailedError: For the declaration's type, caused by
                whatever prevented a reference from resolving.
        """
        for reference in declaration.unresolved_references():
            try:
                if isinstance(reference.target, str):
                    self._resolve_by_type_and_name(reference, declarations)
                elif reference.target is None:
                    self._resolve_by_type(reference, declarations)
                else:
                    raise DependencyError(
                        f"Reference {reference.name} should be unresolved at this stage",
                        declaration.type,
                    )
            except Exception as e:
                raise ConstructionFailedError(declaration.type, e) from e

    def _resolve_by_type(self, reference: Reference, declarations: list[Declaration]):
        usable_instances = self._instances.assignable_to(reference.type)
        usable_declarations = [
            d for d in declarations if d.is_assignable_to(reference.type)
        ]

        if reference.is_collection:
            reference.resolve_to(usable_instances + usable_declarations)
            logger.debug(
                "Resolved %r to %d components by type",
                reference,
                len(reference.target),
            )
            return

        if usable_instances:
            reference.resolve_to(usable_instances[0])
        elif usable_declarations:
            reference.resolve_to(usable_declarations[0])
        elif reference.nullable:
            # nullable references are never created implicitly
            reference.resolve_to(None)
        else:
            declaration = self._declare(reference.type)
            logger.debug(
                "Creating %s for reference '%s' of %s",
                declaration.sorting_id,
                reference.name,
                type_name(reference.owner.type),
            )
            reference.resolve_to(declaration)
            declarations.append(declaration)
            self.resolve(declaration, declarations)
            return

        logger.debug("Resolved %r by type", reference)

    def _resolve_by_type_and_name(
        self, reference: Reference, declarations: list[Declaration]
    ):
        if reference.is_collection:
            names = [name for name in _NAME_SEPARATOR.split(reference.target) if name]
            reference.resolve_to(
                [self._find_named(reference, name, declarations) for name in names]
            )
        else:
            reference.resolve_to(
                self._find_named(reference, reference.target, declarations)
            )
        logger.debug("Resolved %r by name", reference)

    def _find_named(
        self, reference: Reference, name: str, declarations: list[Declaration]
    ) -> Union[Instance, Declaration]:
        instance = self._instances.named(reference.type, name)
        if instance is not None:
            return instance

        lowered = name.lower()
        for declaration in declarations:
            if (
                declaration.is_assignable_to(reference.type)
                and declaration.name is not None
                and declaration.name.lower() == lowered
            ):
                return declaration

        raise NamedComponentNotFoundError(name, reference.type)
