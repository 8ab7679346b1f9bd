"""Registry of built component instances."""

import threading
from dataclasses import dataclass
from typing import Any, Hashable, Iterator, Optional

from assemblage.markers import tags_of

__all__ = ["Instance", "InstanceRegistry"]


@dataclass(frozen=True, eq=False)
class Instance:
    """A built component and the (lower-cased) name it is known by."""

    name: str
    object: Any

    def __post_init__(self):
        if self.name is None:
            raise ValueError("Instance name cannot be None")
        object.__setattr__(self, "name", self.name.lower())

    def is_assignable_to(self, component_type: type) -> bool:
        return isinstance(self.object, component_type)

    def has_tag(self, tag: Hashable) -> bool:
        return tag in tags_of(type(self.object))


class InstanceRegistry:
    """Append-only collection of instances in the order they were added.

    Readers work on snapshots, so iteration never observes a partial add.
    """

    def __init__(self):
        self._instances: tuple[Instance, ...] = ()
        self._lock = threading.RLock()

    def add(self, instance: Instance):
        with self._lock:
            self._instances = self._instances + (instance,)

    def __iter__(self) -> Iterator[Instance]:
        return iter(self._instances)

    def __len__(self) -> int:
        return len(self._instances)

    def assignable_to(self, component_type: type) -> list[Instance]:
        return [i for i in self._instances if i.is_assignable_to(component_type)]

    def named(self, component_type: type, name: str) -> Optional[Instance]:
        """The first instance assignable to ``component_type`` called ``name``, ignoring case."""
        name = name.lower()
        return next(
            (i for i in self.assignable_to(component_type) if i.name == name), None
        )

    def tagged(self, tag: Hashable) -> list[Instance]:
        return [i for i in self._instances if i.has_tag(tag)]
