"""Case-insensitive store of configuration values."""

import threading
from typing import Any, Iterator, Mapping

__all__ = ["ValueStore", "new_components", "NEW_COMPONENT_PREFIX", "REFERENCE_PREFIX"]

NEW_COMPONENT_PREFIX = "new://"
"""Value prefix declaring a new component named by its key."""

REFERENCE_PREFIX = "@"
"""Value prefix marking a reference to another component by name."""


class ValueStore:
    """Flat mapping of configuration keys to raw values.

    Lookups ignore case; the spelling of the most recent load is kept for
    reporting.

    Example:
        >>> store = ValueStore({"Jane.Age": "37"})
        >>> store.get("jane.age")
        '37'
    """

    def __init__(self, values: Mapping[str, Any] = None):
        self._values: dict[str, tuple[str, Any]] = {}
        self._used: set[str] = set()
        self._lock = threading.RLock()
        if values:
            self.load(values)

    def load(self, values: Mapping[str, Any]):
        """Merge ``values`` into the store; keys are stringified."""
        with self._lock:
            for key, value in values.items():
                key = str(key).strip()
                self._values[key.lower()] = (key, value)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            entry = self._values.get(key.lower())
        return default if entry is None else entry[1]

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key.lower() in self._values

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def keys(self) -> list[str]:
        with self._lock:
            return [key for key, _ in self._values.values()]

    def items(self) -> list[tuple[str, Any]]:
        with self._lock:
            return list(self._values.values())

    def mark_used(self, key: str):
        with self._lock:
            self._used.add(key.lower())

    def is_used(self, key: str) -> bool:
        with self._lock:
            return key.lower() in self._used

    def with_prefix(self, prefix: str) -> dict[str, Any]:
        """Select entries under ``prefix`` with the prefix removed from their keys.

        Every selected entry is marked as used.

        Args:
            prefix: Key prefix, typically ``"<componentName>."``.

        Returns:
            Mapping of the remaining key (original spelling) to its value.
        """
        prefix = prefix.lower()
        selected = {}
        with self._lock:
            for lowered, (key, value) in self._values.items():
                if lowered.startswith(prefix):
                    self._used.add(lowered)
                    selected[key[len(prefix):]] = value
        return selected

    def unused(self) -> list[str]:
        """Keys never consumed, sorted, excluding ``@``-prefixed keys."""
        with self._lock:
            return sorted(
                key
                for lowered, (key, _) in self._values.items()
                if lowered not in self._used and not key.startswith(REFERENCE_PREFIX)
            )


def new_components(values: Mapping[str, Any]) -> list[tuple[str, str]]:
    """Entries of ``values`` declaring a new component, as (name, type string).

    Only keys without a dot declare components; dotted keys configure one.

    Example:
        >>> new_components({"home": "new://Address", "home.city": "Oakland"})
        [('home', 'Address')]
    """
    return [
        (str(key).strip(), value[len(NEW_COMPONENT_PREFIX):].strip())
        for key, value in values.items()
        if "." not in str(key)
        and isinstance(value, str)
        and value.startswith(NEW_COMPONENT_PREFIX)
    ]
