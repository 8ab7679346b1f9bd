"""Conversion of raw configuration values to declared parameter types."""

import enum
import functools
import inspect
from typing import Any

from pydantic import TypeAdapter, ValidationError

from assemblage.errors import InvalidParamValueError

__all__ = ["convert", "zero_value"]

_ZERO_VALUES = {bool: False, int: 0, float: 0.0}


@functools.lru_cache(maxsize=None)
def _adapter(annotation: Any) -> TypeAdapter:
    return TypeAdapter(annotation)


def convert(component: type, param_name: str, raw: Any, annotation: Any) -> Any:
    """Convert ``raw`` to ``annotation``.

    Strings pass through untouched when the target is ``str``; enums accept a
    member name as well as a value. Everything else goes through pydantic in
    lax mode, so ``"37"`` becomes ``37`` and ``"true"`` becomes ``True``.

    Raises:
        InvalidParamValueError: If the value cannot be converted.
    """
    if annotation is None or annotation is Any:
        return raw
    if annotation is str:
        return raw if isinstance(raw, str) else str(raw)
    if inspect.isclass(annotation) and issubclass(annotation, enum.Enum):
        if isinstance(raw, str) and raw in annotation.__members__:
            return annotation[raw]

    try:
        return _adapter(annotation).validate_python(raw)
    except ValidationError as e:
        raise InvalidParamValueError(component, param_name, raw, annotation) from e
    except TypeError as e:
        # unhashable or otherwise unsupported annotations
        raise InvalidParamValueError(component, param_name, raw, annotation) from e


def zero_value(annotation: Any) -> Any:
    """The implicit value of an unset, non-nullable ``bool``, ``int`` or ``float`` slot.

    Returns ``None`` for every other annotation.
    """
    return _ZERO_VALUES.get(annotation)
