from typing import Any, Optional, Sequence

__all__ = [
    "ComponentError",
    "ConstructionFailedError",
    "MultipleComponentIssuesError",
    "DependencyError",
    "NamedComponentNotFoundError",
    "MissingRequiredParamError",
    "InvalidParamValueError",
    "InvalidNullableWithDefaultError",
    "InvalidPropertyError",
    "UnknownPropertyError",
    "ComponentReferenceSyntaxError",
    "UnusedPropertiesError",
    "MissingComponentTypeError",
    "MissingComponentDeclarationError",
    "InvalidConstructorError",
    "InvalidEventParameterError",
    "InvalidObserverError",
    "type_name",
]


def type_name(target: Any) -> str:
    """Render a type as ``module.Qualname`` for messages."""
    if isinstance(target, type):
        return f"{target.__module__}.{target.__qualname__}"
    return str(target)


class ComponentError(Exception):
    """Base class for every failure attributable to a component type."""

    def __init__(self, component: Optional[type], message: str = ""):
        super().__init__(message)
        self.component = component

    @property
    def message(self) -> str:
        return str(self)


class ConstructionFailedError(ComponentError):
    """A component could not be built.

    Wraps the underlying cause; nested instances narrate the dependency path.
    """

    def __init__(self, component: Optional[type], cause: BaseException):
        super().__init__(
            component,
            f"Unable to construct component: {type_name(component)} - {cause}",
        )
        self.__cause__ = cause

    @property
    def cause(self) -> BaseException:
        return self.__cause__


class MultipleComponentIssuesError(ComponentError):
    """More than one problem was found with a single declaration."""

    def __init__(self, component: Optional[type], issues: Sequence[BaseException]):
        self.issues = list(issues)
        width = max((len(type(issue).__name__) for issue in self.issues), default=0)
        lines = [f"{len(self.issues)} issues found"]
        lines.extend(
            f" - {type(issue).__name__:<{width}} : {issue}" for issue in self.issues
        )
        super().__init__(component, "\n".join(lines) + "\n")


class DependencyError(ComponentError):
    """Raised when the dependency graph cannot be ordered, e.g. because of a cycle."""

    def __init__(self, message: str, component: Optional[type] = None):
        super().__init__(component, message)


class NamedComponentNotFoundError(ComponentError):
    """A component with the given name and type does not exist.

    Here ``component`` and ``name`` describe the component that was looked for,
    not the one that needed it.
    """

    def __init__(self, name: str, component: type):
        super().__init__(
            component,
            f"Unable to find component with name '{name}' and type {type_name(component)}",
        )
        self.name = name


class MissingRequiredParamError(ComponentError):
    def __init__(self, component: type, param_name: str):
        super().__init__(
            component,
            f"Missing required param '{param_name}' for component {type_name(component)}",
        )
        self.param_name = param_name


class InvalidParamValueError(ComponentError):
    """A configured value could not be converted to the declared parameter type."""

    def __init__(
        self, component: type, param_name: str, param_value: Any, param_type: Any
    ):
        super().__init__(
            component,
            f"Cannot convert value of param '{param_name}' to type "
            f"{type_name(param_type)}: {param_value}",
        )
        self.param_name = param_name
        self.param_value = param_value
        self.param_type = param_type


class InvalidNullableWithDefaultError(ComponentError):
    """A slot was declared both nullable and with a non-null default."""

    def __init__(self, component: type, param_name: str, param_value: Any):
        super().__init__(
            component,
            f"Invalid usage of Nullable with Default for param '{param_name}' "
            f"with value: {param_value}",
        )
        self.param_name = param_name
        self.param_value = param_value


class InvalidPropertyError(ComponentError):
    def __init__(self, component: type, key: str, value: Any, message: str):
        super().__init__(component, message)
        self.key = key
        self.value = value


class UnknownPropertyError(InvalidPropertyError):
    """An override key names neither a value slot nor a reference slot."""

    def __init__(self, component: type, key: str, value: Any):
        super().__init__(component, key, value, f"Unknown property `{key} = {value}`")


class ComponentReferenceSyntaxError(InvalidPropertyError):
    """A reference override does not start with ``@``."""

    def __init__(self, component: type, key: str, value: Any):
        super().__init__(
            component,
            key,
            value,
            f"Invalid property `{key} = {value}` - Component references must start with @",
        )


class UnusedPropertiesError(ComponentError):
    def __init__(self, keys: Sequence[str]):
        super().__init__(None, f"Unused properties: {', '.join(keys)}")
        self.keys = list(keys)


class MissingComponentTypeError(ComponentError):
    """The type named by a ``new://`` declaration could not be located."""

    def __init__(self, type_string: str):
        super().__init__(None, f"Cannot load component type: {type_string}")
        self.type_string = type_string


class MissingComponentDeclarationError(ComponentError):
    """An object was offered for a reference the component never declared."""

    def __init__(self, component: type, offered_type: type):
        super().__init__(
            component,
            f"Component {type_name(component)} declares no reference accepting "
            f"{type_name(offered_type)}",
        )
        self.offered_type = offered_type


class InvalidConstructorError(ComponentError):
    """A build function has a parameter that plays no declared role."""

    def __init__(self, component: Any, parameter: str, reason: Optional[str] = None):
        super().__init__(
            component if isinstance(component, type) else None,
            f"Parameter '{parameter}' of {type_name(component)} "
            + (reason or "must be marked with Param, Component, Name or Event"),
        )
        self.parameter = parameter


class InvalidEventParameterError(ComponentError):
    def __init__(self, component: Any, parameter: str, reason: str):
        super().__init__(
            component if isinstance(component, type) else None,
            f"Event parameter '{parameter}' of {type_name(component)}: {reason}",
        )
        self.parameter = parameter


class InvalidObserverError(ComponentError):
    """An ``Observes`` handler is malformed."""

    def __init__(self, observer_type: type, method: str, reason: str):
        super().__init__(observer_type, f"Observer method {method}: {reason}")
        self.method = method
