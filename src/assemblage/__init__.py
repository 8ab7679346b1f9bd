"""Assemblage component graph builder and event dispatcher.

Assemblage builds a graph of named components from flat configuration. Each
component says what it needs through annotated constructor parameters: typed
values, references to other components (by type, optionally narrowed by
name), its own name and event consumers. The container resolves references,
creates missing dependencies, builds everything in dependency order and then
lets components talk through typed events with before/invoke/after phases.

Key Features:
    - Declarative parameter roles using ``typing.Annotated`` markers
    - Case-insensitive configuration with ``new://`` declarations and ``@`` references
    - Lazy creation of dependencies nothing declared
    - Cycle detection and error chains that narrate the dependency path
    - Synchronous observers with cached invocation chains

Basic Usage:
    >>> from assemblage.container import Container
    >>>
    >>> container = Container({
    ...     "jane": "new://myapp.model.Person",
    ...     "jane.age": "37",
    ... })
    >>> person = container.get(Person)

The framework consists of several core modules:
    - markers: Parameter role markers and class decorators
    - descriptor: Component descriptors and their introspection
    - registry: Named component types and type loading
    - container: Configuration loading, building and lookup
    - observers: Observer registration and event dispatch
    - builders: Fluent container and instance builders
    - errors: Framework-specific exceptions
"""
