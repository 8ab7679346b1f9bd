import logging
from collections import defaultdict, deque

from assemblage.declaration import Declaration
from assemblage.errors import ConstructionFailedError, DependencyError, type_name

__all__ = ["sort_declarations"]

logger = logging.getLogger(__name__)


def sort_declarations(declarations: list[Declaration]) -> list[Declaration]:
    """
    Order declarations so that each comes after every declaration it references.

    Declarations with nothing left to wait for are taken in the order given,
    so independent declarations keep their configuration order.

    Args:
        declarations: Resolved declarations, built or not.

    Returns:
        The declarations in build order.

    Raises:
        ConstructionFailedError: For the first declaration that cannot be
            ordered, wrapping a :class:`DependencyError` that names every
            declaration caught in a cycle.
    """
    by_id = {declaration.sorting_id: declaration for declaration in declarations}

    waiting_on: dict[str, set[str]] = {}
    dependants: dict[str, list[str]] = defaultdict(list)
    for sorting_id, declaration in by_id.items():
        dependencies = {id_ for id_ in declaration.dependency_ids() if id_ in by_id}
        waiting_on[sorting_id] = dependencies
        for dependency in dependencies:
            dependants[dependency].append(sorting_id)

    ready = deque(sorting_id for sorting_id, dependencies in waiting_on.items() if not dependencies)
    ordered = []

    while ready:
        sorting_id = ready.popleft()
        del waiting_on[sorting_id]
        ordered.append(by_id[sorting_id])

        for dependant in dependants[sorting_id]:
            remaining = waiting_on[dependant]
            remaining.discard(sorting_id)
            if not remaining:
                ready.append(dependant)

    if waiting_on:
        stuck = [by_id[sorting_id] for sorting_id in waiting_on]
        error = DependencyError(
            "Unresolvable dependencies: "
            + ", ".join(f"{d.sorting_id} ({type_name(d.type)})" for d in stuck),
            stuck[0].type,
        )
        raise ConstructionFailedError(stuck[0].type, error) from error

    logger.debug("Build order: %s", [d.sorting_id for d in ordered])
    return ordered
