"""
Dependency graph compiler — execution order for plan steps.

Order is a depth-first post-order over steps in declaration order:
each step's dependencies are emitted (in their declared order)
before the step itself. Independent steps therefore keep their
declaration order, and the same plan always yields the same order.

The traversal uses an explicit stack, so deep dependency chains
do not hit the interpreter recursion limit. A step found on the
current path again is a cycle; the first one found aborts.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from plexr.core.errors import CycleError, UndefinedDependencyError
from plexr.core.models.plan import Step


def build_order(steps: Iterable[Step]) -> list[str]:
    """Compute a topological execution order of step ids.

    Args:
        steps: Plan steps in declaration order.

    Returns:
        Step ids, every step placed after all of its dependencies.

    Raises:
        UndefinedDependencyError: A step depends on an unknown id.
        CycleError: The dependency relation is cyclic (including a
            step depending on itself).
    """
    step_list = list(steps)
    by_id: dict[str, Step] = {s.id: s for s in step_list}

    order: list[str] = []
    done: set[str] = set()
    on_stack: set[str] = set()

    for root in step_list:
        if root.id in done:
            continue

        # (step id, iterator over its remaining dependencies)
        stack: list[tuple[str, Iterator[str]]] = [(root.id, iter(root.depends_on))]
        on_stack.add(root.id)

        while stack:
            step_id, deps = stack[-1]
            dep = next(deps, None)

            if dep is None:
                stack.pop()
                on_stack.discard(step_id)
                done.add(step_id)
                order.append(step_id)
                continue

            if dep in done:
                continue

            if dep in on_stack:
                path = [sid for sid, _ in stack]
                raise CycleError(path[path.index(dep):] + [dep])

            if dep not in by_id:
                raise UndefinedDependencyError(step_id, dep)

            on_stack.add(dep)
            stack.append((dep, iter(by_id[dep].depends_on)))

    return order


def check_dependencies(steps: Iterable[Step]) -> None:
    """Check that every dependency exists and the graph is acyclic.

    Undefined references are reported before cycles are looked for,
    so a dangling reference is never mistaken for a cycle.
    """
    step_list = list(steps)
    known = {s.id for s in step_list}

    for step in step_list:
        for dep in step.depends_on:
            if dep not in known:
                raise UndefinedDependencyError(step.id, dep)

    build_order(step_list)

