"""
Static dependency graph of the stack.

The compose engine enforces startup order at runtime; this module checks
before anything is started that the declared ordering can actually be
satisfied:

- every dependency names a service of the stack
- there are no cycles
- ``service_healthy`` only targets services that define a healthcheck
- ``service_completed_successfully`` only targets one-shot jobs (a
  long-running server never completes, so its dependents would hang)

It also derives the startup order and the groups of services that the
engine may start in parallel.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable

from .models import Condition, Service


class StackGraphError(ValueError):
    """Base class for dependency graph violations."""


class UnknownDependencyError(StackGraphError):
    """A service depends on a name that is not part of the stack."""


class DependencyCycleError(StackGraphError):
    """The dependency graph is not acyclic."""


class ConditionError(StackGraphError):
    """A startup condition can never be met by its target."""


def _index(services: Iterable[Service]) -> dict[str, Service]:
    by_name: dict[str, Service] = {}
    for service in services:
        if service.name in by_name:
            raise StackGraphError(f"Duplicate service name: {service.name}")
        by_name[service.name] = service
    return by_name


def validate(services: list[Service]) -> None:
    """
    Check that the stack's startup conditions form a satisfiable DAG.

    Args:
        services: Services in declaration order.

    Raises:
        UnknownDependencyError: If a dependency is not a known service.
        DependencyCycleError: If a service (transitively) depends on itself.
        ConditionError: If a condition cannot be met by its target.
    """
    by_name = _index(services)

    for service in services:
        for target_name, condition in service.depends_on.items():
            if target_name == service.name:
                raise DependencyCycleError(f"{service.name} depends on itself")

            target = by_name.get(target_name)
            if target is None:
                raise UnknownDependencyError(
                    f"{service.name} depends on unknown service {target_name}"
                )

            if condition is Condition.HEALTHY and target.healthcheck is None:
                raise ConditionError(
                    f"{service.name} waits for {target_name} to be healthy, "
                    f"but {target_name} has no healthcheck"
                )
            if condition is Condition.COMPLETED and not target.is_one_shot:
                raise ConditionError(
                    f"{service.name} waits for {target_name} to complete, "
                    f"but {target_name} is a long-running service"
                )

    # Raises DependencyCycleError when no complete ordering exists.
    topological_order(services)


def topological_order(services: list[Service]) -> list[str]:
    """
    Return service names with every dependency before its dependents.

    Ties are broken by declaration order, so a descriptor written leaves
    first comes back unchanged.
    """
    by_name = _index(services)
    position = {service.name: i for i, service in enumerate(services)}

    remaining = {
        service.name: {dep for dep in service.depends_on if dep in by_name}
        for service in services
    }
    dependents: dict[str, list[str]] = {name: [] for name in by_name}
    for name, deps in remaining.items():
        for dep in deps:
            dependents[dep].append(name)

    ready = [(position[name], name) for name, deps in remaining.items() if not deps]
    heapq.heapify(ready)

    order: list[str] = []
    while ready:
        _, name = heapq.heappop(ready)
        order.append(name)
        for dependent in dependents[name]:
            remaining[dependent].discard(name)
            if not remaining[dependent]:
                heapq.heappush(ready, (position[dependent], dependent))

    if len(order) != len(services):
        stuck = sorted(set(by_name) - set(order), key=position.__getitem__)
        raise DependencyCycleError(f"Dependency cycle among: {', '.join(stuck)}")
    return order


def startup_waves(services: list[Service]) -> list[list[str]]:
    """
    Group services by the length of their longest dependency chain.

    Every service in wave *n* only depends on services in earlier waves,
    so the engine can start a whole wave at once.
    """
    by_name = _index(services)
    depth: dict[str, int] = {}
    for name in topological_order(services):
        deps = by_name[name].depends_on
        depth[name] = 1 + max((depth[dep] for dep in deps if dep in depth), default=-1)

    waves: list[list[str]] = [[] for _ in range(max(depth.values(), default=-1) + 1)]
    for service in services:
        waves[depth[service.name]].append(service.name)
    return waves


def requirements(services: list[Service], name: str) -> set[str]:
    """Return every service *name* transitively waits for."""
    by_name = _index(services)
    if name not in by_name:
        raise UnknownDependencyError(f"Unknown service: {name}")

    seen: set[str] = set()
    stack = list(by_name[name].depends_on)
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        if current not in by_name:
            raise UnknownDependencyError(f"Unknown service: {current}")
        seen.add(current)
        stack.extend(by_name[current].depends_on)
    return seen
