from __future__ import annotations

import heapq
from typing import Dict, List, Sequence, Set

from .errors import ConfigurationError
from .model import Step


def validate(steps: Sequence[Step]) -> None:
    """Check names and dependencies, and reject cycles.

    Raises ConfigurationError; nothing is executed here.
    """

    seen: Set[str] = set()
    for step in steps:
        if not step.name:
            raise ConfigurationError("Step with empty name")
        if step.name in seen:
            raise ConfigurationError(f"Duplicate step name: {step.name}")
        seen.add(step.name)

    for step in steps:
        for dep in step.depends_on:
            if dep == step.name:
                raise ConfigurationError(f"Step {step.name} depends on itself")
            if dep not in seen:
                raise ConfigurationError(f"Step {step.name} depends on unknown step {dep}")

    # Raises on cycles.
    topological_order(steps)


def topological_order(steps: Sequence[Step]) -> List[Step]:
    """Kahn's algorithm; ready steps are released in original input order."""

    index = {s.name: i for i, s in enumerate(steps)}
    indegree: Dict[str, int] = {s.name: 0 for s in steps}
    children: Dict[str, List[str]] = {s.name: [] for s in steps}

    for step in steps:
        # A repeated dependency name counts once.
        for dep in dict.fromkeys(step.depends_on):
            if dep not in children:
                raise ConfigurationError(f"Step {step.name} depends on unknown step {dep}")
            children[dep].append(step.name)
            indegree[step.name] += 1

    ready = [index[name] for name, deg in indegree.items() if deg == 0]
    heapq.heapify(ready)

    ordered: List[Step] = []
    while ready:
        i = heapq.heappop(ready)
        step = steps[i]
        ordered.append(step)
        for child in children[step.name]:
            indegree[child] -= 1
            if indegree[child] == 0:
                heapq.heappush(ready, index[child])

    if len(ordered) != len(steps):
        stuck = sorted((n for n, d in indegree.items() if d > 0), key=index.__getitem__)
        raise ConfigurationError(f"Dependency cycle among steps: {', '.join(stuck)}")

    return ordered


def dependents_of(steps: Sequence[Step], name: str) -> Set[str]:
    """Names of all steps that transitively depend on `name`."""

    children: Dict[str, List[str]] = {s.name: [] for s in steps}
    for step in steps:
        for dep in step.depends_on:
            children.setdefault(dep, []).append(step.name)

    out: Set[str] = set()
    stack = list(children.get(name, []))
    while stack:
        n = stack.pop()
        if n in out:
            continue
        out.add(n)
        stack.extend(children.get(n, []))
    return out
