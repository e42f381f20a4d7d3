"""
Graph Snapshot — Read-only arena over a repository's components.

Built once at the start of a run. Components are addressed by integer
index, and requirements are resolved through a capability index instead
of scanning the repository with predicates:

    snapshot = GraphSnapshot.from_repository(repo)
    for idx in snapshot.candidates(requirement):
        print(snapshot[idx])
"""

from __future__ import annotations

from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..models.component import Component, Requirement
from ..models.version import Version
from .base import Repository


class GraphSnapshot:
    """Immutable index of components, capabilities and ids."""

    def __init__(self, components: Iterable[Component]):
        arena: List[Component] = []
        index_of: Dict[Tuple[str, Version], int] = {}
        for component in components:
            if component.key in index_of:
                continue
            index_of[component.key] = len(arena)
            arena.append(component)

        self._arena: Tuple[Component, ...] = tuple(arena)
        self._index_of = index_of
        self._by_id: Dict[str, List[int]] = defaultdict(list)
        self._capabilities: Dict[Tuple[str, str], List[Tuple[int, Version]]] = defaultdict(list)

        for idx, component in enumerate(self._arena):
            self._by_id[component.id].append(idx)
            for capability in component.provides:
                self._capabilities[(capability.namespace, capability.name)].append(
                    (idx, capability.version)
                )

    @classmethod
    def from_repository(cls, repository: Repository) -> "GraphSnapshot":
        return cls(repository.components_in_order())

    def __len__(self) -> int:
        return len(self._arena)

    def __iter__(self) -> Iterator[Component]:
        return iter(self._arena)

    def __getitem__(self, idx: int) -> Component:
        return self._arena[idx]

    def __contains__(self, component: object) -> bool:
        return isinstance(component, Component) and component.key in self._index_of

    def index_of(self, component: Component) -> Optional[int]:
        return self._index_of.get(component.key)

    def with_id(self, component_id: str) -> List[Component]:
        return [self._arena[i] for i in self._by_id.get(component_id, ())]

    def candidates(self, requirement: Requirement) -> List[int]:
        """Indices of components providing a matching capability, in arena order."""
        seen = set()
        result: List[int] = []
        for idx, version in self._capabilities.get((requirement.namespace, requirement.name), ()):
            if idx in seen or version not in requirement.range:
                continue
            seen.add(idx)
            result.append(idx)
        return result

    def resolve(self, indices: Sequence[int]) -> List[Component]:
        return [self._arena[i] for i in indices]

    def top_level(self) -> List[int]:
        """Indices of components no other component requires."""
        required = set()
        for idx, component in enumerate(self._arena):
            for requirement in component.requires:
                required.update(c for c in self.candidates(requirement) if c != idx)
        return [i for i in range(len(self._arena)) if i not in required]
