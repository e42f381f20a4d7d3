"""
In-memory repositories.

InMemoryRepository is the writable repository used for loaded files and
for the mirror destination. CompositeRepository joins several
repositories into one read-only view, in order.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from ..models.component import ArtifactKey, Component, RepositoryReference
from ..models.version import Version
from .base import ComponentPredicate, KeyPredicate, Repository


class InMemoryRepository(Repository):
    """A writable repository held entirely in memory."""

    def __init__(
        self,
        location: str,
        name: Optional[str] = None,
        components: Iterable[Component] = (),
        artifact_keys: Iterable[ArtifactKey] = (),
        references: Iterable[RepositoryReference] = (),
        properties: Optional[Mapping[str, str]] = None,
    ):
        super().__init__(location, name)
        # Insertion order is kept so snapshots and files are deterministic
        self._components: Dict[Tuple[str, Version], Component] = {}
        self._keys: Dict[ArtifactKey, None] = {}
        self._references: List[RepositoryReference] = []
        self._properties: Dict[str, str] = dict(properties or {})

        self.add_components(components)
        self.add_artifact_keys(artifact_keys)
        self.add_references(references)

    def query(self, predicate: Optional[ComponentPredicate] = None) -> Set[Component]:
        if predicate is None:
            return set(self._components.values())
        return {c for c in self._components.values() if predicate(c)}

    def components_in_order(self) -> List[Component]:
        return list(self._components.values())

    def query_artifact_keys(self, predicate: Optional[KeyPredicate] = None) -> Set[ArtifactKey]:
        if predicate is None:
            return set(self._keys)
        return {k for k in self._keys if predicate(k)}

    def artifact_keys_in_order(self) -> List[ArtifactKey]:
        return list(self._keys)

    def contains_component(self, component: Component) -> bool:
        return component.key in self._components

    def contains_artifact_key(self, key: ArtifactKey) -> bool:
        return key in self._keys

    @property
    def properties(self) -> Mapping[str, str]:
        return dict(self._properties)

    def get_references(self) -> List[RepositoryReference]:
        return list(self._references)

    def add_references(self, references: Iterable[RepositoryReference]) -> None:
        for ref in references:
            if ref not in self._references:
                self._references.append(ref)

    def remove_references(self, references: Iterable[RepositoryReference]) -> None:
        doomed = set(references)
        self._references = [r for r in self._references if r not in doomed]

    def set_property(self, key: str, value: Optional[str]) -> None:
        if value is None:
            self._properties.pop(key, None)
        else:
            self._properties[key] = str(value)

    def add_components(self, components: Iterable[Component]) -> None:
        for component in components:
            self._components.setdefault(component.key, component)

    def add_artifact_keys(self, keys: Iterable[ArtifactKey]) -> None:
        for key in keys:
            self._keys.setdefault(key, None)


class CompositeRepository(Repository):
    """Read-only union of child repositories; first child wins on duplicates."""

    def __init__(self, children: Sequence[Repository], location: str = "composite:", name: Optional[str] = None):
        super().__init__(location, name or "composite")
        self.children: List[Repository] = list(children)

    def query(self, predicate: Optional[ComponentPredicate] = None) -> Set[Component]:
        result: Set[Component] = set()
        for child in self.children:
            # set.add keeps the first equal element
            result.update(child.query(predicate))
        return result

    def components_in_order(self) -> List[Component]:
        seen: Dict[Tuple[str, Version], Component] = {}
        for child in self.children:
            for component in child.components_in_order():
                seen.setdefault(component.key, component)
        return list(seen.values())

    def query_artifact_keys(self, predicate: Optional[KeyPredicate] = None) -> Set[ArtifactKey]:
        result: Set[ArtifactKey] = set()
        for child in self.children:
            result |= child.query_artifact_keys(predicate)
        return result

    def contains_component(self, component: Component) -> bool:
        return any(child.contains_component(component) for child in self.children)

    def contains_artifact_key(self, key: ArtifactKey) -> bool:
        return any(child.contains_artifact_key(key) for child in self.children)

    def get_references(self) -> List[RepositoryReference]:
        refs: List[RepositoryReference] = []
        for child in self.children:
            for ref in child.get_references():
                if ref not in refs:
                    refs.append(ref)
        return refs
