"""
Repository Base Class — Interface for all component repositories.

A repository holds two indexes, components (metadata) and artifact
keys, plus an ordered list of references to other repositories and a
set of string properties.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Set, Union

from ..models.component import ArtifactKey, Component, RepositoryReference

ComponentPredicate = Callable[[Component], bool]
KeyPredicate = Callable[[ArtifactKey], bool]


class Repository(ABC):
    """
    Abstract repository.

    Read operations are side-effect free. Write operations raise
    NotImplementedError on read-only implementations.
    """

    def __init__(self, location: str, name: Optional[str] = None):
        self.location = location
        self.name = name or location

    @abstractmethod
    def query(self, predicate: Optional[ComponentPredicate] = None) -> Set[Component]:
        """Return the components matching ``predicate`` (all when None)."""

    def components_in_order(self) -> List[Component]:
        """All components in a stable order."""
        return sorted(self.query(), key=lambda c: (c.id, c.version))

    @abstractmethod
    def query_artifact_keys(self, predicate: Optional[KeyPredicate] = None) -> Set[ArtifactKey]:
        """Return the artifact keys matching ``predicate`` (all when None)."""

    def artifact_keys_in_order(self) -> List[ArtifactKey]:
        """All artifact keys in a stable order."""
        return sorted(self.query_artifact_keys(), key=lambda k: (k.classifier, k.id, k.version))

    @abstractmethod
    def contains_component(self, component: Component) -> bool:
        """True if a component with the same id and version is present."""

    @abstractmethod
    def contains_artifact_key(self, key: ArtifactKey) -> bool:
        """True if the artifact key is present."""

    def contains(self, item: Union[Component, ArtifactKey]) -> bool:
        if isinstance(item, Component):
            return self.contains_component(item)
        if isinstance(item, ArtifactKey):
            return self.contains_artifact_key(item)
        raise TypeError(f"Cannot test containment of {type(item).__name__}")

    @property
    def properties(self) -> Mapping[str, str]:
        return {}

    def get_references(self) -> List[RepositoryReference]:
        return []

    def add_references(self, references: Iterable[RepositoryReference]) -> None:
        raise NotImplementedError(f"{type(self).__name__} is read-only")

    def remove_references(self, references: Iterable[RepositoryReference]) -> None:
        raise NotImplementedError(f"{type(self).__name__} is read-only")

    def set_property(self, key: str, value: Optional[str]) -> None:
        raise NotImplementedError(f"{type(self).__name__} is read-only")

    def set_properties(self, values: Mapping[str, Optional[str]]) -> None:
        """Apply several properties as one batch."""
        for key, value in values.items():
            self.set_property(key, value)

    def add_components(self, components: Iterable[Component]) -> None:
        raise NotImplementedError(f"{type(self).__name__} is read-only")

    def add_artifact_keys(self, keys: Iterable[ArtifactKey]) -> None:
        raise NotImplementedError(f"{type(self).__name__} is read-only")

    def summary(self) -> Dict[str, object]:
        """Short description for logs and the CLI."""
        return {
            "location": self.location,
            "name": self.name,
            "components": len(self.query()),
            "artifacts": len(self.query_artifact_keys()),
            "references": len(self.get_references()),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.location!r})"
