"""
Component Models — Immutable records for components and what they need.

A Component is identified by ``(id, version)``. It provides capabilities,
declares requirements on other capabilities, and may carry a filter that
restricts it to some target environments. Components are value records:
the engine collects subsets of them and never mutates one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .filters import Filter
from .version import ANY_VERSION, Version, VersionRange

# Namespace of the capability every component provides for its own id
COMPONENT_NAMESPACE = "component.id"

# Id conventions
GROUP_SUFFIX = ".feature.group"
SOURCE_SUFFIX = ".source"

# Property every selection context carries; a context holding only this
# marker does not discriminate between environments.
DEFAULT_CONTEXT_PROPERTY = "install.features"

# Unbounded cardinality
UNBOUNDED = 2**31 - 1


class ReferenceKind(str, Enum):
    """What a repository reference points at."""

    METADATA = "metadata"
    ARTIFACT = "artifact"


@dataclass(frozen=True)
class Capability:
    """A named, versioned facility a component provides."""

    namespace: str
    name: str
    version: Version = field(default_factory=Version)


@dataclass(frozen=True)
class Requirement:
    """
    A query for capabilities.

    ``min == 0`` marks an optional requirement; ``max`` bounds how many
    versions per component id are taken when the requirement is followed.
    """

    namespace: str
    name: str
    range: VersionRange = ANY_VERSION
    min: int = 1
    max: int = 1
    filter: Optional[Filter] = None

    @property
    def is_optional(self) -> bool:
        return self.min == 0

    @property
    def is_strict(self) -> bool:
        return self.range.is_strict

    def matches(self, capability: Capability) -> bool:
        return (
            capability.namespace == self.namespace
            and capability.name == self.name
            and capability.version in self.range
        )

    def __str__(self) -> str:
        text = f"{self.namespace}/{self.name} {self.range}"
        if self.is_optional:
            text += " (optional)"
        return text


@dataclass(frozen=True)
class ArtifactKey:
    """Identifies one binary payload of a component."""

    classifier: str
    id: str
    version: Version

    def __str__(self) -> str:
        return f"{self.classifier}/{self.id}/{self.version}"


@dataclass(frozen=True, eq=False)
class Component:
    """An installable unit. Equality and hashing use ``(id, version)`` only."""

    id: str
    version: Version
    provides: Tuple[Capability, ...] = ()
    requires: Tuple[Requirement, ...] = ()
    filter: Optional[Filter] = None
    group: bool = False
    artifacts: Tuple[ArtifactKey, ...] = ()
    properties: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    def __post_init__(self) -> None:
        own = Capability(COMPONENT_NAMESPACE, self.id, self.version)
        provides = tuple(self.provides)
        if own not in provides:
            provides = (own,) + provides
        object.__setattr__(self, "provides", provides)
        object.__setattr__(self, "requires", tuple(self.requires))
        object.__setattr__(self, "artifacts", tuple(self.artifacts))
        if not isinstance(self.properties, MappingProxyType):
            object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))

    @property
    def key(self) -> Tuple[str, Version]:
        return (self.id, self.version)

    @property
    def is_group(self) -> bool:
        return self.group or self.id.endswith(GROUP_SUFFIX)

    @property
    def is_source(self) -> bool:
        return self.id.endswith(SOURCE_SUFFIX) or self.id.endswith(SOURCE_SUFFIX + GROUP_SUFFIX)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Component):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __repr__(self) -> str:
        return f"Component({self.id}@{self.version})"

    def __str__(self) -> str:
        return f"{self.id} {self.version}"


@dataclass(frozen=True)
class SelectionContext:
    """
    One target environment as a property bag for filter evaluation.

    Always carries DEFAULT_CONTEXT_PROPERTY; anything beyond it makes the
    context discriminating.
    """

    properties: Mapping[str, str]

    def __hash__(self) -> int:
        return hash(tuple(sorted(self.properties.items())))

    @classmethod
    def from_properties(cls, props: Optional[Mapping[str, Any]] = None) -> "SelectionContext":
        merged: Dict[str, str] = {DEFAULT_CONTEXT_PROPERTY: "true"}
        for key, value in (props or {}).items():
            if value is not None:
                merged[str(key)] = str(value)
        return cls(MappingProxyType(merged))

    @classmethod
    def for_environment(
        cls,
        os: Optional[str] = None,
        ws: Optional[str] = None,
        arch: Optional[str] = None,
        nl: Optional[str] = None,
    ) -> "SelectionContext":
        return cls.from_properties({"os": os, "ws": ws, "arch": arch, "nl": nl})

    @property
    def is_discriminating(self) -> bool:
        return len(self.properties) > 1


@dataclass(frozen=True)
class RepositoryReference:
    """A pointer from one repository to another."""

    location: str
    kind: ReferenceKind
    name: Optional[str] = None
    enabled: bool = True

    def __str__(self) -> str:
        state = "" if self.enabled else " (disabled)"
        return f"{self.kind.value}:{self.location}{state}"
