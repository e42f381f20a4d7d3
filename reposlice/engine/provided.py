"""
Provided Content — Leave out what referenced repositories already have.

A destination repository may reference other repositories. Anything a
consumer can already get through those references does not need to be
copied again:

1. Every referenced repository of the right kind is opened (once, via
   the session's RepositoryLoader).
2. Components / artifact keys contained in any of them are removed from
   the collected set.
3. Optionally, references that add nothing are dropped. For each
   metadata reference we compute which of the originally collected
   ``(id, version)`` pairs it holds. Walking in reference order, a
   removable reference goes when it holds none of them, or when another
   reference still standing holds at least as many and all of them.

Only "filterable" references are removable; references also declared
explicitly are always kept.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Generic, Iterable, List, Mapping, Sequence, Set, Tuple, TypeVar, Union

from ..models.component import (
    ArtifactKey,
    Component,
    ReferenceKind,
    RepositoryReference,
)
from ..models.version import Version
from ..repository.base import Repository
from ..repository.loader import RepositoryLoader, normalize_location

logger = logging.getLogger(__name__)

T = TypeVar("T", Component, ArtifactKey)

ContentIndex = Mapping[str, Set[Version]]


@dataclass
class ProvidedFilterResult(Generic[T]):
    """Outcome of one filtering pass."""

    kept: List[T] = field(default_factory=list)
    removed: List[T] = field(default_factory=list)
    repositories: List[Repository] = field(default_factory=list)
    discarded_references: List[RepositoryReference] = field(default_factory=list)


def removable_locations(
    explicit: Iterable[RepositoryReference],
    filterable: Iterable[RepositoryReference],
) -> Set[str]:
    """Filterable locations minus those also declared explicitly."""
    keep = {normalize_location(r.location) for r in explicit}
    return {normalize_location(r.location) for r in filterable} - keep


def content_index(components: Iterable[Component]) -> Dict[str, Set[Version]]:
    """id -> versions of a component collection."""
    index: Dict[str, Set[Version]] = {}
    for component in components:
        index.setdefault(component.id, set()).add(component.version)
    return index


def load_referenced_repositories(
    references: Sequence[RepositoryReference],
    kind: ReferenceKind,
    loader: RepositoryLoader,
) -> List[Repository]:
    """Open every reference of ``kind``; any failure aborts."""
    repositories: List[Repository] = []
    seen: Set[str] = set()
    for reference in references:
        if reference.kind != kind:
            continue
        location = normalize_location(reference.location)
        if location in seen:
            continue
        seen.add(location)
        repositories.append(loader.load(location))
    return repositories


def remove_provided_items(
    elements: Iterable[T],
    references: Sequence[RepositoryReference],
    kind: ReferenceKind,
    loader: RepositoryLoader,
) -> ProvidedFilterResult[T]:
    """Split ``elements`` into kept and provided-by-a-reference."""
    repositories = load_referenced_repositories(references, kind, loader)
    result: ProvidedFilterResult[T] = ProvidedFilterResult(repositories=repositories)

    for element in elements:
        if any(repo.contains(element) for repo in repositories):
            result.removed.append(element)
        else:
            result.kept.append(element)

    if result.removed:
        logger.info(
            f"{len(result.removed)} {kind.value} item(s) already provided by "
            f"{len(repositories)} referenced repositor{'y' if len(repositories) == 1 else 'ies'}"
        )
        for element in result.removed:
            logger.debug(f"  provided: {element}")
    return result


def used_content(
    repositories: Sequence[Repository],
    full_content: ContentIndex,
) -> Dict[str, Set[Tuple[str, Version]]]:
    """Per location, the collected (id, version) pairs each repository holds."""
    used: Dict[str, Set[Tuple[str, Version]]] = {}
    for repo in repositories:
        location = normalize_location(repo.location)
        if location in used:
            continue
        used[location] = {
            c.key for c in repo.query() if c.version in full_content.get(c.id, ())
        }
    return used


def select_providing_locations(
    used: Mapping[str, Set[Tuple[str, Version]]],
    removable: Set[str],
) -> List[str]:
    """
    Locations that survive pruning, in input order.

    A removable location is dropped when it provides nothing, or when a
    location still standing provides a superset at least as large.
    Evaluation follows input order, so of two identical removable
    locations the earlier one is dropped and the later one stays.
    """
    surviving: Dict[str, Set[Tuple[str, Version]]] = dict(used)
    for location, content in used.items():
        if location not in removable:
            continue
        dominated = not content or any(
            other_location != location and len(other) >= len(content) and content <= other
            for other_location, other in surviving.items()
        )
        if dominated:
            del surviving[location]
    return list(surviving)


def remove_not_providing_references(
    full_content: ContentIndex,
    repositories: Sequence[Repository],
    removable: Set[str],
    destination: Repository,
) -> List[RepositoryReference]:
    """Drop removable references that contribute nothing unique; return them."""
    surviving = set(select_providing_locations(used_content(repositories, full_content), removable))

    discarded = [
        ref
        for ref in destination.get_references()
        if normalize_location(ref.location) in removable
        and normalize_location(ref.location) not in surviving
    ]
    if discarded:
        destination.remove_references(discarded)
        for location in dict.fromkeys(r.location for r in discarded):
            logger.info(f"Dropping reference to {location}: provides nothing not available elsewhere")
    return discarded


def filter_provided_components(
    components: Iterable[Component],
    destination: Repository,
    loader: RepositoryLoader,
    removable: Union[Set[str], None] = None,
) -> ProvidedFilterResult[Component]:
    """
    Remove components provided by the destination's metadata references.

    When ``removable`` is non-empty, references among those locations
    that add nothing are also removed from the destination.
    """
    collected = list(components)
    full_content = content_index(collected)

    result = remove_provided_items(
        collected, destination.get_references(), ReferenceKind.METADATA, loader
    )
    if removable:
        result.discarded_references = remove_not_providing_references(
            full_content, result.repositories, removable, destination
        )
    return result


def filter_provided_artifact_keys(
    keys: Iterable[ArtifactKey],
    destination: Repository,
    loader: RepositoryLoader,
) -> ProvidedFilterResult[ArtifactKey]:
    """Remove artifact keys provided by the destination's artifact references."""
    return remove_provided_items(
        list(keys), destination.get_references(), ReferenceKind.ARTIFACT, loader
    )
