"""
Tests for provided-content filtering and reference pruning.
"""

import pytest

from reposlice.engine.provided import (
    content_index,
    filter_provided_artifact_keys,
    filter_provided_components,
    remove_not_providing_references,
    remove_provided_items,
    removable_locations,
    select_providing_locations,
)
from reposlice.models.component import ReferenceKind, RepositoryReference
from reposlice.repository.loader import RepositoryLoader
from reposlice.repository.memory import InMemoryRepository
from reposlice.validation import ReferenceLoadError

R1 = "https://updates.example.org/r1"
R2 = "https://updates.example.org/r2"
R3 = "https://updates.example.org/r3"


def _refs(*locations, kinds=(ReferenceKind.METADATA, ReferenceKind.ARTIFACT)):
    return [RepositoryReference(loc, kind) for loc in locations for kind in kinds]


def _loader_with(*repos):
    loader = RepositoryLoader()
    for repo in repos:
        loader.put(repo)
    return loader


def _repo(location, components):
    components = list(components)
    return InMemoryRepository(
        location,
        components=components,
        artifact_keys=[k for c in components for k in c.artifacts],
    )


class TestRemovableLocations:
    """Tests for removable_locations."""

    def test_explicit_never_removable(self):
        explicit = [RepositoryReference(R1, ReferenceKind.METADATA)]
        filterable = [
            RepositoryReference(R1 + "/", ReferenceKind.METADATA),
            RepositoryReference(R2, ReferenceKind.METADATA),
        ]
        assert removable_locations(explicit, filterable) == {R2}


class TestRemoveProvidedItems:
    """Tests for remove_provided_items."""

    def test_components_in_metadata_references_removed(self, comp):
        a, b, c = comp("a"), comp("b"), comp("c")
        loader = _loader_with(_repo(R1, [a]), _repo(R2, [b]))
        result = remove_provided_items([a, b, c], _refs(R1, R2), ReferenceKind.METADATA, loader)
        assert result.kept == [c]
        assert result.removed == [a, b]
        assert [r.location for r in result.repositories] == [R1, R2]

    def test_only_matching_kind_loaded(self, comp):
        a = comp("a")
        loader = _loader_with(_repo(R1, [a]))
        refs = [RepositoryReference(R1, ReferenceKind.METADATA)]
        result = remove_provided_items(list(a.artifacts), refs, ReferenceKind.ARTIFACT, loader)
        assert result.kept == list(a.artifacts)
        assert result.repositories == []

    def test_unloadable_reference_aborts(self, comp, tmp_path):
        missing = (tmp_path / "nowhere").as_uri()
        refs = [RepositoryReference(missing, ReferenceKind.METADATA)]
        with pytest.raises(ReferenceLoadError) as exc_info:
            remove_provided_items([comp("a")], refs, ReferenceKind.METADATA, RepositoryLoader())
        assert "nowhere" in exc_info.value.location


class TestSelectProvidingLocations:
    """Tests for the dominance walk."""

    def test_dominated_earlier_reference_dropped(self):
        used = {R1: {("a", 1)}, R2: {("a", 1), ("b", 1)}}
        assert select_providing_locations(used, {R1, R2}) == [R2]

    def test_identical_content_keeps_later(self):
        used = {R1: {("a", 1)}, R2: {("a", 1)}}
        assert select_providing_locations(used, {R1, R2}) == [R2]

    def test_empty_removable_dropped(self):
        used = {R1: set(), R2: {("a", 1)}}
        assert select_providing_locations(used, {R1}) == [R2]

    def test_equal_size_disjoint_both_kept(self):
        used = {R1: {("a", 1)}, R2: {("b", 1)}}
        assert select_providing_locations(used, {R1, R2}) == [R1, R2]

    def test_non_removable_always_kept(self):
        used = {R1: set(), R2: {("a", 1)}}
        assert select_providing_locations(used, set()) == [R1, R2]


class TestReferencePruning:
    """Tests for remove_not_providing_references and the component wrapper."""

    def test_dominated_filterable_reference_discarded(self, comp):
        a, b = comp("a"), comp("b")
        r1, r2 = _repo(R1, [a, b]), _repo(R2, [a, b])
        destination = InMemoryRepository("mem:dest", references=_refs(R1, R2))

        discarded = remove_not_providing_references(content_index([a, b]), [r1, r2], {R1}, destination)

        assert {r.location for r in discarded} == {R1}
        assert {r.kind for r in discarded} == {ReferenceKind.METADATA, ReferenceKind.ARTIFACT}
        assert {r.location for r in destination.get_references()} == {R2}

    def test_explicit_reference_kept_even_if_empty(self, comp):
        a = comp("a")
        destination = InMemoryRepository("mem:dest", references=_refs(R1, R2))
        repos = [_repo(R1, []), _repo(R2, [a])]
        discarded = remove_not_providing_references(content_index([a]), repos, set(), destination)
        assert discarded == []
        assert len(destination.get_references()) == 4

    def test_uses_pre_removal_content(self, comp):
        a, b, c = comp("a"), comp("b"), comp("c")
        destination = InMemoryRepository("mem:dest", references=_refs(R1, R2, R3))
        loader = _loader_with(_repo(R1, [a]), _repo(R2, [b, comp("other")]), _repo(R3, [comp("zzz")]))

        result = filter_provided_components([a, b, c], destination, loader, removable={R1, R2, R3})

        assert result.kept == [c]
        # R1 and R2 each provide something collected; R3 provides nothing
        assert {r.location for r in result.discarded_references} == {R3}
        assert {r.location for r in destination.get_references()} == {R1, R2}

    def test_no_removable_means_no_pruning(self, comp):
        a = comp("a")
        destination = InMemoryRepository("mem:dest", references=_refs(R1))
        loader = _loader_with(_repo(R1, []))
        result = filter_provided_components([a], destination, loader)
        assert result.kept == [a]
        assert result.discarded_references == []
        assert len(destination.get_references()) == 2

    def test_surviving_references_cover_removed_content(self, comp):
        a, b, c = comp("a"), comp("b"), comp("c")
        destination = InMemoryRepository("mem:dest", references=_refs(R1, R2, R3))
        loader = _loader_with(_repo(R1, [a]), _repo(R2, [a, b]), _repo(R3, []))

        result = filter_provided_components([a, b, c], destination, loader, removable={R1, R2, R3})

        surviving = {r.location for r in destination.get_references()}
        assert surviving == {R2}
        for component in result.removed:
            assert any(loader.load(loc).contains(component) for loc in surviving)


class TestFilterProvidedArtifactKeys:
    """Tests for filter_provided_artifact_keys."""

    def test_keys_in_artifact_references_removed(self, comp):
        a, b = comp("a"), comp("b")
        destination = InMemoryRepository("mem:dest", references=_refs(R1))
        loader = _loader_with(_repo(R1, [a]))
        keys = list(a.artifacts) + list(b.artifacts)
        result = filter_provided_artifact_keys(keys, destination, loader)
        assert result.kept == list(b.artifacts)
        assert result.removed == list(a.artifacts)
