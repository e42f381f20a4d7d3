"""
Shared fixtures — component factories and on-disk repositories.

Tests build small component graphs in memory with ``comp`` and ``req``,
and write them to ``tmp_path`` with ``write_repo`` when a loader or a
mirror run needs real locations.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence

import pytest
import yaml

from reposlice.models.component import (
    COMPONENT_NAMESPACE,
    ArtifactKey,
    Capability,
    Component,
    RepositoryReference,
    Requirement,
)
from reposlice.models.filters import Filter
from reposlice.models.version import Version, VersionRange
from reposlice.repository.memory import InMemoryRepository
from reposlice.repository.store import save_repository


def make_component(
    component_id: str,
    version: str = "1.0.0",
    requires: Sequence[Requirement] = (),
    filter: Optional[str] = None,
    group: bool = False,
    artifacts: Optional[Sequence[ArtifactKey]] = None,
    provides: Sequence[Capability] = (),
) -> Component:
    v = Version.parse(version)
    if artifacts is None:
        artifacts = () if component_id.endswith(".feature.group") else (ArtifactKey("binary", component_id, v),)
    return Component(
        id=component_id,
        version=v,
        provides=tuple(provides),
        requires=tuple(requires),
        filter=Filter.parse_optional(filter),
        group=group,
        artifacts=tuple(artifacts),
    )


def make_requirement(
    name: str,
    range: Optional[str] = None,
    min: int = 1,
    max: int = 1,
    filter: Optional[str] = None,
    namespace: str = COMPONENT_NAMESPACE,
) -> Requirement:
    return Requirement(
        namespace=namespace,
        name=name,
        range=VersionRange.parse(range),
        min=min,
        max=max,
        filter=Filter.parse_optional(filter),
    )


@pytest.fixture
def comp():
    """Component factory: comp("a", "1.0.0", requires=[...], filter="(os=linux)")."""
    return make_component


@pytest.fixture
def req():
    """Requirement factory: req("b", "[1.0,2.0)", min=0)."""
    return make_requirement


@pytest.fixture
def write_repo(tmp_path: Path):
    """Write a repository directory under tmp_path and return its path."""

    def _write(
        name: str,
        components: Iterable[Component] = (),
        artifact_keys: Optional[Iterable[ArtifactKey]] = None,
        references: Iterable[RepositoryReference] = (),
        properties: Optional[Dict[str, str]] = None,
    ) -> Path:
        components = list(components)
        if artifact_keys is None:
            artifact_keys = [key for c in components for key in c.artifacts]
        path = tmp_path / name
        repo = InMemoryRepository(
            location=path.resolve().as_uri(),
            name=name,
            components=components,
            artifact_keys=artifact_keys,
            references=references,
            properties=properties,
        )
        save_repository(repo, path)
        return path

    return _write


@pytest.fixture
def write_config(tmp_path: Path):
    """Write a mirror YAML file under tmp_path and return its path."""

    def _write(data: Dict[str, Any], name: str = "mirror.yaml") -> Path:
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write
